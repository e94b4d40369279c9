"""
Utility functions and helper classes.
"""

from .logging import setup_logging, get_logger
from .validators import validate_audio_file, validate_duration
from .exceptions import (
    RhythmChartError,
    ProcessingError,
    ValidationError,
    DurationExceededError,
    AudioDecodeError,
    GenerationCancelledError,
)

__all__ = [
    "setup_logging",
    "get_logger",
    "validate_audio_file",
    "validate_duration",
    "RhythmChartError",
    "ProcessingError",
    "ValidationError",
    "DurationExceededError",
    "AudioDecodeError",
    "GenerationCancelledError",
]

"""
Validation utilities for the rhythmchart package.
"""

import os
from pathlib import Path

from ..config.constants import SUPPORTED_AUDIO_FORMATS
from .exceptions import DurationExceededError, ValidationError


def validate_audio_file(file_path: str) -> str:
    """
    Validate that an audio file exists and has a supported format.

    Args:
        file_path: Path to the audio file

    Returns:
        Absolute path to the validated file

    Raises:
        ValidationError: If file doesn't exist or has unsupported format
    """
    if not os.path.exists(file_path):
        raise ValidationError(f"Audio file not found: {file_path}")

    file_ext = Path(file_path).suffix.lower()

    if file_ext not in SUPPORTED_AUDIO_FORMATS:
        raise ValidationError(
            f"Unsupported audio format: {file_ext}. "
            f"Supported formats: {', '.join(SUPPORTED_AUDIO_FORMATS)}"
        )

    return os.path.abspath(file_path)


def validate_duration(duration_ms: int, cap_ms: int) -> int:
    """
    Check a track duration against the analysis cap.

    Args:
        duration_ms: Track duration in milliseconds
        cap_ms: Longest track that may be analyzed

    Returns:
        The duration as an int

    Raises:
        ValidationError: If the duration is negative
        DurationExceededError: If the track is longer than the cap
    """
    try:
        duration_ms = int(duration_ms)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid track duration: {duration_ms!r}")

    if duration_ms < 0:
        raise ValidationError(f"Track duration cannot be negative: {duration_ms}")

    if cap_ms > 0 and duration_ms > cap_ms:
        raise DurationExceededError(duration_ms, cap_ms)

    return duration_ms


def validate_analysis_parameters(frame_size: int, hop_size: int, sample_rate: int):
    """
    Validate STFT framing parameters.

    Raises:
        ValidationError: If parameters are invalid
    """
    if not isinstance(sample_rate, int) or sample_rate <= 0:
        raise ValidationError("Sample rate must be a positive integer")

    if not isinstance(frame_size, int) or frame_size < 2:
        raise ValidationError("Frame size must be an integer of at least 2")

    if not isinstance(hop_size, int) or hop_size <= 0:
        raise ValidationError("Hop size must be a positive integer")

    if hop_size > frame_size:
        raise ValidationError(
            f"Hop size ({hop_size}) cannot exceed frame size ({frame_size})"
        )


def validate_cache_directory(cache_dir: str) -> Path:
    """
    Validate and create the chart cache directory if needed.

    Args:
        cache_dir: Path to the cache directory

    Returns:
        Absolute path to the validated directory

    Raises:
        ValidationError: If directory cannot be created or accessed
    """
    abs_path = Path(os.path.expanduser(cache_dir)).resolve()

    try:
        abs_path.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise ValidationError(f"Cannot create cache directory {abs_path}: {e}")

    if not os.access(abs_path, os.W_OK):
        raise ValidationError(f"Cache directory is not writable: {abs_path}")

    return abs_path

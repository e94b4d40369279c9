"""
Custom exceptions for the rhythmchart package.
"""


class RhythmChartError(Exception):
    """Base exception for all rhythmchart errors."""
    pass


class ProcessingError(RhythmChartError):
    """Error during audio analysis or chart generation."""
    pass


class ValidationError(RhythmChartError):
    """Error during input validation."""
    pass


class ConfigurationError(RhythmChartError):
    """Error in configuration or settings."""
    pass


class DurationExceededError(ValidationError):
    """Track is longer than the configured analysis cap."""

    def __init__(self, duration_ms: int, cap_ms: int):
        self.duration_ms = duration_ms
        self.cap_ms = cap_ms
        super().__init__(
            f"Track too long: {duration_ms / 60000:.0f} min "
            f"(max {cap_ms / 60000:.0f} min)"
        )


class AudioDecodeError(ProcessingError):
    """The decoder could not produce PCM for a track."""

    def __init__(self, message: str = "Cannot analyze this track"):
        super().__init__(message)


class OnsetDetectionError(ProcessingError):
    """Error during onset detection."""
    pass


class GenerationCancelledError(ProcessingError):
    """Chart generation was cancelled before completion."""
    pass


class CacheError(RhythmChartError):
    """Error reading or writing the chart cache."""
    pass


class CorruptCacheEntryError(CacheError):
    """A persisted chart record could not be parsed."""
    pass


class GameplayError(RhythmChartError):
    """Invalid operation on a gameplay session."""
    pass

"""
Configuration management for rhythmchart.
"""

import os
import yaml
from pathlib import Path
from typing import Dict, Any, Optional, Tuple
from dataclasses import dataclass, field, asdict

from .constants import *
from ..utils.exceptions import ConfigurationError


@dataclass
class AudioSettings:
    """Decoding and STFT framing settings."""
    sample_rate: int = SAMPLE_RATE
    frame_size: int = FRAME_SIZE
    hop_size: int = HOP_SIZE


@dataclass
class OnsetSettings:
    """SuperFlux onset detection settings."""
    onset_threshold_k: float = ONSET_THRESHOLD_K
    min_onset_spacing_ms: float = MIN_ONSET_SPACING_MS
    max_filter_frames: int = MAX_FILTER_FRAMES
    avg_past_frames: int = AVG_PAST_FRAMES
    avg_future_frames: int = AVG_FUTURE_FRAMES
    log_compression: float = LOG_COMPRESSION
    min_novelty: float = MIN_NOVELTY


@dataclass
class TempoSettings:
    """Tempo and beat grid estimation settings."""
    min_bpm: float = MIN_BPM
    max_bpm: float = MAX_BPM
    default_bpm: float = DEFAULT_BPM
    resolution_ms: float = TEMPO_RESOLUTION_MS
    min_confidence: float = MIN_TEMPO_CONFIDENCE
    min_onsets: int = MIN_TEMPO_ONSETS
    subdivisions_per_beat: int = SUBDIVISIONS_PER_BEAT


@dataclass
class PitchSettings:
    """Melodic contour settings."""
    smoothing_alpha: float = PITCH_SMOOTHING_ALPHA


@dataclass
class ChartSettings:
    """Chart assembly settings."""
    max_notes: int = MAX_NOTES
    bonus_interval_range_sec: Tuple[float, float] = BONUS_INTERVAL_RANGE_SEC
    bass_ratio_threshold: float = BASS_RATIO_THRESHOLD
    generator_version: str = GENERATOR_VERSION

    def __post_init__(self):
        self.bonus_interval_range_sec = tuple(float(v) for v in self.bonus_interval_range_sec)
        if len(self.bonus_interval_range_sec) != 2:
            raise ConfigurationError("bonus_interval_range_sec must have exactly two values")
        low, high = self.bonus_interval_range_sec
        if low <= 0 or high < low:
            raise ConfigurationError(
                f"Invalid bonus interval range: {self.bonus_interval_range_sec}"
            )


@dataclass
class GameplaySettings:
    """Judgment windows, scoring and bonus settings."""
    perfect_window_base_ms: float = PERFECT_WINDOW_BASE_MS
    good_window_base_ms: float = GOOD_WINDOW_BASE_MS
    reference_bpm: float = REFERENCE_BPM
    window_scaling_exponent: float = WINDOW_SCALING_EXPONENT
    lookahead_ms: float = LOOKAHEAD_MS
    points_per_hit: int = POINTS_PER_HIT
    max_multiplier: int = MAX_MULTIPLIER
    combo_per_multiplier_step: int = COMBO_PER_MULTIPLIER_STEP
    lightning_lane_duration_ms: float = LIGHTNING_LANE_DURATION_MS
    double_points_duration_ms: float = DOUBLE_POINTS_DURATION_MS
    note_magnet_duration_ms: float = NOTE_MAGNET_DURATION_MS
    note_magnet_window_scale: float = NOTE_MAGNET_WINDOW_SCALE
    shield_charges: int = SHIELD_CHARGES
    debug_shortcuts: bool = False


@dataclass
class ProcessingSettings:
    """Processing pipeline limits."""
    duration_cap_ms: int = DURATION_CAP_MS


@dataclass
class CacheSettings:
    """Chart cache location."""
    cache_dir: str = DEFAULT_CACHE_DIR


_SECTIONS = {
    'audio': AudioSettings,
    'onset': OnsetSettings,
    'tempo': TempoSettings,
    'pitch': PitchSettings,
    'chart': ChartSettings,
    'gameplay': GameplaySettings,
    'processing': ProcessingSettings,
    'cache': CacheSettings,
}


@dataclass
class Settings:
    """Main settings container."""
    audio: AudioSettings = field(default_factory=AudioSettings)
    onset: OnsetSettings = field(default_factory=OnsetSettings)
    tempo: TempoSettings = field(default_factory=TempoSettings)
    pitch: PitchSettings = field(default_factory=PitchSettings)
    chart: ChartSettings = field(default_factory=ChartSettings)
    gameplay: GameplaySettings = field(default_factory=GameplaySettings)
    processing: ProcessingSettings = field(default_factory=ProcessingSettings)
    cache: CacheSettings = field(default_factory=CacheSettings)

    @classmethod
    def load_from_file(cls, config_path: str) -> 'Settings':
        """
        Load settings from a YAML configuration file.

        Args:
            config_path: Path to the configuration file

        Returns:
            Settings instance

        Raises:
            ConfigurationError: If file cannot be loaded or parsed
        """
        try:
            with open(config_path, 'r') as f:
                config_data = yaml.safe_load(f)
        except FileNotFoundError:
            raise ConfigurationError(f"Configuration file not found: {config_path}")
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in configuration file: {e}")
        except OSError as e:
            raise ConfigurationError(f"Error loading configuration: {e}")

        if config_data is not None and not isinstance(config_data, dict):
            raise ConfigurationError("Configuration file must contain a mapping")

        return cls.from_dict(config_data or {})

    @classmethod
    def from_dict(cls, config_data: Dict[str, Any]) -> 'Settings':
        """
        Create settings from a dictionary.

        Unknown sections are ignored; unknown keys inside a known section
        raise ConfigurationError.

        Args:
            config_data: Configuration data dictionary

        Returns:
            Settings instance
        """
        settings = cls()

        for section_name, section_cls in _SECTIONS.items():
            if section_name not in config_data:
                continue
            section_data = config_data[section_name] or {}
            try:
                setattr(settings, section_name, section_cls(**section_data))
            except TypeError as e:
                raise ConfigurationError(f"Invalid '{section_name}' settings: {e}")

        return settings

    @classmethod
    def from_environment(cls) -> 'Settings':
        """
        Create settings from environment variables.

        Returns:
            Settings instance with environment overrides
        """
        settings = cls()

        if 'RHYTHMCHART_CACHE_DIR' in os.environ:
            settings.cache.cache_dir = os.environ['RHYTHMCHART_CACHE_DIR']

        if 'RHYTHMCHART_SAMPLE_RATE' in os.environ:
            try:
                settings.audio.sample_rate = int(os.environ['RHYTHMCHART_SAMPLE_RATE'])
            except ValueError:
                pass

        if 'RHYTHMCHART_DURATION_CAP_MS' in os.environ:
            try:
                settings.processing.duration_cap_ms = int(os.environ['RHYTHMCHART_DURATION_CAP_MS'])
            except ValueError:
                pass

        if 'RHYTHMCHART_DEBUG_SHORTCUTS' in os.environ:
            value = os.environ['RHYTHMCHART_DEBUG_SHORTCUTS'].strip().lower()
            settings.gameplay.debug_shortcuts = value in ('1', 'true', 'yes', 'on')

        return settings

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert settings to dictionary.

        Returns:
            Settings as dictionary
        """
        data = asdict(self)
        data['chart']['bonus_interval_range_sec'] = list(self.chart.bonus_interval_range_sec)
        return data

    def save_to_file(self, config_path: str):
        """
        Save settings to a YAML configuration file.

        Args:
            config_path: Path to save the configuration file

        Raises:
            ConfigurationError: If file cannot be saved
        """
        try:
            config_dir = Path(config_path).parent
            config_dir.mkdir(parents=True, exist_ok=True)

            with open(config_path, 'w') as f:
                yaml.safe_dump(self.to_dict(), f, default_flow_style=False, sort_keys=True)

        except OSError as e:
            raise ConfigurationError(f"Error saving configuration: {e}")


# Global settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Get the global settings instance.

    Returns:
        Settings instance
    """
    global _settings
    if _settings is None:
        _settings = Settings.from_environment()
    return _settings


def load_settings(config_path: Optional[str] = None) -> Settings:
    """
    Load settings from file or environment.

    Args:
        config_path: Optional path to configuration file

    Returns:
        Settings instance
    """
    global _settings

    if config_path and os.path.exists(config_path):
        _settings = Settings.load_from_file(config_path)
    else:
        _settings = Settings.from_environment()

    return _settings

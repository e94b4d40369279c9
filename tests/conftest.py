"""
Pytest configuration and fixtures for rhythmchart tests.
"""

import pytest
import numpy as np
from pathlib import Path
from typing import Iterable, Optional, Sequence, Tuple

# Add src to path for testing
import sys
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from rhythmchart.config.settings import Settings, AudioSettings, CacheSettings
from rhythmchart.chart.models import BonusKind, Chart, Note
from rhythmchart.core.onset_detector import OnsetEvent

TEST_SAMPLE_RATE = 22050


@pytest.fixture
def settings(tmp_path):
    """Create test settings with a private cache directory."""
    return Settings(
        audio=AudioSettings(
            sample_rate=TEST_SAMPLE_RATE,
            frame_size=1024,
            hop_size=512,
        ),
        cache=CacheSettings(cache_dir=str(tmp_path / "charts")),
    )


@pytest.fixture
def debug_settings(settings):
    """Test settings with debug shortcuts enabled."""
    settings.gameplay.debug_shortcuts = True
    return settings


@pytest.fixture
def silent_audio():
    """Five seconds of digital silence."""
    return np.zeros(5 * TEST_SAMPLE_RATE, dtype=np.float32)


@pytest.fixture
def click_track():
    """Noise bursts every 500ms (120 BPM) over six seconds."""
    click_times = [0.5 * i for i in range(1, 12)]
    return create_click_track(click_times, duration=6.0), click_times


def create_click_track(click_times: Iterable[float],
                       duration: float,
                       sample_rate: int = TEST_SAMPLE_RATE,
                       frequency: Optional[float] = None,
                       seed: int = 7) -> np.ndarray:
    """
    Create audio with short decaying bursts at the given times.

    Bursts are white noise unless a frequency is given, in which case
    they are sine bursts at that frequency.
    """
    rng = np.random.default_rng(seed)
    audio = np.zeros(int(duration * sample_rate), dtype=np.float64)
    burst_len = int(0.01 * sample_rate)
    t = np.arange(burst_len) / sample_rate
    envelope = np.exp(-t * 200.0)

    for click_time in click_times:
        start = int(click_time * sample_rate)
        end = min(start + burst_len, len(audio))
        if frequency is None:
            burst = rng.standard_normal(burst_len)
        else:
            burst = np.sin(2 * np.pi * frequency * t)
        audio[start:end] += (burst * envelope)[:end - start] * 0.8

    return audio.astype(np.float32)


def make_onset(timestamp_ms: float,
               strength: float = 1.0,
               bass: float = 0.2,
               mid: float = 0.6,
               treble: float = 0.2) -> OnsetEvent:
    return OnsetEvent(
        timestamp_ms=float(timestamp_ms),
        strength=float(strength),
        bass_ratio=bass,
        mid_ratio=mid,
        treble_ratio=treble,
    )


def make_chart(entries: Sequence[Tuple[int, int, Optional[BonusKind]]],
               bpm: float = 120.0,
               fingerprint: str = "0123456789abcdef" * 4) -> Chart:
    """Build a chart from (timestamp_ms, lane, bonus) tuples."""
    notes = tuple(
        Note(id=i, timestamp_ms=ts, lane=lane, bonus=bonus)
        for i, (ts, lane, bonus) in enumerate(sorted(entries, key=lambda e: e[0]))
    )
    return Chart(fingerprint=fingerprint, bpm=bpm, notes=notes, generator_version="test")

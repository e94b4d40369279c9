"""
Melodic contour tracking from the spectral centroid.
"""

from dataclasses import dataclass
from typing import Iterable, List, Optional

import librosa
import numpy as np

from ..audio.analyzer import SpectrumFrame
from ..config.settings import Settings
from ..utils.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True, eq=False)
class PitchContour:
    """Smoothed centroid over time, normalized to [0, 1] per track."""
    timestamps_ms: np.ndarray
    values: np.ndarray

    def __len__(self) -> int:
        return len(self.values)

    def value_at(self, timestamp_ms: float) -> float:
        """
        Contour value of the sample nearest to a timestamp.

        An empty contour reads as the middle of the range.
        """
        if len(self.values) == 0:
            return 0.5
        idx = int(np.searchsorted(self.timestamps_ms, timestamp_ms))
        if idx <= 0:
            return float(self.values[0])
        if idx >= len(self.values):
            return float(self.values[-1])
        before = self.timestamps_ms[idx - 1]
        after = self.timestamps_ms[idx]
        if timestamp_ms - before <= after - timestamp_ms:
            return float(self.values[idx - 1])
        return float(self.values[idx])


class PitchTracker:
    """Proxy for melodic pitch height; one instance per track."""

    def __init__(self, settings: Settings, frequencies: np.ndarray):
        self.alpha = float(np.clip(settings.pitch.smoothing_alpha, 0.0, 1.0))
        self.frequencies = np.asarray(frequencies, dtype=np.float64)
        self.reset()

    def reset(self):
        self._timestamps: List[float] = []
        self._smoothed: List[float] = []
        self._last_centroid: Optional[float] = None

    def feed(self, frame: SpectrumFrame):
        total = float(np.sum(frame.magnitudes))
        if total > 0:
            centroid = float(librosa.feature.spectral_centroid(
                S=frame.magnitudes[:, np.newaxis], freq=self.frequencies
            )[0, 0])
        elif self._last_centroid is not None:
            centroid = self._last_centroid
        else:
            centroid = 0.0
        self._last_centroid = centroid

        if self._smoothed:
            previous = self._smoothed[-1]
            smoothed = previous + self.alpha * (centroid - previous)
        else:
            smoothed = centroid

        self._timestamps.append(float(frame.timestamp_ms))
        self._smoothed.append(smoothed)

    def finish(self) -> PitchContour:
        values = np.asarray(self._smoothed, dtype=np.float64)
        timestamps = np.asarray(self._timestamps, dtype=np.float64)

        if values.size:
            low, high = float(values.min()), float(values.max())
            if high - low > 1e-9:
                values = (values - low) / (high - low)
            else:
                values = np.full_like(values, 0.5)
            logger.debug(f"Pitch contour: {values.size} samples, centroid range {low:.0f}-{high:.0f}Hz")

        return PitchContour(timestamps_ms=timestamps, values=values)

    def track(self, frames: Iterable[SpectrumFrame]) -> PitchContour:
        self.reset()
        for frame in frames:
            self.feed(frame)
        return self.finish()

"""
SuperFlux-style onset detection over streamed magnitude spectra.
"""

from collections import deque
from dataclasses import dataclass
from typing import Deque, Dict, Iterable, List, Tuple

import numpy as np
from scipy.ndimage import maximum_filter1d

from ..audio.analyzer import SpectrumFrame
from ..config.settings import Settings
from ..utils.exceptions import OnsetDetectionError
from ..utils.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class OnsetEvent:
    """A detected onset with the band balance of its frame."""
    timestamp_ms: float
    strength: float
    bass_ratio: float
    mid_ratio: float
    treble_ratio: float


def _windowed_stats(values: np.ndarray, past: int, future: int) -> Tuple[np.ndarray, np.ndarray]:
    """Mean and standard deviation over [i - past, i + future] for every i."""
    n = len(values)
    idx = np.arange(n)
    starts = np.maximum(0, idx - past)
    ends = np.minimum(n, idx + future + 1)
    counts = (ends - starts).astype(np.float64)

    csum = np.concatenate([[0.0], np.cumsum(values)])
    csum_sq = np.concatenate([[0.0], np.cumsum(values * values)])

    mean = (csum[ends] - csum[starts]) / counts
    mean_sq = (csum_sq[ends] - csum_sq[starts]) / counts
    variance = np.clip(mean_sq - mean * mean, 0.0, None)
    return mean, np.sqrt(variance)


class OnsetDetector:
    """
    Onset detector fed one spectrum at a time.

    Each bin is compared against the maximum of the same bin over the
    previous ``max_filter_frames`` frames rather than just the preceding
    frame, which keeps vibrato and tremolo from registering as onsets.
    Only per-frame scalars are kept, so memory grows with the number of
    frames, not with the spectrogram size.

    One instance analyzes one track; call ``reset()`` before reusing it.
    """

    def __init__(self, settings: Settings, band_bins: Dict[str, Tuple[int, int]]):
        """
        Initialize the onset detector.

        Args:
            settings: Application settings
            band_bins: Bin ranges for the 'bass', 'mid' and 'treble' bands
        """
        missing = {'bass', 'mid', 'treble'} - set(band_bins)
        if missing:
            raise OnsetDetectionError(f"Missing energy bands: {sorted(missing)}")

        onset = settings.onset
        self.threshold_k = onset.onset_threshold_k
        self.min_spacing_ms = onset.min_onset_spacing_ms
        self.max_filter_frames = max(1, int(onset.max_filter_frames))
        self.avg_past = max(0, int(onset.avg_past_frames))
        self.avg_future = max(0, int(onset.avg_future_frames))
        self.log_compression = onset.log_compression
        self.min_novelty = onset.min_novelty
        self.band_bins = dict(band_bins)

        self.reset()

    def reset(self):
        """Discard all state from a previous track."""
        self._history: Deque[np.ndarray] = deque(maxlen=self.max_filter_frames)
        self._timestamps: List[float] = []
        self._novelty: List[float] = []
        self._ratios: List[Tuple[float, float, float]] = []

    @property
    def frames_seen(self) -> int:
        return len(self._novelty)

    def feed(self, frame: SpectrumFrame):
        """Accumulate novelty and band energy for one spectrum."""
        log_mag = np.log1p(self.log_compression * frame.magnitudes)

        if self._history:
            reference = np.maximum.reduce(list(self._history))
        else:
            # The track is preceded by silence
            reference = np.zeros_like(log_mag)

        diff = log_mag - reference
        novelty = float(np.sum(diff[diff > 0]))
        self._history.append(log_mag)

        energy = frame.magnitudes * frame.magnitudes
        total = float(np.sum(energy))
        if total > 0:
            ratios = tuple(
                float(np.sum(energy[lo:hi]) / total)
                for lo, hi in (self.band_bins['bass'], self.band_bins['mid'], self.band_bins['treble'])
            )
        else:
            ratios = (0.0, 0.0, 0.0)

        self._timestamps.append(float(frame.timestamp_ms))
        self._novelty.append(novelty)
        self._ratios.append(ratios)

    def novelty_curve(self) -> np.ndarray:
        """The novelty value of every frame fed so far."""
        return np.asarray(self._novelty, dtype=np.float64)

    def finish(self) -> List[OnsetEvent]:
        """
        Pick onsets from the accumulated novelty curve.

        Returns:
            Onset events ordered by time (possibly empty)
        """
        novelty = self.novelty_curve()
        if novelty.size == 0:
            return []

        mean, deviation = _windowed_stats(novelty, self.avg_past, self.avg_future)
        threshold = np.maximum(mean + self.threshold_k * deviation, self.min_novelty)

        local_max = maximum_filter1d(
            novelty, size=2 * self.max_filter_frames + 1, mode='constant', cval=0.0
        )
        peaks = np.flatnonzero((novelty >= local_max) & (novelty > threshold))

        onsets: List[OnsetEvent] = []
        last_ms = None
        for frame_index in peaks:
            timestamp_ms = self._timestamps[frame_index]
            if last_ms is not None and timestamp_ms - last_ms < self.min_spacing_ms:
                continue
            bass, mid, treble = self._ratios[frame_index]
            onsets.append(OnsetEvent(
                timestamp_ms=timestamp_ms,
                strength=float(novelty[frame_index]),
                bass_ratio=bass,
                mid_ratio=mid,
                treble_ratio=treble,
            ))
            last_ms = timestamp_ms

        logger.info(f"Detected {len(onsets)} onsets in {novelty.size} frames")
        return onsets

    def detect(self, frames: Iterable[SpectrumFrame]) -> List[OnsetEvent]:
        """Run a whole spectrum sequence through the detector."""
        self.reset()
        for frame in frames:
            self.feed(frame)
        return self.finish()

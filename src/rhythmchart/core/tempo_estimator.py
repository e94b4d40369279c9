"""
Tempo estimation and beat grid construction from detected onsets.
"""

import math
from dataclasses import dataclass
from typing import Sequence

import numpy as np
import librosa

from ..config.settings import Settings
from ..config.constants import DEFAULT_BPM, SUBDIVISIONS_PER_BEAT
from ..utils.logging import get_logger
from .onset_detector import OnsetEvent

logger = get_logger(__name__)


@dataclass(frozen=True)
class BeatGrid:
    """
    Regular tick lattice implied by a tempo and phase.

    ``subdivision_ms`` of 0 means a sixteenth of the beat. A bpm that is
    not a positive finite number is replaced by the default tempo.
    """
    bpm: float
    phase_offset_ms: float = 0.0
    subdivision_ms: float = 0.0

    def __post_init__(self):
        bpm = self.bpm
        if bpm is None or not math.isfinite(bpm) or bpm <= 0:
            logger.warning(f"Invalid tempo {bpm!r}, using {DEFAULT_BPM} BPM")
            object.__setattr__(self, 'bpm', float(DEFAULT_BPM))
        if not self.subdivision_ms or self.subdivision_ms <= 0:
            object.__setattr__(self, 'subdivision_ms', self.beat_interval_ms / SUBDIVISIONS_PER_BEAT)

    @classmethod
    def default(cls, bpm: float = DEFAULT_BPM) -> 'BeatGrid':
        return cls(bpm=bpm, phase_offset_ms=0.0)

    @classmethod
    def from_tempo(cls, bpm: float, phase_offset_ms: float = 0.0,
                   subdivisions_per_beat: int = SUBDIVISIONS_PER_BEAT) -> 'BeatGrid':
        grid = cls(bpm=bpm, phase_offset_ms=phase_offset_ms)
        if subdivisions_per_beat != SUBDIVISIONS_PER_BEAT:
            grid = cls(
                bpm=grid.bpm,
                phase_offset_ms=phase_offset_ms,
                subdivision_ms=grid.beat_interval_ms / max(1, subdivisions_per_beat),
            )
        return grid

    @property
    def beat_interval_ms(self) -> float:
        return 60000.0 / self.bpm

    def tick_index(self, timestamp_ms: float) -> int:
        """Index of the tick nearest to a timestamp (halves round up)."""
        return int(math.floor((timestamp_ms - self.phase_offset_ms) / self.subdivision_ms + 0.5))

    def tick_time(self, tick: int) -> float:
        return self.phase_offset_ms + tick * self.subdivision_ms

    def quantize(self, timestamp_ms: float) -> float:
        """Snap a timestamp to the nearest tick."""
        return self.tick_time(self.tick_index(timestamp_ms))

    def first_tick_at_or_after(self, timestamp_ms: float) -> int:
        position = (timestamp_ms - self.phase_offset_ms) / self.subdivision_ms
        return int(math.ceil(position - 1e-9))


@dataclass(frozen=True)
class TempoEstimate:
    """Result of tempo estimation."""
    grid: BeatGrid
    confidence: float
    degenerate: bool = False


class TempoEstimator:
    """
    Autocorrelation tempo estimator.

    Onsets are rendered into a strength-weighted envelope, autocorrelated
    over the lag range of the plausible tempi, and the strongest lag wins.
    The phase is the grid offset with the smallest total onset-to-beat
    distance. When no periodicity is reliable the default grid is used.
    """

    def __init__(self, settings: Settings):
        tempo = settings.tempo
        self.min_bpm = tempo.min_bpm
        self.max_bpm = tempo.max_bpm
        self.default_bpm = tempo.default_bpm
        self.resolution_ms = tempo.resolution_ms
        self.min_confidence = tempo.min_confidence
        self.min_onsets = tempo.min_onsets
        self.subdivisions_per_beat = tempo.subdivisions_per_beat

    def _fallback(self, reason: str) -> TempoEstimate:
        logger.info(f"No reliable tempo ({reason}); using default {self.default_bpm:.0f} BPM grid")
        grid = BeatGrid.from_tempo(self.default_bpm, 0.0, self.subdivisions_per_beat)
        return TempoEstimate(grid=grid, confidence=0.0, degenerate=True)

    def _envelope(self, times: np.ndarray, weights: np.ndarray) -> np.ndarray:
        bins = np.round(times / self.resolution_ms).astype(np.int64)
        envelope = np.zeros(int(bins.max()) + 3, dtype=np.float64)
        np.add.at(envelope, bins, weights)
        # Spread each onset over neighbouring bins to absorb frame jitter
        return np.convolve(envelope, [0.5, 1.0, 0.5], mode='same')

    def estimate_phase(self, times: np.ndarray, weights: np.ndarray, bpm: float) -> float:
        """
        Find the grid offset minimising the weighted onset-to-beat distance.

        Args:
            times: Onset times (ms)
            weights: Per-onset weights
            bpm: Tempo of the grid

        Returns:
            Phase offset in [0, beat interval)
        """
        beat_ms = 60000.0 / bpm
        candidates = np.arange(0.0, beat_ms, self.resolution_ms)
        residual = np.mod(times[None, :] - candidates[:, None], beat_ms)
        distance = np.minimum(residual, beat_ms - residual)
        cost = distance @ weights
        return float(candidates[int(np.argmin(cost))])

    def estimate(self, onsets: Sequence[OnsetEvent]) -> TempoEstimate:
        """
        Estimate the beat grid of a track.

        Args:
            onsets: Onset events ordered by time

        Returns:
            Tempo estimate; never raises for degenerate input
        """
        if len(onsets) < self.min_onsets:
            return self._fallback(f"only {len(onsets)} onsets")

        times = np.array([o.timestamp_ms for o in onsets], dtype=np.float64)
        strengths = np.array([o.strength for o in onsets], dtype=np.float64)
        peak = float(strengths.max())
        weights = strengths / peak if peak > 0 else np.ones_like(strengths)

        min_lag = int(math.ceil(60000.0 / self.max_bpm / self.resolution_ms))
        max_lag = int(math.floor(60000.0 / self.min_bpm / self.resolution_ms))

        envelope = self._envelope(times, weights)
        max_lag = min(max_lag, len(envelope) - 1)
        if max_lag < min_lag:
            return self._fallback("track shorter than one beat period")

        autocorr = librosa.autocorrelate(envelope, max_size=max_lag + 1)
        if autocorr[0] <= 0:
            return self._fallback("empty onset envelope")

        best_lag = min_lag + int(np.argmax(autocorr[min_lag:max_lag + 1]))
        confidence = float(autocorr[best_lag] / autocorr[0])
        if confidence < self.min_confidence:
            return self._fallback(f"confidence {confidence:.3f}")

        bpm = 60000.0 / (best_lag * self.resolution_ms)
        phase = self.estimate_phase(times, weights, bpm)
        grid = BeatGrid.from_tempo(bpm, phase, self.subdivisions_per_beat)

        logger.info(f"Estimated tempo {bpm:.1f} BPM, phase {phase:.0f}ms "
                    f"(confidence: {confidence:.3f})")
        return TempoEstimate(grid=grid, confidence=confidence, degenerate=False)

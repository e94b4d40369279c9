"""
Streaming spectral analysis for audio signals.
"""

from dataclasses import dataclass
from typing import Dict, Iterator, Tuple

import numpy as np
import librosa
from scipy.signal import get_window

from ..config.settings import Settings
from ..config.constants import FREQ_BANDS
from ..utils.validators import validate_analysis_parameters
from ..utils.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True, eq=False)
class SpectrumFrame:
    """Magnitude spectrum of one analysis window."""
    index: int
    timestamp_ms: float
    magnitudes: np.ndarray


class SpectralAnalyzer:
    """
    Windowed FFT over mono PCM, one frame per hop.

    The analyzer holds only configuration, so a single instance can serve
    any number of tracks (including concurrently).
    """

    def __init__(self, settings: Settings):
        """
        Initialize spectral analyzer.

        Args:
            settings: Application settings
        """
        self.settings = settings
        self.frame_size = settings.audio.frame_size
        self.hop_size = settings.audio.hop_size
        validate_analysis_parameters(self.frame_size, self.hop_size, settings.audio.sample_rate)
        self._window = get_window('hann', self.frame_size, fftbins=True).astype(np.float64)

    def fft_frequencies(self, sample_rate: int) -> np.ndarray:
        """Centre frequency of each FFT bin."""
        return librosa.fft_frequencies(sr=sample_rate, n_fft=self.frame_size)

    def frame_count(self, n_samples: int) -> int:
        """Number of frames produced for a buffer of n_samples."""
        if n_samples < self.frame_size:
            return 0
        return (n_samples - self.frame_size) // self.hop_size + 1

    def frames(self, samples: np.ndarray, sample_rate: int) -> Iterator[SpectrumFrame]:
        """
        Lazily compute magnitude spectra.

        Multi-channel input of shape (channels, n_samples) is downmixed first.
        Inputs shorter than one frame produce nothing.

        Args:
            samples: PCM samples
            sample_rate: Sample rate of the PCM

        Yields:
            SpectrumFrame for each hop, in order
        """
        samples = np.asarray(samples, dtype=np.float32)
        if samples.ndim > 1:
            samples = librosa.to_mono(samples)

        n_frames = self.frame_count(samples.shape[0])
        half_frame_ms = (self.frame_size / 2.0) * 1000.0 / sample_rate

        for index in range(n_frames):
            start = index * self.hop_size
            windowed = samples[start:start + self.frame_size] * self._window
            magnitudes = np.abs(np.fft.rfft(windowed))
            timestamp_ms = start * 1000.0 / sample_rate + half_frame_ms
            yield SpectrumFrame(index=index, timestamp_ms=timestamp_ms, magnitudes=magnitudes)

    def band_bins(self, sample_rate: int) -> Dict[str, Tuple[int, int]]:
        """
        Map each named energy band to a [start, stop) bin range.

        Args:
            sample_rate: Sample rate of the analyzed PCM

        Returns:
            Dictionary of band name to bin slice bounds
        """
        freqs = self.fft_frequencies(sample_rate)
        bands = {}
        for band_name, (low_freq, high_freq) in FREQ_BANDS.items():
            low_bin = int(np.searchsorted(freqs, low_freq, side='left'))
            if high_freq is None:
                high_bin = len(freqs)
            else:
                high_bin = int(np.searchsorted(freqs, high_freq, side='left'))
            bands[band_name] = (low_bin, high_bin)
        return bands

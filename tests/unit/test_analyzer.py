"""
Unit tests for spectral analysis.
"""

import pytest
import numpy as np

from rhythmchart.audio.analyzer import SpectralAnalyzer
from rhythmchart.audio.decoder import DecodedAudio
from rhythmchart.utils.exceptions import ValidationError


class TestSpectralAnalyzer:
    """Test cases for SpectralAnalyzer."""

    def test_frame_count(self, settings):
        """Test framing arithmetic."""
        analyzer = SpectralAnalyzer(settings)

        assert analyzer.frame_count(1023) == 0
        assert analyzer.frame_count(1024) == 1
        assert analyzer.frame_count(2048) == 3

    def test_frames_are_centered_and_ordered(self, settings):
        """Test frame indices, timestamps and spectrum size."""
        analyzer = SpectralAnalyzer(settings)
        sr = settings.audio.sample_rate
        samples = np.random.default_rng(0).standard_normal(sr).astype(np.float32)

        frames = list(analyzer.frames(samples, sr))

        assert len(frames) == analyzer.frame_count(len(samples))
        assert [f.index for f in frames] == list(range(len(frames)))
        assert frames[0].timestamp_ms == pytest.approx(512 * 1000.0 / sr)
        assert frames[1].timestamp_ms - frames[0].timestamp_ms == pytest.approx(512 * 1000.0 / sr)
        assert frames[0].magnitudes.shape == (513,)

    def test_short_input_yields_nothing(self, settings):
        """Test inputs shorter than one frame."""
        analyzer = SpectralAnalyzer(settings)
        assert list(analyzer.frames(np.zeros(100), settings.audio.sample_rate)) == []

    def test_stereo_is_downmixed(self, settings):
        """Test that (channels, samples) input is averaged to mono."""
        analyzer = SpectralAnalyzer(settings)
        sr = settings.audio.sample_rate
        rng = np.random.default_rng(1)
        left = rng.standard_normal(4096).astype(np.float32)
        right = rng.standard_normal(4096).astype(np.float32)

        stereo_frames = list(analyzer.frames(np.stack([left, right]), sr))
        mono_frames = list(analyzer.frames((left + right) / 2, sr))

        assert len(stereo_frames) == len(mono_frames)
        np.testing.assert_allclose(stereo_frames[2].magnitudes, mono_frames[2].magnitudes, rtol=1e-4, atol=1e-4)

    def test_band_bins_partition_spectrum(self, settings):
        """Test that the energy bands are contiguous and cover every bin."""
        analyzer = SpectralAnalyzer(settings)
        bands = analyzer.band_bins(settings.audio.sample_rate)

        assert bands['bass'][0] == 0
        assert bands['bass'][1] == bands['mid'][0]
        assert bands['mid'][1] == bands['treble'][0]
        assert bands['treble'][1] == 513

        freqs = analyzer.fft_frequencies(settings.audio.sample_rate)
        assert freqs[bands['bass'][1] - 1] < 250 <= freqs[bands['mid'][0]]

    def test_invalid_framing_rejected(self, settings):
        """Test that hop sizes larger than the frame are rejected."""
        settings.audio.hop_size = 4096
        with pytest.raises(ValidationError):
            SpectralAnalyzer(settings)


class TestDecodedAudio:
    """Test cases for DecodedAudio."""

    def test_duration_from_samples(self):
        """Test duration derivation."""
        audio = DecodedAudio.from_samples(np.zeros(22050), 22050)

        assert audio.duration_ms == 1000
        assert audio.sample_rate == 22050
        assert audio.samples.dtype == np.float32

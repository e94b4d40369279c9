"""
Unit tests for the librosa-backed audio decoder.
"""

import pytest
import numpy as np
import soundfile as sf

from rhythmchart.audio.decoder import LibrosaAudioDecoder
from rhythmchart.utils.exceptions import AudioDecodeError

from conftest import TEST_SAMPLE_RATE


@pytest.fixture
def wav_file(tmp_path):
    """Two seconds of stereo noise written to a WAV file."""
    rng = np.random.default_rng(5)
    audio = 0.1 * rng.standard_normal((2 * TEST_SAMPLE_RATE, 2))
    path = tmp_path / "song.wav"
    sf.write(str(path), audio, TEST_SAMPLE_RATE)
    return str(path)


class TestLibrosaAudioDecoder:
    """Test cases for LibrosaAudioDecoder."""

    def test_probe_duration(self, settings, wav_file):
        """Test reading the duration from the file header."""
        assert LibrosaAudioDecoder(settings).probe_duration_ms(wav_file) == 2000

    def test_decode_to_mono(self, settings, wav_file):
        """Test decoding to mono PCM at the configured rate."""
        audio = LibrosaAudioDecoder(settings).decode(wav_file)

        assert audio.samples.ndim == 1
        assert audio.sample_rate == TEST_SAMPLE_RATE
        assert audio.duration_ms == 2000

    def test_missing_file(self, settings, tmp_path):
        """Test that unreadable paths raise AudioDecodeError."""
        decoder = LibrosaAudioDecoder(settings)

        with pytest.raises(AudioDecodeError):
            decoder.decode(str(tmp_path / "missing.mp3"))
        with pytest.raises(AudioDecodeError):
            decoder.probe_duration_ms(str(tmp_path / "missing.mp3"))

    def test_corrupt_file(self, settings, tmp_path):
        """Test that undecodable data raises AudioDecodeError."""
        path = tmp_path / "broken.wav"
        path.write_bytes(b"RIFF not really a wave file")

        with pytest.raises(AudioDecodeError) as exc_info:
            LibrosaAudioDecoder(settings).decode(str(path))

        assert "Cannot analyze this track" in str(exc_info.value)

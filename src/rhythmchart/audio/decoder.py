"""
Audio decoding interface and the librosa-backed implementation.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass

import numpy as np
import librosa
import soundfile as sf

from ..config.settings import Settings
from ..utils.exceptions import AudioDecodeError, ValidationError
from ..utils.validators import validate_audio_file
from ..utils.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True, eq=False)
class DecodedAudio:
    """Mono PCM for one track."""
    samples: np.ndarray
    sample_rate: int
    duration_ms: int

    @classmethod
    def from_samples(cls, samples: np.ndarray, sample_rate: int) -> 'DecodedAudio':
        """Wrap a PCM buffer, deriving the duration from its length."""
        samples = np.asarray(samples, dtype=np.float32)
        n_samples = samples.shape[-1] if samples.ndim > 0 else 0
        duration_ms = int(round(n_samples * 1000.0 / sample_rate))
        return cls(samples=samples, sample_rate=int(sample_rate), duration_ms=duration_ms)


class AudioDecoder(ABC):
    """Capability interface for turning a media file into PCM."""

    @abstractmethod
    def probe_duration_ms(self, file_path: str) -> int:
        """
        Get the track duration without decoding the audio.

        Raises:
            AudioDecodeError: If the file cannot be read
        """
        pass

    @abstractmethod
    def decode(self, file_path: str) -> DecodedAudio:
        """
        Decode a file to mono PCM.

        Raises:
            AudioDecodeError: If decoding fails
        """
        pass


class LibrosaAudioDecoder(AudioDecoder):
    """Decoder backed by librosa/soundfile."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self.target_sr = settings.audio.sample_rate

    def probe_duration_ms(self, file_path: str) -> int:
        try:
            file_path = validate_audio_file(file_path)
        except ValidationError as e:
            raise AudioDecodeError(f"Cannot analyze this track: {e}")

        try:
            info = sf.info(file_path)
            return int(round(info.duration * 1000.0))
        except (sf.SoundFileError, RuntimeError):
            # Compressed formats soundfile cannot open go through audioread
            pass

        try:
            duration = librosa.get_duration(path=file_path)
        except Exception as e:
            raise AudioDecodeError(f"Cannot analyze this track: {e}")
        return int(round(duration * 1000.0))

    def decode(self, file_path: str) -> DecodedAudio:
        try:
            file_path = validate_audio_file(file_path)
        except ValidationError as e:
            raise AudioDecodeError(f"Cannot analyze this track: {e}")

        try:
            logger.info(f"Decoding audio file: {file_path}")
            audio, sr = librosa.load(file_path, sr=self.target_sr, mono=True)
        except Exception as e:
            logger.error(f"Decoding failed for {file_path}: {e}")
            raise AudioDecodeError(f"Cannot analyze this track: {e}")

        if audio.size == 0:
            raise AudioDecodeError("Cannot analyze this track: no audio data decoded")

        decoded = DecodedAudio.from_samples(audio, sr)
        logger.info(f"Decoded {audio.size} samples ({decoded.duration_ms / 1000.0:.1f}s, {sr}Hz)")
        return decoded

"""
Audio decoding and spectral analysis.
"""

from .decoder import AudioDecoder, DecodedAudio, LibrosaAudioDecoder
from .analyzer import SpectralAnalyzer, SpectrumFrame

__all__ = [
    "AudioDecoder",
    "DecodedAudio",
    "LibrosaAudioDecoder",
    "SpectralAnalyzer",
    "SpectrumFrame",
]

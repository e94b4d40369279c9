"""
Service that ties decoding, chart generation and the chart cache together.
"""

import threading
from typing import Optional

from ..audio.decoder import AudioDecoder, LibrosaAudioDecoder
from ..chart.cache import ChartCache, PlayStats
from ..chart.models import Chart, chart_fingerprint
from ..config.settings import Settings, get_settings
from ..gameplay.engine import GameplayEngine
from ..gameplay.models import ScoreReport
from ..utils.validators import validate_duration
from ..utils.logging import get_logger
from .chart_generator import ChartGenerator

logger = get_logger(__name__)


class ChartService:
    """
    Main entry point for loading playable charts.

    Charts come from the cache when present; otherwise the track is decoded
    and a chart generated once, even when several callers ask for the same
    track at the same time.
    """

    def __init__(self,
                 settings: Optional[Settings] = None,
                 decoder: Optional[AudioDecoder] = None,
                 cache: Optional[ChartCache] = None):
        """
        Initialize the chart service.

        Args:
            settings: Application settings (uses global settings if None)
            decoder: Audio decoder (librosa-backed if None)
            cache: Chart cache (built from settings if None)
        """
        self.settings = settings or get_settings()
        self.decoder = decoder or LibrosaAudioDecoder(self.settings)
        self.cache = cache or ChartCache(self.settings)
        self.generator = ChartGenerator(self.settings)

    def load_chart(self,
                   file_path: str,
                   track_id: str,
                   duration_ms: Optional[int] = None,
                   cancel_event: Optional[threading.Event] = None) -> Chart:
        """
        Get the chart for a track, generating and caching it on a miss.

        Args:
            file_path: Path to the track's audio file
            track_id: Identity of the track in the library
            duration_ms: Duration reported by the library (probed from the file if None)
            cancel_event: Set to stop waiting; generation stops once every caller for the track has cancelled

        Returns:
            The chart

        Raises:
            DurationExceededError: If the track is longer than the configured cap
            AudioDecodeError: If the file cannot be decoded
            GenerationCancelledError: If generation was cancelled
        """
        if duration_ms is None:
            duration_ms = self.decoder.probe_duration_ms(file_path)

        fingerprint = chart_fingerprint(track_id, duration_ms, self.settings.chart.generator_version)
        cached = self.cache.get(fingerprint)
        if cached is not None:
            logger.info(f"Chart cache hit for {track_id}")
            return cached

        duration_ms = validate_duration(duration_ms, self.settings.processing.duration_cap_ms)

        def generate(generation_cancel_event: threading.Event) -> Chart:
            logger.info(f"Generating chart for {track_id}")
            audio = self.decoder.decode(file_path)
            return self.generator.generate(audio, track_id, duration_ms, generation_cancel_event)

        return self.cache.get_or_create(fingerprint, generate, cancel_event)

    def new_session(self, chart: Chart) -> GameplayEngine:
        """Create a gameplay engine for a chart."""
        return GameplayEngine(chart, self.settings)

    def record_result(self, chart: Chart, report: ScoreReport) -> PlayStats:
        """Persist a finished session's result against its chart."""
        return self.cache.record_result(chart.fingerprint, report)

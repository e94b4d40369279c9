"""
Chart generation: analysis pass plus deterministic note assembly.
"""

import math
import random
import threading
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from ..audio.analyzer import SpectralAnalyzer
from ..audio.decoder import DecodedAudio
from ..chart.models import BONUS_KINDS, BonusKind, Chart, Note, chart_fingerprint
from ..config.settings import Settings
from ..config.constants import NUM_LANES
from ..utils.exceptions import GenerationCancelledError
from ..utils.validators import validate_duration
from ..utils.logging import get_logger, ProgressLogger
from .onset_detector import OnsetDetector, OnsetEvent
from .pitch_tracker import PitchContour, PitchTracker
from .tempo_estimator import BeatGrid, TempoEstimate, TempoEstimator

logger = get_logger(__name__)

# Frames analyzed between cancellation checks
CANCEL_CHECK_FRAMES = 256


@dataclass(frozen=True)
class AnalysisResult:
    """Everything the note assembly needs from the audio."""
    onsets: List[OnsetEvent]
    contour: PitchContour
    tempo: TempoEstimate


class ChartGenerator:
    """
    Turns decoded audio into an immutable Chart.

    The spectrum is computed once and streamed to the onset detector and
    the pitch tracker together. Given the same PCM, track id, duration and
    generator version the resulting chart is identical.
    """

    def __init__(self, settings: Settings):
        """
        Initialize the chart generator.

        Args:
            settings: Application settings
        """
        self.settings = settings
        self.analyzer = SpectralAnalyzer(settings)
        self.tempo_estimator = TempoEstimator(settings)
        self.max_notes = settings.chart.max_notes
        self.bonus_interval_range_sec = settings.chart.bonus_interval_range_sec
        self.bass_ratio_threshold = settings.chart.bass_ratio_threshold
        self.generator_version = settings.chart.generator_version

    @staticmethod
    def _check_cancelled(cancel_event: Optional[threading.Event]):
        if cancel_event is not None and cancel_event.is_set():
            raise GenerationCancelledError("Chart generation cancelled")

    def analyze(self, audio: DecodedAudio,
                cancel_event: Optional[threading.Event] = None) -> AnalysisResult:
        """
        Run spectral analysis, onset detection, pitch tracking and tempo estimation.

        Args:
            audio: Decoded mono PCM
            cancel_event: Set to abort the analysis

        Returns:
            Analysis result

        Raises:
            GenerationCancelledError: If cancel_event is set during analysis
        """
        sample_rate = audio.sample_rate
        onset_detector = OnsetDetector(self.settings, self.analyzer.band_bins(sample_rate))
        pitch_tracker = PitchTracker(self.settings, self.analyzer.fft_frequencies(sample_rate))

        for frame in self.analyzer.frames(audio.samples, sample_rate):
            if frame.index % CANCEL_CHECK_FRAMES == 0:
                self._check_cancelled(cancel_event)
            onset_detector.feed(frame)
            pitch_tracker.feed(frame)

        self._check_cancelled(cancel_event)
        onsets = onset_detector.finish()
        contour = pitch_tracker.finish()
        tempo = self.tempo_estimator.estimate(onsets)
        return AnalysisResult(onsets=onsets, contour=contour, tempo=tempo)

    def generate(self,
                 audio: DecodedAudio,
                 track_id: str,
                 duration_ms: Optional[int] = None,
                 cancel_event: Optional[threading.Event] = None) -> Chart:
        """
        Generate a chart for a decoded track.

        Args:
            audio: Decoded mono PCM
            track_id: Identity of the track
            duration_ms: Track duration reported by the library (defaults to the PCM length)
            cancel_event: Set to abort generation; nothing partial is returned

        Returns:
            The finished chart

        Raises:
            DurationExceededError: If the track is longer than the configured cap
            GenerationCancelledError: If cancel_event is set before completion
        """
        if duration_ms is None:
            duration_ms = audio.duration_ms
        duration_ms = validate_duration(duration_ms, self.settings.processing.duration_cap_ms)

        progress = ProgressLogger(logger, 3, f"Chart generation [{track_id}]")

        progress.step("Analyzing audio")
        analysis = self.analyze(audio, cancel_event)

        progress.step("Assembling notes")
        self._check_cancelled(cancel_event)
        chart = self.build_chart(
            track_id, duration_ms, analysis.onsets, analysis.tempo.grid, analysis.contour
        )

        progress.step(f"{chart.note_count} notes, {chart.formatted_bpm}")
        progress.complete()
        return chart

    def assign_lane(self, onset: OnsetEvent, contour: PitchContour) -> int:
        """
        Pick a lane for an onset.

        Bass-heavy onsets go to lanes 0-1 and treble-dominated ones to 3-4;
        anything else follows the pitch contour across all five lanes.
        """
        pitch = contour.value_at(onset.timestamp_ms)

        if onset.bass_ratio > self.bass_ratio_threshold:
            return 0 if pitch < 0.5 else 1

        if onset.treble_ratio > onset.bass_ratio and onset.treble_ratio > onset.mid_ratio:
            return 3 if pitch < 0.5 else 4

        return max(0, min(NUM_LANES - 1, int(pitch * NUM_LANES)))

    def _quantize_onsets(self, onsets: Sequence[OnsetEvent], grid: BeatGrid) -> Dict[int, OnsetEvent]:
        first_tick = grid.first_tick_at_or_after(0.0)
        occupied: Dict[int, OnsetEvent] = {}
        for onset in onsets:
            tick = max(first_tick, grid.tick_index(onset.timestamp_ms))
            existing = occupied.get(tick)
            if existing is None or onset.strength > existing.strength:
                occupied[tick] = onset
        return occupied

    def _place_bonus_notes(self,
                           fingerprint: str,
                           duration_ms: int,
                           grid: BeatGrid,
                           occupied_ticks) -> Dict[int, Tuple[int, BonusKind]]:
        rng = random.Random(int(fingerprint[:16], 16))
        low, high = self.bonus_interval_range_sec

        bonuses: Dict[int, Tuple[int, BonusKind]] = {}
        position_ms = rng.uniform(low, high) * 1000.0
        while position_ms < duration_ms:
            tick = grid.first_tick_at_or_after(position_ms)
            while tick in occupied_ticks or tick in bonuses:
                tick += 1
            if grid.tick_time(tick) >= duration_ms:
                break
            lane = rng.randrange(NUM_LANES)
            kind = rng.choice(BONUS_KINDS)
            bonuses[tick] = (lane, kind)
            position_ms += rng.uniform(low, high) * 1000.0
        return bonuses

    def _apply_note_cap(self,
                        normal: Dict[int, OnsetEvent],
                        bonuses: Dict[int, Tuple[int, BonusKind]]):
        total = len(normal) + len(bonuses)
        if total <= self.max_notes:
            return normal, bonuses

        if len(bonuses) >= self.max_notes:
            kept_bonus_ticks = sorted(bonuses)[:self.max_notes]
            logger.warning(f"Note cap {self.max_notes} leaves no room for regular notes")
            return {}, {tick: bonuses[tick] for tick in kept_bonus_ticks}

        # Weakest first; among equal strengths the later tick goes first
        keep = self.max_notes - len(bonuses)
        ranked = sorted(normal.items(), key=lambda item: (-item[1].strength, item[0]))
        logger.info(f"Pruned {len(normal) - keep} weak onsets to respect the {self.max_notes}-note cap")
        return dict(ranked[:keep]), bonuses

    def build_chart(self,
                    track_id: str,
                    duration_ms: int,
                    onsets: Sequence[OnsetEvent],
                    grid: BeatGrid,
                    contour: PitchContour) -> Chart:
        """
        Assemble a chart from analysis results.

        Args:
            track_id: Identity of the track
            duration_ms: Track duration
            onsets: Detected onsets
            grid: Beat grid to quantize to
            contour: Normalized pitch contour

        Returns:
            Immutable chart
        """
        fingerprint = chart_fingerprint(track_id, duration_ms, self.generator_version)

        normal = self._quantize_onsets(onsets, grid)
        if normal:
            bonuses = self._place_bonus_notes(fingerprint, duration_ms, grid, normal)
        else:
            bonuses = {}
        normal, bonuses = self._apply_note_cap(normal, bonuses)

        entries = []
        for tick, onset in normal.items():
            entries.append((tick, self.assign_lane(onset, contour), None))
        for tick, (lane, kind) in bonuses.items():
            entries.append((tick, lane, kind))
        entries.sort(key=lambda entry: entry[0])

        notes = tuple(
            Note(
                id=note_id,
                timestamp_ms=int(math.floor(grid.tick_time(tick) + 0.5)),
                lane=lane,
                bonus=kind,
            )
            for note_id, (tick, lane, kind) in enumerate(entries)
        )

        chart = Chart(
            fingerprint=fingerprint,
            bpm=grid.bpm,
            notes=notes,
            generator_version=self.generator_version,
            phase_offset_ms=grid.phase_offset_ms,
            duration_ms=int(duration_ms),
        )
        logger.info(f"Chart {fingerprint[:12]}: {chart.note_count} notes "
                    f"({chart.bonus_count} bonus), lanes: {list(chart.lane_counts())}")
        return chart

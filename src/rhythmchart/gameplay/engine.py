"""
Gameplay engine: judges lane presses against a chart and keeps score.
"""

import math
import random
import threading
from dataclasses import replace
from typing import Callable, Dict, List, Optional

from ..chart.models import BonusKind, Chart, Note
from ..config.settings import Settings, get_settings
from ..config.constants import NUM_LANES
from ..utils.exceptions import GameplayError
from ..utils.logging import get_logger
from .models import (
    GameplayState, HitJudgment, JudgmentCategory, PlayerInputEvent,
    ScoreReport, SessionStatus, TimingWindows,
)

logger = get_logger(__name__)

StateListener = Callable[[GameplayState], None]


class GameplayEngine:
    """
    Runs one play session of a chart.

    The engine never reads a clock: playback position arrives through
    ``update`` and through input event timestamps. Every mutation happens
    under a single lock, so each note resolves exactly once even when input
    and ticks arrive from different threads.
    """

    def __init__(self, chart: Chart, settings: Optional[Settings] = None):
        """
        Initialize the engine for a chart.

        Args:
            chart: Chart to play
            settings: Application settings (uses global settings if None)
        """
        self.chart = chart
        self.settings = settings or get_settings()
        self.config = self.settings.gameplay

        self._lock = threading.Lock()
        self._listeners: List[StateListener] = []
        self._rng = random.Random(chart.fingerprint)

        self._pending: List[List[Note]] = [[] for _ in range(NUM_LANES)]
        for note in chart.notes:
            self._pending[note.lane].append(note)
        self._judgments: List[HitJudgment] = []
        self._bonus_expires_ms: Optional[float] = None
        self._report: Optional[ScoreReport] = None

        self._state = GameplayState(notes_total=len(chart.notes))
        self._windows = self._scaled_windows(chart.bpm)

        logger.debug(f"Timing windows at {chart.bpm:.1f} BPM: perfect ±{self._windows.perfect_ms:.1f}ms, "
                     f"good ±{self._windows.good_ms:.1f}ms")

    def _scaled_windows(self, bpm: float) -> TimingWindows:
        if not math.isfinite(bpm) or bpm <= 0:
            bpm = self.config.reference_bpm
        scale = (bpm / self.config.reference_bpm) ** self.config.window_scaling_exponent
        return TimingWindows(
            perfect_ms=self.config.perfect_window_base_ms / scale,
            good_ms=self.config.good_window_base_ms / scale,
        )

    # Session lifecycle

    def start(self):
        """Begin the session."""
        with self._lock:
            if self._state.status is not SessionStatus.IDLE:
                raise GameplayError(f"Cannot start a session that is {self._state.status.value}")
            self._state.status = SessionStatus.PLAYING
            snapshot = self._snapshot()
        logger.info(f"Session started: {self._state.notes_total} notes")
        self._notify(snapshot)

    def pause(self):
        with self._lock:
            if self._state.status is not SessionStatus.PLAYING:
                raise GameplayError(f"Cannot pause a session that is {self._state.status.value}")
            self._state.status = SessionStatus.PAUSED
            snapshot = self._snapshot()
        self._notify(snapshot)

    def resume(self):
        with self._lock:
            if self._state.status is not SessionStatus.PAUSED:
                raise GameplayError(f"Cannot resume a session that is {self._state.status.value}")
            self._state.status = SessionStatus.PLAYING
            snapshot = self._snapshot()
        self._notify(snapshot)

    def stop(self) -> ScoreReport:
        """
        End the session. Notes not yet resolved count as misses.

        Returns:
            Final score report
        """
        with self._lock:
            if self._state.status is not SessionStatus.FINISHED:
                remaining = sorted(
                    (note for lane in self._pending for note in lane),
                    key=lambda note: note.timestamp_ms,
                )
                for note in remaining:
                    self._resolve_miss(note, self._state.position_ms - note.timestamp_ms)
                self._finish()
            report = self._report
            snapshot = self._snapshot()
        self._notify(snapshot)
        return report

    # Live queries

    @property
    def state(self) -> GameplayState:
        """Copy of the current state."""
        with self._lock:
            return self._snapshot()

    @property
    def report(self) -> Optional[ScoreReport]:
        """Final report, once the session has finished."""
        with self._lock:
            return self._report

    @property
    def judgments(self) -> List[HitJudgment]:
        with self._lock:
            return list(self._judgments)

    def timing_windows(self) -> TimingWindows:
        """Windows in effect right now (Note Magnet widens the good window)."""
        with self._lock:
            return self._current_windows()

    def upcoming_notes(self, position_ms: float) -> List[Note]:
        """Unresolved notes due within the look-ahead window of a position."""
        horizon = position_ms + self.config.lookahead_ms
        with self._lock:
            notes = [
                note for lane in self._pending for note in lane
                if note.timestamp_ms <= horizon
            ]
        return sorted(notes, key=lambda note: note.timestamp_ms)

    def add_listener(self, listener: StateListener):
        """Register a callback receiving a state copy after every change."""
        self._listeners.append(listener)

    # Input and clock

    def handle_input(self, event: PlayerInputEvent) -> Optional[HitJudgment]:
        """
        Judge a lane press.

        Args:
            event: Lane press with its playback timestamp

        Returns:
            The judgment, or None if no pending note was in range
        """
        if not 0 <= event.lane < NUM_LANES:
            logger.debug(f"Ignoring input on out-of-range lane {event.lane}")
            return None

        with self._lock:
            if self._state.status is not SessionStatus.PLAYING:
                return None

            self._advance(event.timestamp_ms)
            windows = self._current_windows()

            best: Optional[Note] = None
            for note in self._pending[event.lane]:
                delta = event.timestamp_ms - note.timestamp_ms
                if abs(delta) > windows.good_ms:
                    continue
                if best is None or abs(delta) < abs(event.timestamp_ms - best.timestamp_ms):
                    best = note

            judgment = None
            if best is not None:
                delta = event.timestamp_ms - best.timestamp_ms
                judgment = self._resolve_hit(best, windows.classify(delta), delta, event.timestamp_ms)
            self._check_finished()
            snapshot = self._snapshot()

        self._notify(snapshot)
        return judgment

    def update(self, position_ms: float) -> List[HitJudgment]:
        """
        Advance the session to a playback position.

        Applies Lightning Lane auto-hits, expires timed bonuses and misses
        notes whose good window has passed.

        Args:
            position_ms: Current playback position

        Returns:
            Judgments produced by this tick
        """
        with self._lock:
            if self._state.status is not SessionStatus.PLAYING:
                return []
            produced_from = len(self._judgments)
            self._advance(position_ms)
            self._check_finished()
            produced = self._judgments[produced_from:]
            snapshot = self._snapshot()

        self._notify(snapshot)
        return produced

    def force_activate_bonus(self, kind: BonusKind):
        """
        Activate a bonus without hitting a bonus note (debug builds only).

        Raises:
            GameplayError: If debug shortcuts are disabled
        """
        if not self.config.debug_shortcuts:
            raise GameplayError("Debug shortcuts are disabled")
        with self._lock:
            self._apply_bonus(kind, self._state.position_ms)
            snapshot = self._snapshot()
        logger.info(f"Force-activated {kind.value}")
        self._notify(snapshot)

    # Internals; callers hold the lock

    def _snapshot(self) -> GameplayState:
        return replace(self._state)

    def _notify(self, snapshot: GameplayState):
        for listener in list(self._listeners):
            listener(snapshot)

    def _current_windows(self) -> TimingWindows:
        if self._state.active_bonus is BonusKind.NOTE_MAGNET:
            return replace(self._windows, good_ms=self._windows.good_ms * self.config.note_magnet_window_scale)
        return self._windows

    def _advance(self, position_ms: float):
        state = self._state
        state.position_ms = max(state.position_ms, float(position_ms))
        position = state.position_ms

        if state.lightning_lane is not None:
            until = min(position, self._bonus_expires_ms)
            lane_notes = self._pending[state.lightning_lane]
            for note in [n for n in lane_notes if not n.is_bonus and n.timestamp_ms <= until]:
                self._resolve_hit(note, JudgmentCategory.PERFECT, 0.0, position, auto=True)

        if self._bonus_expires_ms is not None:
            if position >= self._bonus_expires_ms:
                logger.debug(f"{state.active_bonus.value} expired")
                self._clear_timed_bonus()
            else:
                state.bonus_remaining_ms = self._bonus_expires_ms - position

        good_ms = self._current_windows().good_ms
        overdue = [
            note for lane in self._pending for note in lane
            if position - note.timestamp_ms > good_ms
        ]
        for note in sorted(overdue, key=lambda note: note.timestamp_ms):
            self._resolve_miss(note, position - note.timestamp_ms)

    def _clear_timed_bonus(self):
        self._state.active_bonus = None
        self._state.bonus_remaining_ms = 0.0
        self._state.lightning_lane = None
        self._bonus_expires_ms = None

    def _resolve_hit(self, note: Note, category: JudgmentCategory, delta_ms: float,
                     position_ms: float, auto: bool = False) -> HitJudgment:
        state = self._state
        self._pending[note.lane].remove(note)

        state.score += self.config.points_per_hit * state.effective_multiplier
        state.combo += 1
        state.max_combo = max(state.max_combo, state.combo)
        state.notes_hit += 1
        if category is JudgmentCategory.PERFECT:
            state.perfect_hits += 1
        else:
            state.good_hits += 1

        if note.is_bonus:
            state.bonuses_collected += 1
            self._apply_bonus(note.bonus, position_ms)

        self._update_multiplier()

        judgment = HitJudgment(note_id=note.id, lane=note.lane, category=category,
                               delta_ms=float(delta_ms), auto=auto)
        self._judgments.append(judgment)
        return judgment

    def _resolve_miss(self, note: Note, delta_ms: float) -> HitJudgment:
        state = self._state
        self._pending[note.lane].remove(note)
        state.missed_notes += 1

        # Missed bonus notes leave combo and shields alone
        if not note.is_bonus:
            if state.shield_charges > 0:
                state.shield_charges -= 1
                logger.debug(f"Shield absorbed miss on note {note.id}, {state.shield_charges} left")
            else:
                state.combo = 0
                state.multiplier_boost_active = False
                self._update_multiplier()

        judgment = HitJudgment(note_id=note.id, lane=note.lane, category=JudgmentCategory.MISS,
                               delta_ms=float(delta_ms))
        self._judgments.append(judgment)
        return judgment

    def _update_multiplier(self):
        state = self._state
        if state.multiplier_boost_active:
            state.multiplier = self.config.max_multiplier
        else:
            state.multiplier = min(
                self.config.max_multiplier,
                1 + state.combo // self.config.combo_per_multiplier_step,
            )
        state.max_multiplier = max(state.max_multiplier, state.effective_multiplier)

    def _apply_bonus(self, kind: BonusKind, position_ms: float):
        """Apply a bonus effect. Timed bonuses replace whichever one is active."""
        state = self._state

        if kind is BonusKind.SHIELD:
            state.shield_charges = self.config.shield_charges
        elif kind is BonusKind.MULTIPLIER_BOOST:
            state.multiplier_boost_active = True
            self._update_multiplier()
        else:
            if kind is BonusKind.LIGHTNING_LANE:
                duration_ms = self.config.lightning_lane_duration_ms
            elif kind is BonusKind.DOUBLE_POINTS:
                duration_ms = self.config.double_points_duration_ms
            elif kind is BonusKind.NOTE_MAGNET:
                duration_ms = self.config.note_magnet_duration_ms
            else:
                raise GameplayError(f"Unknown bonus kind: {kind!r}")

            self._clear_timed_bonus()
            state.active_bonus = kind
            state.bonus_remaining_ms = float(duration_ms)
            self._bonus_expires_ms = position_ms + duration_ms
            if kind is BonusKind.LIGHTNING_LANE:
                state.lightning_lane = self._rng.randrange(NUM_LANES)
            self._update_multiplier()

        logger.info(f"Bonus activated: {kind.value}")

    def _check_finished(self):
        if self._state.notes_total and self._state.notes_resolved >= self._state.notes_total:
            self._finish()

    def _finish(self):
        self._state.status = SessionStatus.FINISHED
        self._clear_timed_bonus()
        self._report = ScoreReport.from_state(self._state)
        logger.info(f"Session finished: score {self._report.total_score}, "
                    f"accuracy {self._report.accuracy_display}, grade {self._report.grade}")

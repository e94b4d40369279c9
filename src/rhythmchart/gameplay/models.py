"""
Gameplay data models: input events, judgments, live state and the final report.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ..chart.models import BonusKind
from ..config.constants import GRADE_THRESHOLDS


class SessionStatus(Enum):
    """Lifecycle of a gameplay session."""
    IDLE = "idle"
    PLAYING = "playing"
    PAUSED = "paused"
    FINISHED = "finished"


class JudgmentCategory(Enum):
    PERFECT = "perfect"
    GOOD = "good"
    MISS = "miss"


@dataclass(frozen=True)
class PlayerInputEvent:
    """A lane press at a playback position."""
    timestamp_ms: float
    lane: int


@dataclass(frozen=True)
class HitJudgment:
    """Outcome for one note. ``auto`` marks Lightning Lane hits."""
    note_id: int
    lane: int
    category: JudgmentCategory
    delta_ms: float
    auto: bool = False

    @property
    def is_hit(self) -> bool:
        return self.category is not JudgmentCategory.MISS


@dataclass(frozen=True)
class TimingWindows:
    perfect_ms: float
    good_ms: float

    def classify(self, delta_ms: float) -> Optional[JudgmentCategory]:
        """
        Classify a press offset.

        Args:
            delta_ms: Press time minus note time

        Returns:
            PERFECT or GOOD, or None if outside the good window
        """
        abs_delta = abs(float(delta_ms))
        if abs_delta <= self.perfect_ms:
            return JudgmentCategory.PERFECT
        if abs_delta <= self.good_ms:
            return JudgmentCategory.GOOD
        return None


@dataclass
class GameplayState:
    """
    Live session state.

    Owned and mutated by the engine only; callers receive copies.
    """
    status: SessionStatus = SessionStatus.IDLE
    position_ms: float = 0.0
    score: int = 0
    combo: int = 0
    max_combo: int = 0
    multiplier: int = 1
    max_multiplier: int = 1
    active_bonus: Optional[BonusKind] = None
    bonus_remaining_ms: float = 0.0
    multiplier_boost_active: bool = False
    shield_charges: int = 0
    lightning_lane: Optional[int] = None
    notes_hit: int = 0
    notes_total: int = 0
    perfect_hits: int = 0
    good_hits: int = 0
    missed_notes: int = 0
    bonuses_collected: int = 0

    @property
    def effective_multiplier(self) -> int:
        if self.active_bonus is BonusKind.DOUBLE_POINTS:
            return self.multiplier * 2
        return self.multiplier

    @property
    def notes_resolved(self) -> int:
        return self.notes_hit + self.missed_notes


def grade_for_accuracy(accuracy_pct: Optional[float]) -> str:
    """Letter grade for an accuracy percentage ("N/A" when undefined)."""
    if accuracy_pct is None:
        return "N/A"
    for grade, minimum in GRADE_THRESHOLDS:
        if accuracy_pct >= minimum:
            return grade
    return "F"


@dataclass(frozen=True)
class ScoreReport:
    """Final, immutable result of a session."""
    total_score: int
    max_combo: int
    notes_hit: int
    notes_total: int
    accuracy_pct: Optional[float]
    bonuses_collected: int
    perfect_hits: int = 0
    good_hits: int = 0
    missed_notes: int = 0
    max_multiplier: int = 1

    @classmethod
    def from_state(cls, state: GameplayState) -> 'ScoreReport':
        if state.notes_total > 0:
            accuracy = 100.0 * state.notes_hit / state.notes_total
        else:
            accuracy = None
        return cls(
            total_score=state.score,
            max_combo=state.max_combo,
            notes_hit=state.notes_hit,
            notes_total=state.notes_total,
            accuracy_pct=accuracy,
            bonuses_collected=state.bonuses_collected,
            perfect_hits=state.perfect_hits,
            good_hits=state.good_hits,
            missed_notes=state.missed_notes,
            max_multiplier=state.max_multiplier,
        )

    @property
    def accuracy_display(self) -> str:
        if self.accuracy_pct is None:
            return "N/A"
        return f"{self.accuracy_pct:.1f}%"

    @property
    def grade(self) -> str:
        return grade_for_accuracy(self.accuracy_pct)

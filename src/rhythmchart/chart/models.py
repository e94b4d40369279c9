"""
Chart data model: notes, bonus kinds and the immutable chart.
"""

import hashlib
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple

from ..config.constants import NUM_LANES

NORMAL_KIND = "normal"


class BonusKind(Enum):
    """Power-ups carried by bonus notes."""
    LIGHTNING_LANE = "lightning_lane"
    SHIELD = "shield"
    DOUBLE_POINTS = "double_points"
    MULTIPLIER_BOOST = "multiplier_boost"
    NOTE_MAGNET = "note_magnet"


BONUS_KINDS: Tuple[BonusKind, ...] = tuple(BonusKind)


@dataclass(frozen=True)
class Note:
    """A single note; ``bonus`` is set for bonus notes."""
    id: int
    timestamp_ms: int
    lane: int
    bonus: Optional[BonusKind] = None

    def __post_init__(self):
        if not 0 <= self.lane < NUM_LANES:
            raise ValueError(f"Lane out of range: {self.lane}")

    @property
    def is_bonus(self) -> bool:
        return self.bonus is not None

    @property
    def kind(self) -> str:
        return self.bonus.value if self.bonus is not None else NORMAL_KIND


@dataclass(frozen=True)
class Chart:
    """
    A playable chart for one track.

    Notes are ordered by strictly increasing timestamp. Charts are created
    once per generation run and never mutated.
    """
    fingerprint: str
    bpm: float
    notes: Tuple[Note, ...] = field(default_factory=tuple)
    generator_version: str = ""
    phase_offset_ms: float = 0.0
    duration_ms: int = 0

    def __post_init__(self):
        object.__setattr__(self, 'notes', tuple(self.notes))

    @property
    def note_count(self) -> int:
        return len(self.notes)

    @property
    def bonus_count(self) -> int:
        return sum(1 for note in self.notes if note.is_bonus)

    def lane_counts(self) -> Tuple[int, ...]:
        counts = [0] * NUM_LANES
        for note in self.notes:
            counts[note.lane] += 1
        return tuple(counts)

    @property
    def formatted_duration(self) -> str:
        minutes = self.duration_ms // 60000
        seconds = (self.duration_ms % 60000) // 1000
        return f"{minutes}:{seconds:02d}"

    @property
    def formatted_bpm(self) -> str:
        return f"{round(self.bpm)} BPM"


def chart_fingerprint(track_id: str, duration_ms: int, generator_version: str) -> str:
    """Stable cache key for a track's chart."""
    key = f"{track_id}|{int(duration_ms)}|{generator_version}"
    return hashlib.sha256(key.encode("utf-8")).hexdigest()

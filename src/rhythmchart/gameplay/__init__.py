"""Gameplay session judging and scoring."""

from .models import (
    SessionStatus, JudgmentCategory, PlayerInputEvent, HitJudgment,
    TimingWindows, GameplayState, ScoreReport,
)
from .engine import GameplayEngine

__all__ = [
    'GameplayEngine',
    'SessionStatus',
    'JudgmentCategory',
    'PlayerInputEvent',
    'HitJudgment',
    'TimingWindows',
    'GameplayState',
    'ScoreReport',
]

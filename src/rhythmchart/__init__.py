"""
RhythmChart - Rhythm Chart Generation and Gameplay Scoring

Turns any audio track into a deterministic five-lane note chart using
onset detection, tempo estimation and pitch tracking, and judges a
player's lane presses against it.
"""

__version__ = "1.0.0"
__author__ = "RhythmChart Team"

from .core.chart_service import ChartService
from .gameplay.engine import GameplayEngine
from .config.settings import Settings

__all__ = [
    "ChartService",
    "GameplayEngine",
    "Settings",
]

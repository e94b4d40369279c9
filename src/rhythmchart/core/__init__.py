"""
Core analysis and chart generation components.
"""

from .onset_detector import OnsetDetector, OnsetEvent
from .tempo_estimator import BeatGrid, TempoEstimate, TempoEstimator
from .pitch_tracker import PitchContour, PitchTracker
from .chart_generator import ChartGenerator
from .chart_service import ChartService

__all__ = [
    "OnsetDetector",
    "OnsetEvent",
    "BeatGrid",
    "TempoEstimate",
    "TempoEstimator",
    "PitchContour",
    "PitchTracker",
    "ChartGenerator",
    "ChartService",
]

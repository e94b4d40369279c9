"""Chart model, persistence and cache."""

from .models import BonusKind, BONUS_KINDS, Note, Chart, chart_fingerprint
from .cache import ChartCache, PlayStats, AggregateStats

__all__ = [
    'BonusKind',
    'BONUS_KINDS',
    'Note',
    'Chart',
    'chart_fingerprint',
    'ChartCache',
    'PlayStats',
    'AggregateStats',
]

"""
Versioned JSON records for persisted charts.
"""

import json
import math
from typing import Any, Dict, Optional

from ..config.constants import CACHE_RECORD_VERSION, MAX_NOTES
from ..utils.exceptions import CorruptCacheEntryError
from .models import BonusKind, Chart, Note, NORMAL_KIND


def note_to_record(note: Note) -> Dict[str, Any]:
    return {
        'id': note.id,
        'timestampMs': note.timestamp_ms,
        'lane': note.lane,
        'kind': note.kind,
    }


def note_from_record(record: Dict[str, Any]) -> Note:
    kind = record['kind']
    bonus = None if kind == NORMAL_KIND else BonusKind(kind)
    return Note(
        id=int(record['id']),
        timestamp_ms=int(record['timestampMs']),
        lane=int(record['lane']),
        bonus=bonus,
    )


def chart_to_record(chart: Chart) -> Dict[str, Any]:
    """
    Convert a chart to its persisted record.

    Args:
        chart: Chart to convert

    Returns:
        JSON-serializable dictionary
    """
    return {
        'recordVersion': CACHE_RECORD_VERSION,
        'fingerprint': chart.fingerprint,
        'generatorVersion': chart.generator_version,
        'bpm': chart.bpm,
        'phaseOffsetMs': chart.phase_offset_ms,
        'durationMs': chart.duration_ms,
        'notes': [note_to_record(note) for note in chart.notes],
    }


def chart_from_record(record: Dict[str, Any], max_notes: Optional[int] = None) -> Chart:
    """
    Rebuild a chart from a persisted record.

    Args:
        record: Dictionary produced by chart_to_record
        max_notes: Largest acceptable note count (MAX_NOTES if None)

    Returns:
        Chart instance

    Raises:
        CorruptCacheEntryError: If the record is malformed or from another record version
    """
    if not isinstance(record, dict):
        raise CorruptCacheEntryError("Chart record is not an object")

    version = record.get('recordVersion')
    if version != CACHE_RECORD_VERSION:
        raise CorruptCacheEntryError(f"Unsupported chart record version: {version!r}")

    try:
        notes = tuple(note_from_record(n) for n in record['notes'])
        chart = Chart(
            fingerprint=str(record['fingerprint']),
            bpm=float(record['bpm']),
            notes=notes,
            generator_version=str(record['generatorVersion']),
            phase_offset_ms=float(record['phaseOffsetMs']),
            duration_ms=int(record.get('durationMs', 0)),
        )
    except (KeyError, TypeError, ValueError) as e:
        raise CorruptCacheEntryError(f"Malformed chart record: {e}")

    if not math.isfinite(chart.bpm) or chart.bpm <= 0:
        raise CorruptCacheEntryError(f"Invalid bpm in chart record: {chart.bpm}")
    if not math.isfinite(chart.phase_offset_ms):
        raise CorruptCacheEntryError(f"Invalid phase offset in chart record: {chart.phase_offset_ms}")

    if max_notes is None:
        max_notes = MAX_NOTES
    if chart.note_count > max_notes:
        raise CorruptCacheEntryError(f"Chart record has {chart.note_count} notes, more than {max_notes}")

    for previous, current in zip(chart.notes, chart.notes[1:]):
        if current.timestamp_ms <= previous.timestamp_ms:
            raise CorruptCacheEntryError("Chart record notes are not strictly increasing")

    return chart


def dumps(chart: Chart) -> str:
    return json.dumps(chart_to_record(chart), separators=(',', ':'))


def loads(text: str, max_notes: Optional[int] = None) -> Chart:
    try:
        record = json.loads(text)
    except ValueError as e:
        raise CorruptCacheEntryError(f"Invalid chart JSON: {e}")
    return chart_from_record(record, max_notes)

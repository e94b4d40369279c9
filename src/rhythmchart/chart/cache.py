"""
On-disk chart cache keyed by chart fingerprint.
"""

import json
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass, asdict, replace
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Dict, List, Optional

from ..config.constants import CANCEL_POLL_INTERVAL_SEC, GENERATION_WORKERS
from ..config.settings import Settings, get_settings
from ..utils.exceptions import CacheError, CorruptCacheEntryError, GenerationCancelledError
from ..utils.validators import validate_cache_directory
from ..utils.logging import get_logger
from . import serializer
from .models import Chart

if TYPE_CHECKING:
    from ..gameplay.models import ScoreReport

logger = get_logger(__name__)

CHART_SUFFIX = ".json"
STATS_SUFFIX = ".stats.json"
TEMP_SUFFIX = ".tmp"


@dataclass(frozen=True)
class PlayStats:
    """Play history for one chart."""
    fingerprint: str
    high_score: int = 0
    max_multiplier: int = 1
    play_count: int = 0
    notes_hit_total: int = 0
    best_accuracy_pct: Optional[float] = None


@dataclass(frozen=True)
class AggregateStats:
    """Play history across every cached chart."""
    charts_played: int = 0
    total_play_count: int = 0
    total_notes_hit: int = 0
    best_high_score: int = 0
    best_high_score_fingerprint: Optional[str] = None
    best_max_multiplier: int = 0


def _write_atomic(path: Path, text: str):
    temporary_path = path.with_name(path.name + TEMP_SUFFIX)
    temporary_path.write_text(text, encoding="utf-8")
    temporary_path.replace(path)


class _Generation:
    """A chart generation shared by every caller waiting on one fingerprint."""

    def __init__(self):
        self.cancel_event = threading.Event()
        self.waiters = 0
        self.future: Optional[Future] = None


class ChartCache:
    """
    Persistent chart store.

    Charts are kept as one JSON record per fingerprint plus an in-memory
    map. Unreadable records are evicted and reported as misses.
    ``get_or_create`` runs one generation job per fingerprint on a small
    worker pool; concurrent callers share its result.
    """

    def __init__(self, settings: Optional[Settings] = None, cache_dir: Optional[str] = None):
        """
        Initialize the chart cache.

        Args:
            settings: Application settings (uses global settings if None)
            cache_dir: Override for settings.cache.cache_dir
        """
        self.settings = settings or get_settings()
        self.cache_dir = validate_cache_directory(cache_dir or self.settings.cache.cache_dir)

        self._lock = threading.Lock()
        self._charts: Dict[str, Chart] = {}
        self._in_flight: Dict[str, _Generation] = {}
        self._executor = ThreadPoolExecutor(max_workers=GENERATION_WORKERS,
                                            thread_name_prefix="ChartGeneration")

    def _chart_path(self, fingerprint: str) -> Path:
        return self.cache_dir / f"{fingerprint}{CHART_SUFFIX}"

    def _stats_path(self, fingerprint: str) -> Path:
        return self.cache_dir / f"{fingerprint}{STATS_SUFFIX}"

    def _evict(self, fingerprint: str):
        with self._lock:
            self._charts.pop(fingerprint, None)
        try:
            self._chart_path(fingerprint).unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"Could not remove cache entry {fingerprint}: {e}")

    def get(self, fingerprint: str) -> Optional[Chart]:
        """
        Look up a chart.

        Args:
            fingerprint: Chart fingerprint

        Returns:
            The cached chart, or None on a miss
        """
        with self._lock:
            chart = self._charts.get(fingerprint)
        if chart is not None:
            return chart

        path = self._chart_path(fingerprint)
        if not path.exists():
            return None

        try:
            chart = serializer.loads(path.read_text(encoding="utf-8"), self.settings.chart.max_notes)
            if chart.fingerprint != fingerprint:
                raise CorruptCacheEntryError(
                    f"Record fingerprint {chart.fingerprint} does not match its key"
                )
        except (OSError, UnicodeDecodeError, CorruptCacheEntryError) as e:
            logger.warning(f"Evicting unreadable cache entry {fingerprint}: {e}")
            self._evict(fingerprint)
            return None

        with self._lock:
            self._charts[fingerprint] = chart
        return chart

    def put(self, fingerprint: str, chart: Chart):
        """
        Store a chart.

        Raises:
            CacheError: If the fingerprint does not match or the record cannot be written
        """
        if chart.fingerprint != fingerprint:
            raise CacheError(f"Chart fingerprint {chart.fingerprint} does not match key {fingerprint}")

        with self._lock:
            self._charts[fingerprint] = chart

        try:
            _write_atomic(self._chart_path(fingerprint), serializer.dumps(chart))
        except OSError as e:
            raise CacheError(f"Error saving chart {fingerprint}: {e}")
        logger.info(f"Cached chart {fingerprint[:12]} ({chart.note_count} notes)")

    def get_or_create(self,
                      fingerprint: str,
                      factory: Callable[[threading.Event], Chart],
                      cancel_event: Optional[threading.Event] = None) -> Chart:
        """
        Return the cached chart or build it with ``factory``.

        Concurrent calls for one fingerprint share a single generation job
        that runs on the cache's worker pool. Every caller receives the same
        chart, or the same exception if the factory fails. Nothing is cached
        when the factory fails.

        Setting ``cancel_event`` only releases the caller that owns it. The
        job itself is cancelled, through the event handed to ``factory``,
        once every waiting caller has cancelled.

        Args:
            fingerprint: Chart fingerprint
            factory: Callable producing the chart; receives the job's cancel event
            cancel_event: Set to stop waiting for the chart

        Returns:
            The chart for this fingerprint

        Raises:
            GenerationCancelledError: If cancel_event was set before the chart was ready
        """
        if cancel_event is not None and cancel_event.is_set():
            raise GenerationCancelledError("Chart generation cancelled")

        chart = self.get(fingerprint)
        if chart is not None:
            return chart

        with self._lock:
            generation = self._in_flight.get(fingerprint)
            if generation is None:
                generation = _Generation()
                self._in_flight[fingerprint] = generation
                generation.future = self._executor.submit(self._generate, fingerprint, generation, factory)
            else:
                logger.debug(f"Waiting for in-flight generation of {fingerprint[:12]}")
            generation.waiters += 1

        if cancel_event is None:
            return generation.future.result()

        while True:
            try:
                return generation.future.result(timeout=CANCEL_POLL_INTERVAL_SEC)
            except FutureTimeoutError:
                if cancel_event.is_set():
                    self._leave(fingerprint, generation)
                    raise GenerationCancelledError("Chart generation cancelled")

    def _generate(self, fingerprint: str, generation: _Generation,
                  factory: Callable[[threading.Event], Chart]) -> Chart:
        try:
            chart = self.get(fingerprint)
            if chart is None:
                chart = factory(generation.cancel_event)
                try:
                    self.put(fingerprint, chart)
                except CacheError as e:
                    logger.error(f"{e}; keeping chart in memory only")
            return chart
        finally:
            with self._lock:
                if self._in_flight.get(fingerprint) is generation:
                    del self._in_flight[fingerprint]

    def _leave(self, fingerprint: str, generation: _Generation):
        with self._lock:
            generation.waiters -= 1
            if generation.waiters > 0:
                return
            # Later callers start a fresh job instead of joining a cancelled one
            generation.cancel_event.set()
            if self._in_flight.get(fingerprint) is generation:
                del self._in_flight[fingerprint]
        logger.info(f"Cancelled generation of {fingerprint[:12]}")

    def delete(self, fingerprint: str):
        """Remove a chart and its play statistics."""
        self._evict(fingerprint)
        try:
            self._stats_path(fingerprint).unlink()
        except FileNotFoundError:
            pass
        logger.info(f"Deleted chart {fingerprint[:12]}")

    def _entries(self) -> List[Path]:
        return [
            path for path in self.cache_dir.iterdir()
            if path.is_file() and path.name.endswith((CHART_SUFFIX, CHART_SUFFIX + TEMP_SUFFIX))
        ]

    def clear(self):
        """Delete every cached chart and its statistics, leaving other files alone."""
        with self._lock:
            self._charts.clear()
            for path in self._entries():
                try:
                    path.unlink()
                except FileNotFoundError:
                    pass
        logger.info("Cleared all charts")

    def fingerprints(self) -> List[str]:
        """Fingerprints of every chart stored on disk."""
        return sorted(
            path.name[:-len(CHART_SUFFIX)]
            for path in self.cache_dir.glob(f"*{CHART_SUFFIX}")
            if not path.name.endswith(STATS_SUFFIX)
        )

    def storage_bytes(self) -> int:
        """Total size of the cached charts and statistics."""
        total = 0
        for path in self._entries():
            try:
                total += path.stat().st_size
            except FileNotFoundError:
                pass
        return total

    def get_stats(self, fingerprint: str) -> PlayStats:
        """Play statistics for a chart (zeros if it was never played)."""
        path = self._stats_path(fingerprint)
        if not path.exists():
            return PlayStats(fingerprint=fingerprint)
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            return PlayStats(**{**data, 'fingerprint': fingerprint})
        except (OSError, ValueError, TypeError) as e:
            logger.warning(f"Ignoring unreadable play stats for {fingerprint}: {e}")
            return PlayStats(fingerprint=fingerprint)

    def record_result(self, fingerprint: str, report: "ScoreReport") -> PlayStats:
        """
        Fold a finished session into the chart's play statistics.

        Args:
            fingerprint: Chart fingerprint
            report: Final score report of the session

        Returns:
            Updated statistics
        """
        with self._lock:
            stats = self.get_stats(fingerprint)
            best_accuracy = stats.best_accuracy_pct
            if report.accuracy_pct is not None:
                best_accuracy = max(best_accuracy or 0.0, report.accuracy_pct)

            updated = replace(
                stats,
                high_score=max(stats.high_score, report.total_score),
                max_multiplier=max(stats.max_multiplier, report.max_multiplier),
                play_count=stats.play_count + 1,
                notes_hit_total=stats.notes_hit_total + report.notes_hit,
                best_accuracy_pct=best_accuracy,
            )
            try:
                _write_atomic(self._stats_path(fingerprint), json.dumps(asdict(updated)))
            except OSError as e:
                raise CacheError(f"Error saving play stats for {fingerprint}: {e}")

        if report.total_score > stats.high_score:
            logger.info(f"New high score {report.total_score} on {fingerprint[:12]}")
        return updated

    def aggregate_stats(self) -> AggregateStats:
        """Combine play statistics of every chart on disk."""
        totals = AggregateStats()
        for fingerprint in self.fingerprints():
            stats = self.get_stats(fingerprint)
            if stats.play_count == 0:
                continue
            best_score = totals.best_high_score
            best_fingerprint = totals.best_high_score_fingerprint
            if stats.high_score > best_score:
                best_score = stats.high_score
                best_fingerprint = fingerprint
            totals = AggregateStats(
                charts_played=totals.charts_played + 1,
                total_play_count=totals.total_play_count + stats.play_count,
                total_notes_hit=totals.total_notes_hit + stats.notes_hit_total,
                best_high_score=best_score,
                best_high_score_fingerprint=best_fingerprint,
                best_max_multiplier=max(totals.best_max_multiplier, stats.max_multiplier),
            )
        return totals

"""
SearchService — the facade callers use (HTTP handlers, CLI, tests).

Owns the three live structures, the warmer, the reconciler and the two
periodic tasks.  The hot path (``process_search``) touches Redis only;
durable storage is written exclusively by the background reconciliation.

Read paths treat an unreadable live store as corrupted: both live keys
are purged and an empty result is returned instead of an exception.
"""
from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Any, Callable, List, Mapping, Optional, Sequence, Tuple, TypeVar

import redis

from src.config.constants import (
    COMPARE_LIMIT,
    DEFAULT_AUTOCOMPLETE_LIMIT,
    DEFAULT_POPULAR_LIMIT,
    DEFAULT_RECENT_LIMIT,
)
from src.config.settings import (
    DIRTY_RESYNC_INTERVAL_S,
    FULL_RESYNC_INTERVAL_S,
    FULL_RESYNC_TOP_N,
    RECENT_CAPACITY,
    WARM_TOP_K,
)
from src.livecache.dirty_keys import DirtyKeySet
from src.livecache.ranking_store import RankingStore
from src.livecache.recent_list import RecentList
from src.models.cache_io import (
    BulkLoadRequest,
    CacheStatus,
    PopularEntry,
    SearchStatistics,
    StoreComparison,
)
from src.persistence.gateway import PersistenceGateway
from src.reconcile.metrics import record_safe_purge
from src.reconcile.reconciler import Reconciler, ReconcileReport
from src.reconcile.scheduler import PeriodicTask
from src.reconcile.warmer import CacheWarmer

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SearchService:
    """Write-back search keyword cache."""

    def __init__(
        self,
        redis_client: Any,
        gateway: PersistenceGateway,
        *,
        recent_capacity: int = RECENT_CAPACITY,
        full_resync_top_n: int = FULL_RESYNC_TOP_N,
        full_interval: float = FULL_RESYNC_INTERVAL_S,
        dirty_interval: float = DIRTY_RESYNC_INTERVAL_S,
        warm_top_k: int = WARM_TOP_K,
    ) -> None:
        self.gateway = gateway
        self.ranking = RankingStore(redis_client)
        self.recent = RecentList(redis_client, capacity=recent_capacity)
        self.dirty = DirtyKeySet(redis_client)
        self.warmer = CacheWarmer(self.ranking, gateway)
        self.reconciler = Reconciler(self.ranking, self.dirty, gateway, top_n=full_resync_top_n)
        self.warm_top_k = warm_top_k

        self.full_task = PeriodicTask("full-resync", self.reconciler.full_resync, full_interval)
        self.dirty_task = PeriodicTask("dirty-resync", self.reconciler.dirty_resync, dirty_interval)

    # ==================================================================
    # Lifecycle
    # ==================================================================

    def start(self) -> int:
        """Warm the ranking, then start both reconciliation loops."""
        warmed = self.warmer.warm(self.warm_top_k)
        self.full_task.start()
        self.dirty_task.start()
        return warmed

    def stop(self, timeout: Optional[float] = None) -> None:
        self.full_task.stop(timeout)
        self.dirty_task.stop(timeout)

    # ==================================================================
    # Writes (hot path)
    # ==================================================================

    def process_search(self, term: Optional[str]) -> None:
        """Record one search. Blank input is ignored."""
        term = (term or "").strip()
        if not term:
            return
        self.ranking.increment(term, 1.0)
        self.recent.push_recent(term)
        self.dirty.mark_dirty(term)

    def process_search_bulk(self, increments: Mapping[str, float], recent: Sequence[str] = ()) -> None:
        """Apply many increments and recent pushes, marking every term dirty.

        Terms are normalized the same way as ``process_search`` and ``bulk_load``.
        """
        request = BulkLoadRequest(entries=dict(increments), recent=list(recent))
        for term, delta in request.entries.items():
            self.ranking.increment(term, delta)
        self.recent.push_many(request.recent)
        self.dirty.mark_dirty(request.entries.keys())

    # ==================================================================
    # Reads
    # ==================================================================

    def get_popular(self, n: int = DEFAULT_POPULAR_LIMIT) -> List[str]:
        return [term for term, _ in self.get_popular_with_scores(n)]

    def get_popular_with_scores(self, n: int = DEFAULT_POPULAR_LIMIT) -> List[Tuple[str, float]]:
        return self._guarded_read("popular", lambda: self.ranking.top_n(n), [])

    def get_recent(self, n: int = DEFAULT_RECENT_LIMIT) -> List[str]:
        return self._guarded_read("recent", lambda: self.recent.range(n), [])

    def get_status(self) -> CacheStatus:
        def _read() -> CacheStatus:
            popular_count = self.ranking.cardinality()
            return CacheStatus(
                popular=[PopularEntry(term=t, score=s) for t, s in self.ranking.top_n(popular_count)],
                recent=self.recent.range(self.recent.capacity),
                popular_count=popular_count,
                recent_count=self.recent.size(),
            )

        return self._guarded_read("status", _read, CacheStatus())

    def get_popular_from_durable(self, n: int = DEFAULT_POPULAR_LIMIT) -> List[str]:
        return [r.term for r in self.gateway.find_top_n_by_score_desc(n)]

    def get_recent_from_durable(self, n: int = DEFAULT_RECENT_LIMIT) -> List[str]:
        return [r.term for r in self.gateway.find_top_n_by_last_seen(n)]

    def autocomplete(self, prefix: str, limit: int = DEFAULT_AUTOCOMPLETE_LIMIT) -> List[str]:
        """Durable terms starting with *prefix*, most searched first."""
        prefix = (prefix or "").strip()
        if not prefix:
            return []
        return [r.term for r in self.gateway.find_by_prefix(prefix, limit)]

    def get_statistics(self) -> SearchStatistics:
        return SearchStatistics(
            total_keywords=self.gateway.count_all(),
            realtime_keyword_count=self._guarded_read("statistics", self.ranking.cardinality, 0),
            last_updated=datetime.now(timezone.utc),
        )

    def compare_live_vs_durable(self, n: int = COMPARE_LIMIT) -> StoreComparison:
        """Time the same top-*n* read against both stores."""
        start = time.perf_counter()
        live_result = self.get_popular(n)
        live_ms = (time.perf_counter() - start) * 1000

        start = time.perf_counter()
        durable_result = self.get_popular_from_durable(n)
        durable_ms = (time.perf_counter() - start) * 1000

        return StoreComparison(
            live_result=live_result,
            durable_result=durable_result,
            live_time_ms=round(live_ms, 3),
            durable_time_ms=round(durable_ms, 3),
            speedup=round(durable_ms / max(live_ms, 0.001), 2),
        )

    # ==================================================================
    # Administration
    # ==================================================================

    def clear_cache(self) -> None:
        """Drop the live ranking and recent list. Durable rows and dirty keys are untouched."""
        self.ranking.clear()
        self.recent.clear()
        logger.info("Live cache cleared")

    def bulk_load(
        self,
        entries: Mapping[str, float] | BulkLoadRequest,
        recent_seed: Sequence[str] = (),
    ) -> ReconcileReport:
        """
        Seed the live store and force a synchronous full resync.

        Durable storage reflects the seed (subject to the monotonic-max
        merge) by the time this returns.
        """
        request = entries if isinstance(entries, BulkLoadRequest) else BulkLoadRequest(
            entries=dict(entries), recent=list(recent_seed)
        )
        for term, delta in request.entries.items():
            self.ranking.increment(term, delta)
        self.recent.push_many(request.recent)
        logger.info(
            "Bulk load: %d ranking entries, %d recent terms; forcing full resync",
            len(request.entries), len(request.recent),
        )
        return self.reconciler.full_resync()

    def reset_all(self) -> None:
        """Bulk reset: empty the live store, the dirty set and durable storage."""
        self.clear_cache()
        self.dirty.drain_all()
        self.gateway.delete_all()
        logger.warning("All search keyword data reset")

    def full_resync(self) -> ReconcileReport:
        return self.reconciler.full_resync()

    def dirty_resync(self) -> ReconcileReport:
        return self.reconciler.dirty_resync()

    # ==================================================================
    # Safe-purge fallback
    # ==================================================================

    def _guarded_read(self, source: str, read: Callable[[], T], empty: T) -> T:
        try:
            return read()
        except redis.RedisError as exc:
            logger.error("Live store read failed (%s), purging: %s", source, exc)
            self._safe_purge(source)
            return empty

    def _safe_purge(self, source: str) -> None:
        record_safe_purge(source)
        try:
            self.ranking.clear()
            self.recent.clear()
        except redis.RedisError as exc:
            logger.warning("Safe purge could not delete live keys: %s", exc)

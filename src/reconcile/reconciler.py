"""
Reconciler — periodic write-back of the live ranking into durable storage.

Two strategies, each run on its own timer:

Full resync (monotonic-max)
    Take the top-N live entries and merge them into durable storage.  A row
    is created when missing and raised when the live score is higher; it is
    never lowered.  This protects durable counts from a restarted process
    that is briefly serving a cold, lower-valued cache.

Dirty resync (overwrite)
    Drain the dirty-key set and, for exactly those terms, overwrite the
    durable count with the term's *current* live score.  Between cycles the
    live ranking is the source of truth for dirty terms.  On a storage
    failure the drained keys are not re-marked; the next full resync that
    happens to include them is the backstop.

The two modes run on separate threads but never interleave: each cycle
holds the reconciler lock from its durable read to its write.

Neither method raises on storage or live-store failures: the error is
logged, counted, and returned in the ``ReconcileReport``.
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

import redis

from src.config.constants import MODE_DIRTY, MODE_FULL
from src.config.settings import FULL_RESYNC_TOP_N
from src.livecache.dirty_keys import DirtyKeySet
from src.livecache.ranking_store import RankingStore
from src.models.keyword_record import KeywordRecord
from src.persistence.gateway import PersistenceGateway, StorageError
from src.reconcile.metrics import (
    record_cycle,
    record_written,
    timed_reconcile,
    update_dirty_drained,
)

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ReconcileReport:
    """Outcome of one reconciliation cycle."""

    mode: str
    snapshot_size: int = 0
    created: int = 0
    updated: int = 0
    unchanged: int = 0
    skipped: int = 0
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def written(self) -> int:
        return self.created + self.updated

    def to_dict(self) -> dict:
        return {
            "mode": self.mode,
            "snapshot_size": self.snapshot_size,
            "created": self.created,
            "updated": self.updated,
            "unchanged": self.unchanged,
            "skipped": self.skipped,
            "error": self.error,
        }


class Reconciler:
    """Owns both write-back strategies; the only writer of durable records."""

    def __init__(
        self,
        ranking: RankingStore,
        dirty: DirtyKeySet,
        gateway: PersistenceGateway,
        top_n: int = FULL_RESYNC_TOP_N,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self.ranking = ranking
        self.dirty = dirty
        self.gateway = gateway
        self.top_n = top_n
        self._clock = clock
        # Held for a whole cycle of either mode: a full resync must not
        # overwrite a count the dirty resync wrote after its durable read.
        self._cycle_lock = threading.Lock()

    # ==================================================================
    # Full resync
    # ==================================================================

    def full_resync(self) -> ReconcileReport:
        report = ReconcileReport(mode=MODE_FULL)
        with timed_reconcile(MODE_FULL):
            try:
                with self._cycle_lock:
                    self._full_resync(report)
            except StorageError as exc:
                report.error = str(exc)
                logger.warning("Full resync abandoned, storage failure: %s", exc)
            except redis.RedisError as exc:
                report.error = f"live store: {exc}"
                logger.warning("Full resync abandoned, live store failure: %s", exc)

        self._finish(report)
        return report

    def _full_resync(self, report: ReconcileReport) -> None:
        snapshot = self.ranking.top_n(self.top_n)
        report.snapshot_size = len(snapshot)
        if not snapshot:
            return

        existing = self._existing_by_term([term for term, _ in snapshot])
        now = self._clock()
        to_save: List[KeywordRecord] = []

        for term, score in snapshot:
            live_count = int(score)
            record = existing.get(term)
            if record is None:
                to_save.append(
                    KeywordRecord(term=term, count=live_count, first_seen_at=now, last_seen_at=now)
                )
                report.created += 1
            elif live_count > record.count:
                record.count = live_count
                record.last_seen_at = now
                to_save.append(record)
                report.updated += 1
            else:
                report.unchanged += 1

        if to_save:
            self.gateway.upsert_all(to_save)

    # ==================================================================
    # Dirty resync
    # ==================================================================

    def dirty_resync(self) -> ReconcileReport:
        report = ReconcileReport(mode=MODE_DIRTY)
        with timed_reconcile(MODE_DIRTY):
            try:
                with self._cycle_lock:
                    self._dirty_resync(report)
            except StorageError as exc:
                report.error = str(exc)
                # Drained keys stay drained; full resync is the backstop.
                logger.warning(
                    "Dirty resync abandoned, %d drained keys not persisted: %s",
                    report.snapshot_size, exc,
                )
            except redis.RedisError as exc:
                report.error = f"live store: {exc}"
                logger.warning("Dirty resync abandoned, live store failure: %s", exc)

        self._finish(report)
        return report

    def _dirty_resync(self, report: ReconcileReport) -> None:
        drained = self.dirty.drain_all()
        report.snapshot_size = len(drained)
        update_dirty_drained(len(drained))
        if not drained:
            return

        terms = sorted(drained)
        existing = self._existing_by_term(terms)
        live_scores = self.ranking.scores_of(terms)
        now = self._clock()
        to_save: List[KeywordRecord] = []

        for term in terms:
            score = live_scores.get(term)
            if score is None:
                # Not in the live ranking any more (e.g. after clear_cache).
                report.skipped += 1
                continue
            record = existing.get(term)
            if record is None:
                to_save.append(
                    KeywordRecord(term=term, count=int(score), first_seen_at=now, last_seen_at=now)
                )
                report.created += 1
            else:
                record.count = int(score)
                record.last_seen_at = now
                if record.first_seen_at is None:
                    record.first_seen_at = now
                to_save.append(record)
                report.updated += 1

        if to_save:
            self.gateway.upsert_all(to_save)

    # ==================================================================
    # Helpers
    # ==================================================================

    def _existing_by_term(self, terms: List[str]) -> Dict[str, KeywordRecord]:
        return {r.term: r for r in self.gateway.find_by_terms(terms)}

    @staticmethod
    def _finish(report: ReconcileReport) -> None:
        if report.error is not None:
            record_cycle(report.mode, "failed")
            return
        if report.snapshot_size == 0:
            record_cycle(report.mode, "noop")
            return
        record_cycle(report.mode, "ok")
        record_written(report.mode, report.created, report.updated)
        logger.info(
            "%s resync: %d in snapshot, %d created, %d updated, %d unchanged, %d skipped",
            report.mode, report.snapshot_size, report.created,
            report.updated, report.unchanged, report.skipped,
        )

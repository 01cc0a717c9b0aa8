"""
Prometheus Metrics — write-back cache observability.

Exposes counters, histograms, and gauges for:
- Reconciliation cycles per mode and outcome
- Durable records written per mode (created / updated)
- Reconciliation latency per mode
- Dirty key backlog and warmed term count
- Safe-purge fallbacks on unreadable live data

Usage
-----
    from src.reconcile.metrics import record_cycle, timed_reconcile

    with timed_reconcile("full"):
        report = reconciler.full_resync()

    record_cycle("full", "ok")
"""
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Generator

from prometheus_client import Counter, Gauge, Histogram

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Metric definitions
# ---------------------------------------------------------------------------

# Reconciliation cycles, labelled by mode (full/dirty) and outcome.
RECONCILE_CYCLES: Counter = Counter(
    "search_cache_reconcile_cycles_total",
    "Reconciliation cycles by mode and outcome (ok / noop / failed)",
    ["mode", "outcome"],
)

# Durable rows written, labelled by mode and kind (created / updated).
RECORDS_WRITTEN: Counter = Counter(
    "search_cache_records_written_total",
    "Durable keyword records written by reconciliation",
    ["mode", "kind"],
)

# Wall-clock time per reconciliation cycle (seconds).
RECONCILE_LATENCY: Histogram = Histogram(
    "search_cache_reconcile_seconds",
    "Reconciliation cycle duration in seconds",
    ["mode"],
    buckets=(0.005, 0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0),
)

# Size of the last drained dirty-key snapshot.
DIRTY_KEYS: Gauge = Gauge(
    "search_cache_dirty_keys_drained",
    "Number of dirty keys taken by the last dirty resync",
)

# Terms loaded by the last cache warm.
WARMED_TERMS: Gauge = Gauge(
    "search_cache_warmed_terms",
    "Number of terms loaded into the live ranking by the last warm",
)

# Times an unreadable live store was purged.
SAFE_PURGES: Counter = Counter(
    "search_cache_safe_purges_total",
    "Live store purges triggered by read failures",
    ["source"],
)


# ---------------------------------------------------------------------------
# Convenience helpers
# ---------------------------------------------------------------------------

def record_cycle(mode: str, outcome: str) -> None:
    """Increment the cycle counter for *mode* / *outcome*."""
    RECONCILE_CYCLES.labels(mode=mode, outcome=outcome).inc()


def record_written(mode: str, created: int, updated: int) -> None:
    """Add the created/updated row counts of one cycle."""
    if created:
        RECORDS_WRITTEN.labels(mode=mode, kind="created").inc(created)
    if updated:
        RECORDS_WRITTEN.labels(mode=mode, kind="updated").inc(updated)


def update_dirty_drained(count: int) -> None:
    DIRTY_KEYS.set(count)


def update_warmed_terms(count: int) -> None:
    WARMED_TERMS.set(count)


def record_safe_purge(source: str) -> None:
    """Increment the safe-purge counter for the read path *source*."""
    SAFE_PURGES.labels(source=source).inc()


@contextmanager
def timed_reconcile(mode: str) -> Generator[None, None, None]:
    """
    Context manager that records reconciliation latency.

    Usage::

        with timed_reconcile("dirty"):
            reconciler.dirty_resync()
    """
    with RECONCILE_LATENCY.labels(mode=mode).time():
        yield

"""
Typed Pydantic models for the service boundary.

These are the contracts handed to whatever sits in front of the service
(an HTTP layer, a CLI).  Internally the cache works with plain tuples and
dicts; the facade converts at the edge.
"""
from __future__ import annotations

from datetime import datetime
from typing import Dict, List

from pydantic import BaseModel, Field, field_validator


# =============================================================================
# Read models
# =============================================================================


class PopularEntry(BaseModel):
    """One ranked term with its live score."""

    term: str
    score: float


class CacheStatus(BaseModel):
    """Snapshot of the live store, as returned by ``SearchService.get_status``."""

    popular: List[PopularEntry] = Field(default_factory=list)
    recent: List[str] = Field(default_factory=list)
    popular_count: int = 0
    recent_count: int = 0


class SearchStatistics(BaseModel):
    """Row count in durable storage next to the live ranking cardinality."""

    total_keywords: int
    realtime_keyword_count: int
    last_updated: datetime


class StoreComparison(BaseModel):
    """Side-by-side top-N read from the live store and from durable storage."""

    live_result: List[str]
    durable_result: List[str]
    live_time_ms: float
    durable_time_ms: float
    speedup: float = Field(..., description="durable_time / live_time, live time floored at 1µs.")


# =============================================================================
# Write models
# =============================================================================


class BulkLoadRequest(BaseModel):
    """
    Administrative seed for the live store.

    ``entries`` maps term → score delta; ``recent`` is pushed in order, so the
    last element ends up at the head of the recent list.
    """

    entries: Dict[str, float] = Field(default_factory=dict)
    recent: List[str] = Field(default_factory=list)

    @field_validator("entries")
    @classmethod
    def validate_entries(cls, v: Dict[str, float]) -> Dict[str, float]:
        cleaned: Dict[str, float] = {}
        for term, delta in v.items():
            key = term.strip()
            if not key:
                raise ValueError("entry terms must not be blank")
            if delta < 0:
                raise ValueError(f"entry '{key}' has negative delta {delta}; scores never decrease")
            cleaned[key] = cleaned.get(key, 0.0) + delta
        return cleaned

    @field_validator("recent")
    @classmethod
    def strip_recent(cls, v: List[str]) -> List[str]:
        return [t.strip() for t in v if t and t.strip()]

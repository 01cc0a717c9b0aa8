"""
Bounded, deduplicated most-recent-first term list.

Backed by a Redis list.  A push is three commands (LREM, LPUSH, LTRIM)
that must run as one unit; they are queued on a MULTI/EXEC pipeline so
two concurrent pushes can never interleave into a duplicate or an
over-long list.
"""
from __future__ import annotations

import logging
from typing import Any, Iterable, List, Optional

from src.config.constants import DEFAULT_RECENT_CAPACITY, RECENT_KEYWORDS_KEY

logger = logging.getLogger(__name__)


class RecentList:
    """Most-recent-first list of distinct terms, capped at *capacity*."""

    def __init__(
        self,
        redis_client: Any,
        capacity: int = DEFAULT_RECENT_CAPACITY,
        key: str = RECENT_KEYWORDS_KEY,
    ) -> None:
        if capacity <= 0:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self._redis = redis_client
        self.capacity = capacity
        self.key = key

    def push_recent(self, term: Optional[str]) -> None:
        """Move *term* to the head, dropping any older occurrence, then trim."""
        if term is None or not term.strip():
            return
        self.push_many([term])

    def push_many(self, terms: Iterable[str]) -> None:
        """Push *terms* in order inside a single transaction."""
        batch = [t for t in terms if t and t.strip()]
        if not batch:
            return
        pipe = self._redis.pipeline(transaction=True)
        for term in batch:
            pipe.lrem(self.key, 0, term)
            pipe.lpush(self.key, term)
        pipe.ltrim(self.key, 0, self.capacity - 1)
        pipe.execute()

    def range(self, n: int) -> List[str]:
        """Up to *n* terms, head first."""
        if n <= 0:
            return []
        return list(self._redis.lrange(self.key, 0, n - 1))

    def size(self) -> int:
        return int(self._redis.llen(self.key))

    def clear(self) -> None:
        self._redis.delete(self.key)

"""
Dirty key set: terms mutated since their last persisted reconciliation.

Drain semantics
---------------
``drain_all`` reads and deletes the set inside one MULTI/EXEC block.  Redis
executes the block atomically, so a concurrent SADD either runs before it
(and is part of the returned snapshot) or after it (and starts the next
generation of the set).  No mark is lost in between.
"""
from __future__ import annotations

import logging
from typing import Any, Iterable, Optional, Set, Union

from src.config.constants import DIRTY_KEYWORDS_KEY

logger = logging.getLogger(__name__)


class DirtyKeySet:
    """Set of terms awaiting a dirty resync."""

    def __init__(self, redis_client: Any, key: str = DIRTY_KEYWORDS_KEY) -> None:
        self._redis = redis_client
        self.key = key

    def mark_dirty(self, terms: Union[Optional[str], Iterable[str]]) -> int:
        """
        Add one term or an iterable of terms. Idempotent.

        Returns the number of non-blank terms sent.
        """
        if terms is None:
            return 0
        batch = [terms] if isinstance(terms, str) else list(terms)
        batch = [t for t in batch if t and t.strip()]
        if not batch:
            return 0
        self._redis.sadd(self.key, *batch)
        return len(batch)

    def drain_all(self) -> Set[str]:
        """Atomically take every dirty term and leave an empty set behind."""
        pipe = self._redis.pipeline(transaction=True)
        pipe.smembers(self.key)
        pipe.delete(self.key)
        members, _deleted = pipe.execute()
        drained = set(members or ())
        if drained:
            logger.debug("Drained %d dirty keys", len(drained))
        return drained

    def members(self) -> Set[str]:
        """Read-only peek; does not drain."""
        return set(self._redis.smembers(self.key) or ())

    def size(self) -> int:
        return int(self._redis.scard(self.key))

"""
RankingStore — live popularity ranking backed by a Redis sorted set.

Each term is a member of ``popular_keywords`` and its score is the running
search count.  ZINCRBY is atomic per member on the server, so concurrent
increments never lose updates.  Scores only ever go up: there is no
decrement operation.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from src.config.constants import POPULAR_KEYWORDS_KEY

logger = logging.getLogger(__name__)


def _is_blank(term: Optional[str]) -> bool:
    return term is None or not term.strip()


class RankingStore:
    """Term → score ranking with atomic increment and top-N reads."""

    def __init__(self, redis_client: Any, key: str = POPULAR_KEYWORDS_KEY) -> None:
        self._redis = redis_client
        self.key = key

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def increment(self, term: Optional[str], delta: float = 1.0) -> None:
        """Add *delta* to *term*'s score. Blank terms are ignored."""
        if _is_blank(term):
            return
        self._redis.zincrby(self.key, delta, term)

    def set_score(self, term: Optional[str], score: float) -> None:
        """Overwrite *term*'s score (no accumulation)."""
        if _is_blank(term):
            return
        self._redis.zadd(self.key, {term: score})

    def set_scores(self, scores: Mapping[str, float]) -> int:
        """Overwrite many scores in one ZADD. Returns how many were sent."""
        mapping = {t: float(s) for t, s in scores.items() if not _is_blank(t)}
        if not mapping:
            return 0
        self._redis.zadd(self.key, mapping)
        return len(mapping)

    def clear(self) -> None:
        self._redis.delete(self.key)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def top_n(self, n: int) -> List[Tuple[str, float]]:
        """
        Snapshot of the *n* highest-scored terms, descending.

        Equal scores come back in the server's member order, which is stable
        for a given set of members.
        """
        if n <= 0:
            return []
        rows = self._redis.zrevrange(self.key, 0, n - 1, withscores=True)
        return [(term, float(score)) for term, score in rows]

    def score_of(self, term: str) -> Optional[float]:
        score = self._redis.zscore(self.key, term)
        return float(score) if score is not None else None

    def scores_of(self, terms: Iterable[str]) -> Dict[str, Optional[float]]:
        """Current scores for *terms* in one round trip (None where absent)."""
        ordered = list(terms)
        if not ordered:
            return {}
        scores = self._redis.zmscore(self.key, ordered)
        return {
            term: (float(score) if score is not None else None)
            for term, score in zip(ordered, scores)
        }

    def cardinality(self) -> int:
        return int(self._redis.zcard(self.key))

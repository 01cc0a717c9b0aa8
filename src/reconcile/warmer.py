"""
Cache warming: load the durable top-K into the live ranking at startup.

Scores are *set*, not incremented, so warming twice against an unchanged
database leaves the ranking exactly as one warm would.
"""
import logging

import redis

from src.config.settings import WARM_TOP_K
from src.livecache.ranking_store import RankingStore
from src.persistence.gateway import PersistenceGateway, StorageError
from src.reconcile.metrics import update_warmed_terms

logger = logging.getLogger(__name__)


class CacheWarmer:
    def __init__(self, ranking: RankingStore, gateway: PersistenceGateway) -> None:
        self.ranking = ranking
        self.gateway = gateway

    def warm(self, top_k: int = WARM_TOP_K) -> int:
        """
        Copy the *top_k* most-searched durable records into the ranking.

        Never raises: a failure is logged and the process starts with
        whatever was loaded (possibly nothing).

        Returns:
            Number of terms written to the live ranking.
        """
        logger.info("Cache warming: loading top %d keywords from durable storage", top_k)
        try:
            records = self.gateway.find_top_n_by_score_desc(top_k)
        except StorageError as exc:
            logger.error("Cache warming failed reading durable storage: %s", exc)
            update_warmed_terms(0)
            return 0

        if not records:
            logger.info("Cache warming: durable storage is empty, nothing to load")
            update_warmed_terms(0)
            return 0

        try:
            loaded = self.ranking.set_scores({r.term: float(r.count) for r in records})
        except redis.RedisError as exc:
            logger.error("Cache warming failed writing live ranking: %s", exc)
            update_warmed_terms(0)
            return 0

        update_warmed_terms(loaded)
        logger.info("Cache warming complete: %d keywords loaded", loaded)
        return loaded

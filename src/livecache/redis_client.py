"""
Redis client factory for the live store.

Every live structure (ranking, recent list, dirty set) shares one client;
redis-py clients are thread-safe and pool their connections.
"""
from __future__ import annotations

import logging
from typing import Optional

import redis

from src.config.settings import REDIS_URL

logger = logging.getLogger(__name__)


def build_redis_client(url: Optional[str] = None) -> redis.Redis:
    """
    Build and return a redis.Redis client.

    Falls back to REDIS_URL from settings if *url* is not provided.
    Responses are decoded to ``str`` so terms round-trip unchanged.
    """
    target_url = url or REDIS_URL
    client = redis.Redis.from_url(target_url, decode_responses=True)
    logger.debug("Redis client created for URL: %s", target_url)
    return client


def ping(client: redis.Redis) -> bool:
    """Return True if the server answers PING, logging instead of raising."""
    try:
        return bool(client.ping())
    except redis.RedisError as exc:
        logger.warning("Redis ping failed: %s", exc)
        return False

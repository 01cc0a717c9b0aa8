"""
Shared test fixtures for the search cache test suite.

No Redis server or database server is needed: live structures run against
``InMemoryRedis`` and the gateway against an in-memory SQLite engine.
"""
from __future__ import annotations

import threading
from datetime import datetime, timezone

import pytest
import redis

from src.livecache.dirty_keys import DirtyKeySet
from src.livecache.ranking_store import RankingStore
from src.livecache.recent_list import RecentList
from src.models.keyword_record import KeywordRecord
from src.persistence.gateway import SqlAlchemyGateway, StorageError, build_engine
from src.reconcile.reconciler import Reconciler
from src.reconcile.warmer import CacheWarmer
from src.service.search_service import SearchService


# ==========================================================================
# In-memory Redis
# ==========================================================================

class _Pipeline:
    """Queues commands and runs them under the owner's lock on execute()."""

    def __init__(self, owner: "InMemoryRedis") -> None:
        self._owner = owner
        self._calls: list = []

    def __getattr__(self, name: str):
        target = getattr(self._owner, name)

        def _queue(*args, **kwargs):
            self._calls.append((target, args, kwargs))
            return self

        return _queue

    def execute(self) -> list:
        with self._owner._lock:
            results = [fn(*a, **kw) for fn, a, kw in self._calls]
        self._calls = []
        return results


class InMemoryRedis:
    """
    Minimal thread-safe Redis stand-in (sorted sets, lists, sets).

    Every command holds one re-entrant lock, and MULTI/EXEC pipelines run
    their queued commands under the same lock, mirroring server atomicity.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._zsets: dict = {}
        self._lists: dict = {}
        self._sets: dict = {}

    def ping(self) -> bool:
        return True

    def pipeline(self, transaction: bool = True) -> _Pipeline:  # noqa: ARG002
        return _Pipeline(self)

    def delete(self, *keys: str) -> int:
        with self._lock:
            deleted = 0
            for key in keys:
                for store in (self._zsets, self._lists, self._sets):
                    if store.pop(key, None) is not None:
                        deleted += 1
            return deleted

    def exists(self, *keys: str) -> int:
        with self._lock:
            return sum(1 for k in keys if k in self._zsets or k in self._lists or k in self._sets)

    # --- sorted sets ---

    def zincrby(self, key: str, amount: float, member: str) -> float:
        with self._lock:
            zset = self._zsets.setdefault(key, {})
            zset[member] = zset.get(member, 0.0) + float(amount)
            return zset[member]

    def zadd(self, key: str, mapping: dict) -> int:
        with self._lock:
            zset = self._zsets.setdefault(key, {})
            added = sum(1 for m in mapping if m not in zset)
            for member, score in mapping.items():
                zset[member] = float(score)
            return added

    def zrevrange(self, key: str, start: int, end: int, withscores: bool = False):
        with self._lock:
            items = sorted(self._zsets.get(key, {}).items(), key=lambda kv: (kv[1], kv[0]), reverse=True)
            items = items[start:] if end == -1 else items[start:end + 1]
            return list(items) if withscores else [m for m, _ in items]

    def zscore(self, key: str, member: str):
        with self._lock:
            return self._zsets.get(key, {}).get(member)

    def zmscore(self, key: str, members: list) -> list:
        with self._lock:
            zset = self._zsets.get(key, {})
            return [zset.get(m) for m in members]

    def zcard(self, key: str) -> int:
        with self._lock:
            return len(self._zsets.get(key, {}))

    # --- lists ---

    def lrem(self, key: str, count: int, value: str) -> int:  # noqa: ARG002
        with self._lock:
            lst = self._lists.get(key, [])
            before = len(lst)
            lst[:] = [v for v in lst if v != value]
            return before - len(lst)

    def lpush(self, key: str, *values: str) -> int:
        with self._lock:
            lst = self._lists.setdefault(key, [])
            for value in values:
                lst.insert(0, value)
            return len(lst)

    def ltrim(self, key: str, start: int, end: int) -> bool:
        with self._lock:
            lst = self._lists.get(key, [])
            lst[:] = lst[start:] if end == -1 else lst[start:end + 1]
            if not lst:
                self._lists.pop(key, None)
            return True

    def lrange(self, key: str, start: int, end: int) -> list:
        with self._lock:
            lst = self._lists.get(key, [])
            return list(lst[start:] if end == -1 else lst[start:end + 1])

    def llen(self, key: str) -> int:
        with self._lock:
            return len(self._lists.get(key, []))

    # --- sets ---

    def sadd(self, key: str, *members: str) -> int:
        with self._lock:
            s = self._sets.setdefault(key, set())
            added = len(set(members) - s)
            s.update(members)
            return added

    def smembers(self, key: str) -> set:
        with self._lock:
            return set(self._sets.get(key, set()))

    def scard(self, key: str) -> int:
        with self._lock:
            return len(self._sets.get(key, set()))


class BrokenRedis(InMemoryRedis):
    """Live store whose reads fail as if the keys held the wrong type."""

    def zrevrange(self, *args, **kwargs):
        raise redis.exceptions.ResponseError("WRONGTYPE Operation against a key holding the wrong kind of value")

    def lrange(self, *args, **kwargs):
        raise redis.exceptions.ResponseError("WRONGTYPE Operation against a key holding the wrong kind of value")

    def zcard(self, *args, **kwargs):
        raise redis.exceptions.ResponseError("WRONGTYPE Operation against a key holding the wrong kind of value")


class FailingGateway:
    """Gateway that fails every write, and every read when *fail_reads* is set."""

    def __init__(self, records=None, fail_reads: bool = False) -> None:
        self.records = list(records or [])
        self.fail_reads = fail_reads
        self.upsert_calls = 0

    def find_top_n_by_score_desc(self, n):
        if self.fail_reads:
            raise StorageError("find_top_n_by_score_desc", ConnectionError("database is down"))
        return self.records[:n]

    def find_by_terms(self, terms):
        if self.fail_reads:
            raise StorageError("find_by_terms", ConnectionError("database is down"))
        wanted = set(terms)
        return [r for r in self.records if r.term in wanted]

    def upsert_all(self, records):
        self.upsert_calls += 1
        raise StorageError("upsert_all", ConnectionError("database is down"))

    def count_all(self):
        return len(self.records)

    def delete_all(self):
        raise StorageError("delete_all", ConnectionError("database is down"))


# ==========================================================================
# Fixtures
# ==========================================================================

@pytest.fixture
def redis_stub():
    return InMemoryRedis()


@pytest.fixture
def broken_redis():
    return BrokenRedis()


@pytest.fixture
def gateway():
    return SqlAlchemyGateway(build_engine("sqlite://"))


@pytest.fixture
def ranking(redis_stub):
    return RankingStore(redis_stub)


@pytest.fixture
def recent(redis_stub):
    return RecentList(redis_stub)


@pytest.fixture
def dirty(redis_stub):
    return DirtyKeySet(redis_stub)


@pytest.fixture
def fixed_now():
    return datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def reconciler(ranking, dirty, gateway, fixed_now):
    return Reconciler(ranking, dirty, gateway, top_n=100, clock=lambda: fixed_now)


@pytest.fixture
def warmer(ranking, gateway):
    return CacheWarmer(ranking, gateway)


@pytest.fixture
def service(redis_stub, gateway):
    svc = SearchService(redis_stub, gateway, full_interval=0.05, dirty_interval=0.05)
    yield svc
    svc.stop(timeout=2)


@pytest.fixture
def seeded_gateway(gateway, fixed_now):
    gateway.upsert_all([
        KeywordRecord("apple", 50, fixed_now, fixed_now),
        KeywordRecord("banana", 30, fixed_now, fixed_now),
        KeywordRecord("cherry", 10, fixed_now, fixed_now),
    ])
    return gateway


@pytest.fixture
def failing_gateway():
    return FailingGateway()


@pytest.fixture
def unreadable_gateway():
    return FailingGateway(fail_reads=True)

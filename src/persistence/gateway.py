"""
PersistenceGateway — batch access to durable keyword counters.

The reconciliation engine only needs a handful of batched operations, so
the contract is a small Protocol.  ``SqlAlchemyGateway`` implements it on
any SQLAlchemy-supported database; every query is a single statement, and
every driver failure surfaces as ``StorageError``.
"""
from __future__ import annotations

import logging
import threading
from contextlib import nullcontext
from typing import Iterable, List, Optional, Protocol, Sequence

from sqlalchemy import create_engine, delete, func, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from src.config.settings import DATABASE_ECHO, DATABASE_URL
from src.models.keyword_record import KeywordRecord
from src.persistence.schema import Base, SearchKeywordRow

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Raised when durable storage cannot complete an operation."""

    def __init__(self, operation: str, cause: Optional[BaseException] = None) -> None:
        self.operation = operation
        self.cause = cause
        super().__init__(f"Storage operation '{operation}' failed: {cause}")


class PersistenceGateway(Protocol):
    """Operations the cache core requires of durable storage."""

    def find_top_n_by_score_desc(self, n: int) -> List[KeywordRecord]: ...

    def find_by_terms(self, terms: Iterable[str]) -> List[KeywordRecord]: ...

    def upsert_all(self, records: Sequence[KeywordRecord]) -> None: ...

    def count_all(self) -> int: ...

    def delete_all(self) -> None: ...


def _to_record(row: SearchKeywordRow) -> KeywordRecord:
    return KeywordRecord(
        term=row.keyword,
        count=int(row.search_count or 0),
        first_seen_at=row.first_searched_at,
        last_seen_at=row.last_searched_at,
    )


def build_engine(url: Optional[str] = None, echo: bool = DATABASE_ECHO) -> Engine:
    """
    Create an engine for *url* (defaults to DATABASE_URL).

    In-memory SQLite gets a single shared connection so every thread sees
    the same database.
    """
    target_url = url or DATABASE_URL
    if target_url in ("sqlite://", "sqlite:///:memory:"):
        return create_engine(
            target_url,
            echo=echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    if target_url.startswith("sqlite"):
        return create_engine(target_url, echo=echo, connect_args={"check_same_thread": False})
    return create_engine(target_url, echo=echo, pool_pre_ping=True)


class SqlAlchemyGateway:
    """PersistenceGateway over a SQLAlchemy engine."""

    def __init__(self, engine: Engine, create_schema: bool = True) -> None:
        self.engine = engine
        self._session_factory = sessionmaker(bind=engine, expire_on_commit=False)
        # SQLite allows a single writer; serialize sessions so the two
        # reconciliation loops do not trip over one shared connection.
        self._lock = threading.RLock() if engine.dialect.name == "sqlite" else None
        if create_schema:
            Base.metadata.create_all(engine)

    @classmethod
    def from_url(cls, url: Optional[str] = None) -> "SqlAlchemyGateway":
        return cls(build_engine(url))

    def _session(self) -> Session:
        return self._session_factory()

    def _guard(self):
        return self._lock if self._lock is not None else nullcontext()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def find_top_n_by_score_desc(self, n: int) -> List[KeywordRecord]:
        if n <= 0:
            return []
        stmt = (
            select(SearchKeywordRow)
            .order_by(SearchKeywordRow.search_count.desc(), SearchKeywordRow.keyword)
            .limit(n)
        )
        return self._select(stmt, "find_top_n_by_score_desc")

    def find_by_terms(self, terms: Iterable[str]) -> List[KeywordRecord]:
        wanted = sorted(set(terms))
        if not wanted:
            return []
        stmt = select(SearchKeywordRow).where(SearchKeywordRow.keyword.in_(wanted))
        return self._select(stmt, "find_by_terms")

    def find_by_prefix(self, prefix: str, limit: int) -> List[KeywordRecord]:
        """Terms starting with *prefix*, most searched first."""
        if limit <= 0:
            return []
        escaped = prefix.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
        stmt = (
            select(SearchKeywordRow)
            .where(SearchKeywordRow.keyword.like(f"{escaped}%", escape="\\"))
            .order_by(SearchKeywordRow.search_count.desc(), SearchKeywordRow.keyword)
            .limit(limit)
        )
        return self._select(stmt, "find_by_prefix")

    def find_top_n_by_last_seen(self, n: int) -> List[KeywordRecord]:
        if n <= 0:
            return []
        stmt = (
            select(SearchKeywordRow)
            .order_by(SearchKeywordRow.last_searched_at.desc(), SearchKeywordRow.keyword)
            .limit(n)
        )
        return self._select(stmt, "find_top_n_by_last_seen")

    def count_all(self) -> int:
        try:
            with self._guard(), self._session() as session:
                return int(session.scalar(select(func.count()).select_from(SearchKeywordRow)) or 0)
        except SQLAlchemyError as exc:
            raise StorageError("count_all", exc) from exc

    def _select(self, stmt, operation: str) -> List[KeywordRecord]:
        try:
            with self._guard(), self._session() as session:
                return [_to_record(row) for row in session.scalars(stmt)]
        except SQLAlchemyError as exc:
            raise StorageError(operation, exc) from exc

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def upsert_all(self, records: Sequence[KeywordRecord]) -> None:
        """
        Insert new terms and overwrite existing ones, in one transaction.

        Existing rows are fetched with one IN query; the caller is the only
        writer, so there is no insert race to guard against.
        """
        if not records:
            return
        by_term = {r.term: r for r in records}
        try:
            with self._guard(), self._session() as session, session.begin():
                existing = {
                    row.keyword: row
                    for row in session.scalars(
                        select(SearchKeywordRow).where(SearchKeywordRow.keyword.in_(list(by_term)))
                    )
                }
                for term, record in by_term.items():
                    row = existing.get(term)
                    if row is None:
                        row = SearchKeywordRow(keyword=term)
                        session.add(row)
                    row.search_count = record.count
                    row.first_searched_at = record.first_seen_at
                    row.last_searched_at = record.last_seen_at
        except SQLAlchemyError as exc:
            raise StorageError("upsert_all", exc) from exc
        logger.debug("Upserted %d keyword records", len(by_term))

    def delete_all(self) -> None:
        try:
            with self._guard(), self._session() as session, session.begin():
                session.execute(delete(SearchKeywordRow))
        except SQLAlchemyError as exc:
            raise StorageError("delete_all", exc) from exc
        logger.info("Deleted all durable keyword records")

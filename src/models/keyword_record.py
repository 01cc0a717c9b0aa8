"""
Durable row for one search term.

Owned by durable storage; the Reconciler is the only writer.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass
class KeywordRecord:
    """Persisted popularity counter for a single term."""

    term: str
    count: int = 0
    first_seen_at: Optional[datetime] = None
    last_seen_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "term": self.term,
            "count": self.count,
            "first_seen_at": self.first_seen_at.isoformat() if self.first_seen_at else None,
            "last_seen_at": self.last_seen_at.isoformat() if self.last_seen_at else None,
        }

    def __repr__(self) -> str:
        return f"KeywordRecord('{self.term}', count={self.count})"

"""
SQLAlchemy table definition for durable keyword counters.
"""
from sqlalchemy import BigInteger, Column, DateTime, Integer, String
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class SearchKeywordRow(Base):
    """One row per distinct search term."""

    __tablename__ = "search_keyword"

    id = Column(Integer, primary_key=True, autoincrement=True)
    keyword = Column(String(255), nullable=False, unique=True, index=True)
    search_count = Column(BigInteger, nullable=False, default=0, index=True)
    first_searched_at = Column(DateTime(timezone=True), nullable=True)
    last_searched_at = Column(DateTime(timezone=True), nullable=True, index=True)

    def __repr__(self) -> str:
        return f"SearchKeywordRow('{self.keyword}', {self.search_count})"

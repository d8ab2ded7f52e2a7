"""
Insight Models

- ItemInsight: structured analysis of a single post (table `insights`)
- EntityInsight: consolidated narrative per company (table `company_insights`)
"""
from datetime import datetime
from typing import Optional, List

from sqlalchemy import Integer, String, DateTime, Text, Index, JSON, func
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin


class ItemInsight(Base):
    """
    One analysis per processed post.

    post_id is not unique-constrained; uniqueness comes from
    the unprocessed-item filter and the repository's insert-or-ignore.
    company_ticker is NULL when no known company was recognised.
    """
    __tablename__ = "insights"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    post_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)

    summary: Mapped[str] = mapped_column(Text, nullable=False)
    implications_investor: Mapped[str] = mapped_column(Text, nullable=False)
    implications_company: Mapped[str] = mapped_column(Text, nullable=False)
    narratives: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)
    event_type: Mapped[str] = mapped_column(String(32), nullable=False)

    company_ticker: Mapped[Optional[str]] = mapped_column(String(16), nullable=True, index=True)

    created_at: Mapped[Optional[datetime]] = mapped_column(DateTime, default=func.now(), nullable=True)


class EntityInsight(Base, TimestampMixin):
    """
    Consolidated narrative for one company.

    Replaced wholesale on every aggregation pass for the ticker, never
    patched, so it always reflects the full current membership.
    """
    __tablename__ = "company_insights"

    company_ticker: Mapped[str] = mapped_column(String(16), primary_key=True)
    display_name: Mapped[str] = mapped_column(String(200), nullable=False)

    summary: Mapped[str] = mapped_column(Text, nullable=False)
    implications_investor: Mapped[str] = mapped_column(Text, nullable=False)
    implications_company: Mapped[str] = mapped_column(Text, nullable=False)
    narratives: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)
    event_types: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)

    related_post_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    latest_post_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    __table_args__ = (
        Index("idx_company_insights_latest", "latest_post_date"),
    )

"""
Post Model

Raw news items written by the external ingester. The pipeline only reads them.
"""
from datetime import datetime
from typing import Optional

from sqlalchemy import Integer, String, DateTime, Text, Index, func
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class Post(Base):
    """
    A short news/content item.

    `summary` holds the body text as delivered by the feed; `source` is the
    origin feed name (e.g. "minermag").
    """
    __tablename__ = "latest_posts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    title: Mapped[str] = mapped_column(Text, nullable=False, default="")
    summary: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    published_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    source: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    created_at: Mapped[Optional[datetime]] = mapped_column(DateTime, default=func.now(), nullable=True)

    __table_args__ = (
        Index("idx_latest_posts_source_published", "source", "published_date"),
    )

"""
System Models

Run history for pipeline passes.
"""
from datetime import datetime
from typing import Optional, List

from sqlalchemy import String, Integer, DateTime, Text, JSON
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class RunHistory(Base):
    """
    One row per pipeline pass, with counts and the per-item/per-entity
    failures that the pass recorded.
    """
    __tablename__ = "run_history"

    id: Mapped[str] = mapped_column(String(50), primary_key=True)

    # Timing
    started_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True, index=True)
    finished_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    trigger: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)  # 'schedule', 'manual', 'regenerate', 'cli'

    # Item stage
    items_found: Mapped[int] = mapped_column(Integer, default=0)
    items_ignored: Mapped[int] = mapped_column(Integer, default=0)
    items_unprocessed: Mapped[int] = mapped_column(Integer, default=0)
    items_inserted: Mapped[int] = mapped_column(Integer, default=0)
    items_failed: Mapped[int] = mapped_column(Integer, default=0)

    # Entity stage
    entities_updated: Mapped[int] = mapped_column(Integer, default=0)
    entities_failed: Mapped[int] = mapped_column(Integer, default=0)

    # Result
    errors: Mapped[Optional[List[dict]]] = mapped_column(JSON, nullable=True)
    summary: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)  # 'success', 'partial', 'failed'

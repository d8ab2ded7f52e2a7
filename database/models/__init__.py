"""
SQLAlchemy ORM Models

- Posts: source items written by the ingester (read-only here)
- Insights: per-post analyses and per-company narratives
- System: pipeline run history
"""

from .base import Base, TimestampMixin
from .posts import Post
from .insights import ItemInsight, EntityInsight
from .system import RunHistory

__all__ = [
    # Base
    "Base",
    "TimestampMixin",
    # Source
    "Post",
    # Insights
    "ItemInsight",
    "EntityInsight",
    # System
    "RunHistory",
]

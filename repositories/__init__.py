"""
SQLAlchemy-based Repositories

Usage:
    from repositories import PostRepository
    from database import get_session

    async with get_session() as session:
        repo = PostRepository(session)
        ids = await repo.list_ids(source="minermag")
"""

from .base import BaseRepository
from .posts import PostRepository
from .insights import ItemInsightRepository, EntityInsightRepository
from .run_history import RunHistoryRepository

__all__ = [
    "BaseRepository",
    "PostRepository",
    "ItemInsightRepository",
    "EntityInsightRepository",
    "RunHistoryRepository",
]

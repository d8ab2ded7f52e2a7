"""
Post Repository

Read access to source items. Writes belong to the external ingester;
`add` from the base class is only used by seed scripts and tests.
"""
from typing import Optional, List, Sequence

from sqlalchemy import select, func, desc

from database.models import Post
from .base import BaseRepository


class PostRepository(BaseRepository[Post]):
    """Repository for source posts."""

    model = Post

    async def list_ids(
        self,
        source: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[int]:
        """
        List post ids, newest first.

        Args:
            source: Only posts from this origin (case-insensitive)
            limit: Max ids returned
        """
        stmt = select(Post.id).order_by(
            desc(Post.published_date), desc(Post.id)
        )
        if source:
            stmt = stmt.where(func.lower(Post.source) == source.lower())
        if limit and limit > 0:
            stmt = stmt.limit(limit)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_by_ids(self, post_ids: List[int]) -> Sequence[Post]:
        """Posts for the given ids (any order)."""
        if not post_ids:
            return []
        stmt = select(Post).where(Post.id.in_(post_ids))
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def count_by_source(self, source: str) -> int:
        stmt = (
            select(func.count())
            .select_from(Post)
            .where(func.lower(Post.source) == source.lower())
        )
        result = await self.session.execute(stmt)
        return result.scalar_one()

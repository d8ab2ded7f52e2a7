"""
Insight Repositories

- ItemInsightRepository: append-only writes with insert-or-ignore per post
- EntityInsightRepository: full-record upsert keyed by company ticker
"""
from datetime import datetime
from typing import Optional, List, Sequence, Set

from sqlalchemy import select, desc
from sqlalchemy.dialects.sqlite import insert as sqlite_insert

from database.models import ItemInsight, EntityInsight
from .base import BaseRepository


class ItemInsightRepository(BaseRepository[ItemInsight]):
    """Repository for per-post insights."""

    model = ItemInsight

    async def list_processed_post_ids(self) -> Set[int]:
        """Every post id that already has an insight."""
        result = await self.session.execute(select(ItemInsight.post_id).distinct())
        return set(result.scalars().all())

    async def exists_for_post(self, post_id: int) -> bool:
        stmt = select(ItemInsight.id).where(ItemInsight.post_id == post_id).limit(1)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none() is not None

    async def insert_ignore(
        self,
        post_id: int,
        summary: str,
        implications_investor: str,
        implications_company: str,
        narratives: List[str],
        event_type: str,
        company_ticker: Optional[str],
    ) -> Optional[ItemInsight]:
        """
        Insert an insight unless one already exists for the post.

        Returns:
            The new row, or None if the post was already covered
            (e.g. a concurrent pass got there first).
        """
        if await self.exists_for_post(post_id):
            return None

        insight = ItemInsight(
            post_id=post_id,
            summary=summary,
            implications_investor=implications_investor,
            implications_company=implications_company,
            narratives=list(narratives),
            event_type=event_type,
            company_ticker=company_ticker,
            created_at=self.now(),
        )
        return await self.add(insight)

    async def get_by_post_id(self, post_id: int) -> Optional[ItemInsight]:
        stmt = (
            select(ItemInsight)
            .where(ItemInsight.post_id == post_id)
            .order_by(ItemInsight.id)
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_post_ids(self, post_ids: List[int]) -> Sequence[ItemInsight]:
        if not post_ids:
            return []
        stmt = select(ItemInsight).where(ItemInsight.post_id.in_(post_ids)).order_by(ItemInsight.id)
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def get_by_ticker(self, ticker: str) -> Sequence[ItemInsight]:
        """All insights for a company, oldest first."""
        stmt = (
            select(ItemInsight)
            .where(ItemInsight.company_ticker == ticker)
            .order_by(ItemInsight.id)
        )
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def list_tickers(self) -> List[str]:
        """Distinct non-null tickers in first-seen order."""
        stmt = (
            select(ItemInsight.company_ticker)
            .where(ItemInsight.company_ticker.is_not(None))
            .order_by(ItemInsight.id)
        )
        result = await self.session.execute(stmt)
        return list(dict.fromkeys(result.scalars().all()))


class EntityInsightRepository(BaseRepository[EntityInsight]):
    """Repository for per-company narratives."""

    model = EntityInsight

    async def upsert(
        self,
        company_ticker: str,
        display_name: str,
        summary: str,
        implications_investor: str,
        implications_company: str,
        narratives: List[str],
        event_types: List[str],
        related_post_count: int,
        latest_post_date: Optional[datetime],
    ) -> None:
        """
        Insert or fully replace the record for a ticker.

        Every column except created_at is overwritten on conflict, so
        retries and duplicate passes converge on the same row.
        """
        now = self.now()
        values = dict(
            company_ticker=company_ticker,
            display_name=display_name,
            summary=summary,
            implications_investor=implications_investor,
            implications_company=implications_company,
            narratives=list(narratives),
            event_types=list(event_types),
            related_post_count=related_post_count,
            latest_post_date=latest_post_date,
            updated_at=now,
        )
        stmt = sqlite_insert(EntityInsight).values(created_at=now, **values)
        stmt = stmt.on_conflict_do_update(
            index_elements=[EntityInsight.company_ticker],
            set_={k: stmt.excluded[k] for k in values if k != "company_ticker"},
        )
        await self.session.execute(stmt)
        # Drop any stale identity-map copy so a following get() reloads
        cached = await self.session.get(EntityInsight, company_ticker)
        if cached is not None:
            await self.session.refresh(cached)

    async def list_all(self, limit: int = 100, offset: int = 0) -> Sequence[EntityInsight]:
        """Companies ordered by most recent activity."""
        stmt = (
            select(EntityInsight)
            .order_by(desc(EntityInsight.latest_post_date), EntityInsight.company_ticker)
            .limit(limit)
            .offset(offset)
        )
        result = await self.session.execute(stmt)
        return result.scalars().all()

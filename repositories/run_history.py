"""
Run History Repository

Persists one summary row per pipeline pass.
"""
from datetime import datetime
from typing import Optional, Sequence, List

from sqlalchemy import select, desc

from database.models import RunHistory
from .base import BaseRepository


class RunHistoryRepository(BaseRepository[RunHistory]):
    """Repository for run history operations."""

    model = RunHistory

    async def get_latest(self) -> Optional[RunHistory]:
        """Get the most recent run."""
        stmt = (
            select(RunHistory)
            .order_by(desc(RunHistory.started_at))
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_recent(self, limit: int = 20) -> Sequence[RunHistory]:
        stmt = select(RunHistory).order_by(desc(RunHistory.started_at)).limit(limit)
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def create_run(
        self,
        run_id: str,
        started_at: datetime,
        finished_at: Optional[datetime] = None,
        trigger: Optional[str] = None,
        items_found: int = 0,
        items_ignored: int = 0,
        items_unprocessed: int = 0,
        items_inserted: int = 0,
        items_failed: int = 0,
        entities_updated: int = 0,
        entities_failed: int = 0,
        errors: Optional[List[dict]] = None,
        summary: Optional[str] = None,
        status: str = "success",
    ) -> RunHistory:
        """Create a run history record."""
        run = RunHistory(
            id=run_id or self.generate_id("run"),
            started_at=started_at,
            finished_at=finished_at,
            trigger=trigger,
            items_found=items_found,
            items_ignored=items_ignored,
            items_unprocessed=items_unprocessed,
            items_inserted=items_inserted,
            items_failed=items_failed,
            entities_updated=entities_updated,
            entities_failed=entities_failed,
            errors=errors or [],
            summary=summary,
            status=status,
        )
        return await self.add(run)

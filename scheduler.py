"""
Scheduler - Periodic and on-demand pipeline passes

Job Schedule:
1. Insight Pipeline: every PIPELINE_INTERVAL_HOURS (default 2h), first run on start

At most one pass runs at a time. A tick or manual trigger that arrives
while a pass is RUNNING is logged and dropped, never queued.

Usage:
    python scheduler.py                # Run scheduler daemon
    python scheduler.py --once         # Run one pass and exit
    python scheduler.py --once --limit 10
"""
import asyncio
import sys
from datetime import datetime
from typing import Awaitable, Callable, List, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from loguru import logger

from config import settings, ensure_directories
from constants import PipelineState
from database import get_session, init_engine, init_database_async, close_engine, run_migrations
from repositories import PostRepository, ItemInsightRepository, EntityInsightRepository

JOB_ID = "insight_pipeline"


class PipelineScheduler:
    """
    Owns the pipeline state machine: IDLE -> RUNNING -> IDLE, STOPPED on shutdown.

    The check-and-set of the state happens without an await in between,
    so two triggers on the same event loop can never both start a pass.
    """

    def __init__(
        self,
        pipeline_factory: Optional[Callable] = None,
        session_factory=get_session,
        interval_hours: Optional[float] = None,
    ):
        """
        Args:
            pipeline_factory: Zero-argument callable returning a Pipeline.
                Called lazily on the first pass, so the model client is only
                built when actually needed.
            session_factory: Callable returning an async session context manager
            interval_hours: Tick interval (default settings.PIPELINE_INTERVAL_HOURS)
        """
        self.scheduler = AsyncIOScheduler()
        self.session_factory = session_factory
        self.interval_hours = interval_hours or settings.PIPELINE_INTERVAL_HOURS
        self._pipeline_factory = pipeline_factory
        self._pipeline = None
        self.state = PipelineState.IDLE
        self._last_summary = None
        self._last_started_at: Optional[datetime] = None
        self._skipped_ticks = 0

    @property
    def pipeline(self):
        if self._pipeline is None:
            if self._pipeline_factory is None:
                from processor import Pipeline
                self._pipeline_factory = lambda: Pipeline(session_factory=self.session_factory)
            self._pipeline = self._pipeline_factory()
        return self._pipeline

    @property
    def is_running(self) -> bool:
        return self.state == PipelineState.RUNNING

    @property
    def last_summary(self):
        return self._last_summary

    def start(self, run_immediately: bool = True):
        """Register the interval job and start the scheduler (needs a running event loop)."""
        job_kwargs = {}
        if run_immediately:
            job_kwargs["next_run_time"] = datetime.now()

        self.scheduler.add_job(
            self._tick,
            IntervalTrigger(hours=self.interval_hours),
            id=JOB_ID,
            name="Insight Pipeline",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            **job_kwargs,
        )
        self.scheduler.start()
        if self.state == PipelineState.STOPPED:
            self.state = PipelineState.IDLE
        logger.info(f"Scheduler started: pipeline every {self.interval_hours:g}h")

    def stop(self):
        """Stop the timer. A pass already in flight runs to completion."""
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
        self.state = PipelineState.STOPPED
        logger.info("Scheduler stopped")

    async def _tick(self):
        await self.trigger(limit=settings.PIPELINE_BATCH_LIMIT, trigger="schedule")

    async def trigger(self, limit: Optional[int] = None, trigger: str = "manual"):
        """
        Start a pass unless one is already running.

        Returns:
            PassSummary, or None when the request was skipped
        """
        return await self._guarded(trigger, lambda: self.pipeline.run(limit=limit, trigger=trigger))

    async def regenerate(self, entity_ids: Optional[List[str]] = None):
        """Rebuild company records under the same overlap guard as a pass."""
        return await self._guarded(
            "regenerate", lambda: self.pipeline.regenerate_entities(entity_ids)
        )

    async def _guarded(self, label: str, run: Callable[[], Awaitable]):
        if self.state != PipelineState.IDLE:
            self._skipped_ticks += 1
            logger.warning(f"Pipeline {self.state.value}, skipping {label} trigger")
            return None

        self.state = PipelineState.RUNNING
        self._last_started_at = datetime.now()
        try:
            summary = await run()
            self._last_summary = summary
            return summary
        except Exception as e:
            logger.exception(f"Pipeline {label} run crashed: {e}")
            return None
        finally:
            if self.state == PipelineState.RUNNING:
                self.state = PipelineState.IDLE

    async def run_once(self, limit: Optional[int] = None):
        """Run a single pass outside the timer (CLI)."""
        return await self.trigger(limit=limit, trigger="cli")

    async def status(self) -> dict:
        """State, last pass and item/entity counts for the status endpoint."""
        async with self.session_factory() as session:
            total_items = await PostRepository(session).count()
            source_items = (
                await PostRepository(session).count_by_source(settings.PIPELINE_SOURCE)
                if settings.PIPELINE_SOURCE else total_items
            )
            processed_items = len(await ItemInsightRepository(session).list_processed_post_ids())
            entities = await EntityInsightRepository(session).count()

        next_run = None
        job = self.scheduler.get_job(JOB_ID) if self.scheduler.running else None
        if job is not None and job.next_run_time is not None:
            next_run = job.next_run_time.isoformat()

        return {
            "state": self.state.value,
            "interval_hours": self.interval_hours,
            "next_run": next_run,
            "last_started_at": self._last_started_at.isoformat() if self._last_started_at else None,
            "last_summary": self._last_summary.to_dict() if self._last_summary else None,
            "skipped_triggers": self._skipped_ticks,
            "total_items": total_items,
            "source_items": source_items,
            "processed_items": processed_items,
            "unprocessed_items": max(source_items - processed_items, 0),
            "entities": entities,
        }


async def _run_once(limit: Optional[int]) -> bool:
    await init_engine()
    await init_database_async()
    try:
        summary = await PipelineScheduler().run_once(limit=limit)
    finally:
        await close_engine()
    return summary is not None and summary.status.value != "failed"


async def _run_forever():
    await init_engine()
    await init_database_async()
    scheduler = PipelineScheduler()
    scheduler.start()
    try:
        await asyncio.Event().wait()
    finally:
        scheduler.stop()
        await close_engine()


def main():
    """Main entry point with CLI arguments."""
    import argparse

    from utils.logger import setup_logging

    parser = argparse.ArgumentParser(description="Narrative Pipeline Scheduler")
    parser.add_argument("--once", action="store_true", help="Run one pass and exit")
    parser.add_argument("--limit", type=int, default=None, help="Max posts to analyse in the pass")
    parser.add_argument("--migrate", action="store_true", help="Apply Alembic migrations and exit")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")

    args = parser.parse_args()

    ensure_directories()
    setup_logging(
        log_dir=settings.LOG_DIR,
        log_level="DEBUG" if args.verbose else settings.LOG_LEVEL,
        app_name="scheduler",
    )

    if args.migrate:
        run_migrations()
        return

    if args.once:
        ok = asyncio.run(_run_once(args.limit or settings.PIPELINE_BATCH_LIMIT))
        sys.exit(0 if ok else 1)

    try:
        asyncio.run(_run_forever())
    except KeyboardInterrupt:
        logger.info("Received shutdown signal")


if __name__ == "__main__":
    main()

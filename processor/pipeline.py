"""
Insight Pipeline - one pass from new posts to company records.

Pass Flow:
1. List post ids for the configured origin, newest first
2. Drop ids that already have an insight (fresh read, in-process filter)
3. Extract each remaining post; failures are isolated per post
4. Insert successful insights (insert-or-ignore, one session per post)
5. Aggregate every insight of each ticker touched in step 4
6. Synthesize and upsert one record per ticker
7. Save run history
"""
import asyncio
from datetime import datetime
from typing import Awaitable, Callable, List, Optional, Sequence

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError

from config import settings
from constants import FailureKind
from database import get_session
from llm import LLMClient, get_client, set_llm_context
from repositories import (
    PostRepository,
    ItemInsightRepository,
    EntityInsightRepository,
    RunHistoryRepository,
)
from .aggregator import EntityAggregator
from .extractor import StructuredExtractor
from .item_filter import filter_unprocessed
from .models import (
    EntityInsightData,
    ExtractionFailure,
    InsightMember,
    ItemInsightData,
    PassSummary,
    SourceItem,
    SynthesisFailure,
)
from .narrative_synthesizer import NarrativeSynthesizer
from .retry import RetryPolicy


class Pipeline:
    """
    Main pipeline orchestrator.

    All collaborators are injectable so a pass can run against an
    in-memory database and a fake model client.
    """

    def __init__(
        self,
        client: Optional[LLMClient] = None,
        session_factory=get_session,
        extractor: Optional[StructuredExtractor] = None,
        synthesizer: Optional[NarrativeSynthesizer] = None,
        aggregator: Optional[EntityAggregator] = None,
        source: Optional[str] = None,
        concurrency: Optional[int] = None,
        item_delay: Optional[float] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Args:
            client: Model client shared by extractor and synthesizer (default from settings)
            session_factory: Callable returning an async session context manager
            source: Origin filter (default settings.PIPELINE_SOURCE, empty = all origins)
            concurrency: Max posts extracted at once (default settings.EXTRACTION_CONCURRENCY)
            item_delay: Pause between posts when running sequentially
            sleep: Used for the item pause and for retry backoff
        """
        self.session_factory = session_factory
        self.source = settings.PIPELINE_SOURCE if source is None else source
        self.concurrency = max(1, concurrency or settings.EXTRACTION_CONCURRENCY)
        self.item_delay = settings.ITEM_DELAY_SECONDS if item_delay is None else item_delay
        self.sleep = sleep
        self.aggregator = aggregator or EntityAggregator()

        policy = RetryPolicy.from_settings()
        if extractor is None or synthesizer is None:
            client = client or get_client()
        self.extractor = extractor or StructuredExtractor(client, policy=policy, sleep=sleep)
        self.synthesizer = synthesizer or NarrativeSynthesizer(
            client, policy=policy, aggregator=self.aggregator, sleep=sleep
        )

    async def run(self, limit: Optional[int] = None, trigger: str = "manual") -> PassSummary:
        """
        Run a complete pass.

        Args:
            limit: Max posts extracted this pass (newest first); None = all
            trigger: Recorded in run history ("schedule", "manual", "cli")

        Returns:
            PassSummary; per-post and per-company failures are listed, never raised
        """
        started = datetime.now()
        run_id = f"run_{started.strftime('%Y%m%d_%H%M%S_%f')}"
        set_llm_context(task_type="item_analysis", run_id=run_id)
        summary = PassSummary(run_id=run_id, trigger=trigger, started_at=started)

        logger.info(f"=== Starting pipeline pass {run_id} ({trigger}) ===")

        try:
            items = await self._select_items(summary, limit)
            inserted = await self._extract_all(items, summary)

            tickers = list(dict.fromkeys(i.entity_id for i in inserted if i.entity_id))
            if tickers:
                set_llm_context(task_type="entity_synthesis")
                await self._synthesize_entities(tickers, summary)
            else:
                logger.info("No company touched by this pass, skipping synthesis")
        except Exception as e:
            # Listing or bookkeeping failed; the scheduler must keep running
            logger.exception(f"Pipeline pass {run_id} aborted: {e}")
            summary.error = str(e)

        await self._finish(summary)
        return summary

    async def regenerate_entities(
        self,
        entity_ids: Optional[Sequence[str]] = None,
        trigger: str = "regenerate",
    ) -> PassSummary:
        """
        Rebuild company records from every stored insight, without extracting.

        Args:
            entity_ids: Tickers to rebuild; None = every ticker with insights
        """
        started = datetime.now()
        run_id = f"regen_{started.strftime('%Y%m%d_%H%M%S_%f')}"
        set_llm_context(task_type="entity_synthesis", run_id=run_id)
        summary = PassSummary(run_id=run_id, trigger=trigger, started_at=started)

        try:
            if entity_ids is None:
                async with self.session_factory() as session:
                    entity_ids = await ItemInsightRepository(session).list_tickers()
            logger.info(f"Regenerating {len(entity_ids)} companies")
            await self._synthesize_entities(list(dict.fromkeys(entity_ids)), summary)
        except Exception as e:
            logger.exception(f"Regeneration {run_id} aborted: {e}")
            summary.error = str(e)

        await self._finish(summary)
        return summary

    # ============================================
    # Stages
    # ============================================

    async def _select_items(self, summary: PassSummary, limit: Optional[int]) -> List[SourceItem]:
        async with self.session_factory() as session:
            posts = PostRepository(session)
            summary.items_found = await posts.count()
            candidate_ids = await posts.list_ids(source=self.source or None)
            processed = await ItemInsightRepository(session).list_processed_post_ids()

            summary.items_ignored = summary.items_found - len(candidate_ids)
            pending = filter_unprocessed(candidate_ids, processed)
            if limit is not None and limit > 0:
                pending = pending[:limit]
            summary.items_unprocessed = len(pending)

            rows = {p.id: p for p in await posts.get_by_ids(pending)}
            items = [SourceItem.from_row(rows[i]) for i in pending if i in rows]

        logger.info(
            f"Found {summary.items_found} posts, {summary.items_ignored} from other sources, "
            f"{len(items)} to process"
        )
        return items

    async def _extract_all(self, items: List[SourceItem], summary: PassSummary) -> List[ItemInsightData]:
        inserted: List[ItemInsightData] = []
        if not items:
            return inserted

        if self.concurrency == 1:
            for i, item in enumerate(items):
                if i and self.item_delay:
                    await self.sleep(self.item_delay)
                logger.info(f"Analysing post {i + 1}/{len(items)}: {item.title[:60]}")
                stored = await self._process_item(item, summary)
                if stored is not None:
                    inserted.append(stored)
            return inserted

        semaphore = asyncio.Semaphore(self.concurrency)

        async def _bounded(item: SourceItem):
            async with semaphore:
                return await self._process_item(item, summary)

        # Every task settles before the pass returns
        results = await asyncio.gather(*(_bounded(item) for item in items), return_exceptions=True)
        for item, result in zip(items, results):
            if isinstance(result, Exception):
                logger.opt(exception=result).error(f"Post {item.id} failed: {result}")
                summary.item_failures.append(
                    ExtractionFailure(source_item_id=item.id, kind=FailureKind.UNEXPECTED, message=str(result))
                )
            elif isinstance(result, BaseException):
                raise result
            elif result is not None:
                inserted.append(result)
        return inserted

    async def _process_item(self, item: SourceItem, summary: PassSummary) -> Optional[ItemInsightData]:
        try:
            result = await self.extractor.extract(item)
        except Exception as e:
            logger.exception(f"Unexpected failure analysing post {item.id}: {e}")
            result = ExtractionFailure(source_item_id=item.id, kind=FailureKind.UNEXPECTED, message=str(e))

        if isinstance(result, ExtractionFailure):
            summary.item_failures.append(result)
            return None

        try:
            async with self.session_factory() as session:
                row = await ItemInsightRepository(session).insert_ignore(
                    post_id=result.source_item_id,
                    summary=result.summary,
                    implications_investor=result.investor_implications,
                    implications_company=result.company_implications,
                    narratives=list(result.narratives),
                    event_type=result.event_type.value,
                    company_ticker=result.entity_id,
                )
                stored = ItemInsightData.from_row(row) if row is not None else None
        except SQLAlchemyError as e:
            logger.error(f"Could not store insight for post {item.id}: {e}")
            summary.item_failures.append(
                ExtractionFailure(source_item_id=item.id, kind=FailureKind.STORAGE, message=str(e))
            )
            return None

        if stored is None:
            logger.info(f"Post {item.id} already has an insight, keeping the existing one")
            summary.duplicate_post_ids.append(item.id)
            return None

        summary.inserted_post_ids.append(item.id)
        if stored.entity_id is None:
            logger.info(f"Post {item.id} mentions no known company")
            summary.unassigned_post_ids.append(item.id)
        return stored

    async def _synthesize_entities(self, tickers: List[str], summary: PassSummary) -> None:
        for ticker in tickers:
            try:
                members = await self._load_members(ticker)
            except SQLAlchemyError as e:
                logger.error(f"Could not load insights for {ticker}: {e}")
                summary.entity_failures.append(
                    SynthesisFailure(entity_id=ticker, kind=FailureKind.STORAGE, message=str(e), attempts=0)
                )
                continue

            membership = self.aggregator.aggregate(members).get(ticker)
            try:
                result = await self.synthesizer.synthesize(ticker, members, membership)
            except Exception as e:
                logger.exception(f"Unexpected failure synthesizing {ticker}: {e}")
                result = SynthesisFailure(entity_id=ticker, kind=FailureKind.UNEXPECTED, message=str(e))

            if isinstance(result, SynthesisFailure):
                summary.entity_failures.append(result)
                continue

            try:
                await self._store_entity(result)
            except SQLAlchemyError as e:
                logger.error(f"Could not store company record for {ticker}: {e}")
                summary.entity_failures.append(
                    SynthesisFailure(entity_id=ticker, kind=FailureKind.STORAGE, message=str(e))
                )
                continue
            summary.entities_updated.append(ticker)

    async def _load_members(self, ticker: str) -> List[InsightMember]:
        """Every stored insight for the ticker, with its post's title and date."""
        async with self.session_factory() as session:
            rows = await ItemInsightRepository(session).get_by_ticker(ticker)
            posts = {p.id: p for p in await PostRepository(session).get_by_ids([r.post_id for r in rows])}
            members = []
            for row in rows:
                post = posts.get(row.post_id)
                members.append(
                    InsightMember(
                        insight=ItemInsightData.from_row(row),
                        title=post.title if post is not None else "",
                        published_at=post.published_date if post is not None else None,
                    )
                )
        return members

    async def _store_entity(self, insight: EntityInsightData) -> None:
        async with self.session_factory() as session:
            await EntityInsightRepository(session).upsert(
                company_ticker=insight.entity_id,
                display_name=insight.display_name,
                summary=insight.summary,
                implications_investor=insight.investor_implications,
                implications_company=insight.company_implications,
                narratives=insight.narratives,
                event_types=[e.value for e in insight.event_types],
                related_post_count=insight.related_item_count,
                latest_post_date=insight.latest_item_date,
            )

    async def _finish(self, summary: PassSummary) -> None:
        summary.finished_at = datetime.now()
        try:
            async with self.session_factory() as session:
                await RunHistoryRepository(session).create_run(
                    run_id=summary.run_id,
                    started_at=summary.started_at,
                    finished_at=summary.finished_at,
                    trigger=summary.trigger,
                    items_found=summary.items_found,
                    items_ignored=summary.items_ignored,
                    items_unprocessed=summary.items_unprocessed,
                    items_inserted=len(summary.inserted_post_ids),
                    items_failed=len(summary.item_failures),
                    entities_updated=len(summary.entities_updated),
                    entities_failed=len(summary.entity_failures),
                    errors=summary.errors,
                    summary=summary.describe(),
                    status=summary.status.value,
                )
        except SQLAlchemyError as e:
            logger.error(f"Could not save run history for {summary.run_id}: {e}")

        duration = (summary.finished_at - summary.started_at).total_seconds()
        logger.info(f"=== Pass {summary.run_id} {summary.status.value} in {duration:.1f}s: {summary.describe()} ===")


async def run_pipeline(limit: Optional[int] = None, trigger: str = "manual") -> PassSummary:
    """Convenience function to run one pass with default collaborators."""
    return await Pipeline().run(limit=limit, trigger=trigger)

"""End-to-end pipeline passes against an in-memory database and a fake model."""
import asyncio
from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import create_async_engine

from conftest import FakeLLMClient, entity_payload, item_payload, make_session_factory, seed_posts
from constants import EventType, FailureKind, RunStatus
from database.models import Base
from llm import LLMContentRejectedError, LLMTransientError
from processor import Pipeline
from processor.models import ItemInsightData, SourceItem
from repositories import EntityInsightRepository, ItemInsightRepository, RunHistoryRepository

POSTS = [
    {"id": 1, "title": "Marathon Digital expands capacity", "published_date": datetime(2024, 1, 1)},
    {"id": 2, "title": "Bitcoin difficulty hits record", "published_date": datetime(2024, 2, 1)},
    {"id": 3, "title": "MARA adds 5 EH/s in Texas", "published_date": datetime(2024, 3, 15)},
    {"id": 4, "title": "Riot Platforms buys land", "published_date": datetime(2024, 2, 10), "source": "other-feed"},
]


def make_pipeline(client, session_factory, sleep, **kwargs):
    kwargs.setdefault("source", "minermag")
    kwargs.setdefault("concurrency", 1)
    kwargs.setdefault("item_delay", 0)
    return Pipeline(client=client, session_factory=session_factory, sleep=sleep, **kwargs)


async def file_session_factory(tmp_path):
    # File database: concurrent sessions need their own connections
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'pipeline.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    return engine, make_session_factory(engine)


async def test_full_pass(session_factory, recording_sleep):
    await seed_posts(session_factory, POSTS)
    client = FakeLLMClient()

    summary = await make_pipeline(client, session_factory, recording_sleep).run()

    assert summary.status is RunStatus.SUCCESS
    assert summary.items_found == 4
    assert summary.items_ignored == 1
    assert summary.items_unprocessed == 3
    assert sorted(summary.inserted_post_ids) == [1, 2, 3]
    assert summary.unassigned_post_ids == [2]
    assert summary.entities_updated == ["MARA"]
    assert len(client.calls_of("ItemAnalysis")) == 3
    assert len(client.calls_of("EntitySynthesis")) == 1

    async with session_factory() as session:
        insights = ItemInsightRepository(session)
        assert (await insights.get_by_post_id(1)).company_ticker == "MARA"
        assert (await insights.get_by_post_id(2)).company_ticker is None
        assert await insights.get_by_post_id(4) is None

        mara = await EntityInsightRepository(session).get("MARA")
        assert mara.display_name == "Marathon Digital"
        assert mara.related_post_count == 2
        assert mara.latest_post_date == datetime(2024, 3, 15)
        assert len(mara.narratives) <= 6
        assert await EntityInsightRepository(session).count() == 1

        run = await RunHistoryRepository(session).get_latest()
        assert run.id == summary.run_id
        assert run.items_inserted == 3
        assert run.status == "success"


async def test_unassigned_posts_never_reach_synthesis(session_factory, recording_sleep):
    await seed_posts(session_factory, [{"id": 1, "title": "Hashprice slides to new low"}])
    client = FakeLLMClient()

    summary = await make_pipeline(client, session_factory, recording_sleep).run()

    assert summary.unassigned_post_ids == [1]
    assert summary.entities_updated == []
    assert client.calls_of("EntitySynthesis") == []
    async with session_factory() as session:
        assert await EntityInsightRepository(session).count() == 0


async def test_second_pass_does_nothing_new(session_factory, recording_sleep):
    await seed_posts(session_factory, POSTS)
    client = FakeLLMClient()
    pipeline = make_pipeline(client, session_factory, recording_sleep)

    await pipeline.run()
    calls_after_first = len(client.calls)
    second = await pipeline.run()

    assert len(client.calls) == calls_after_first
    assert second.items_unprocessed == 0
    assert second.inserted_post_ids == []
    assert second.status is RunStatus.SUCCESS


async def test_new_post_resynthesizes_with_full_membership(session_factory, recording_sleep):
    await seed_posts(session_factory, POSTS[:1])
    client = FakeLLMClient()
    pipeline = make_pipeline(client, session_factory, recording_sleep)
    await pipeline.run()

    await seed_posts(session_factory, [{"id": 5, "title": "Marathon Digital sells bitcoin", "published_date": datetime(2024, 4, 1)}])
    summary = await pipeline.run()

    assert summary.inserted_post_ids == [5]
    prompt = client.calls_of("EntitySynthesis")[-1]["prompt"]
    assert "Marathon Digital expands capacity" in prompt
    assert "Marathon Digital sells bitcoin" in prompt
    async with session_factory() as session:
        mara = await EntityInsightRepository(session).get("MARA")
        assert mara.related_post_count == 2
        assert mara.latest_post_date == datetime(2024, 4, 1)


async def test_item_failure_is_isolated_and_retried_next_pass(session_factory, recording_sleep):
    await seed_posts(session_factory, POSTS[:3])

    def handler(kind, prompt, n):
        if kind == "ItemAnalysis" and "difficulty" in prompt:
            return LLMTransientError("rate limited")
        return entity_payload() if kind == "EntitySynthesis" else item_payload()

    client = FakeLLMClient(handler=handler)
    pipeline = make_pipeline(client, session_factory, recording_sleep)

    summary = await pipeline.run()

    assert summary.status is RunStatus.PARTIAL
    assert sorted(summary.inserted_post_ids) == [1, 3]
    assert [f.source_item_id for f in summary.item_failures] == [2]
    assert summary.item_failures[0].kind is FailureKind.TRANSIENT_EXHAUSTED
    assert summary.entities_updated == ["MARA"]

    client.handler = lambda kind, prompt, n: entity_payload() if kind == "EntitySynthesis" else item_payload()
    retry = await pipeline.run()

    assert retry.inserted_post_ids == [2]
    assert retry.item_failures == []


async def test_rejected_post_does_not_block_batch(session_factory, recording_sleep):
    await seed_posts(session_factory, POSTS[:3])
    client = FakeLLMClient([
        item_payload(),
        LLMContentRejectedError("content policy"),
        item_payload(),
        entity_payload(),
    ])

    summary = await make_pipeline(client, session_factory, recording_sleep).run()

    assert len(summary.inserted_post_ids) == 2
    assert summary.item_failures[0].kind is FailureKind.REJECTED
    assert summary.item_failures[0].attempts == 1


async def test_synthesis_failure_is_reported(session_factory, recording_sleep):
    await seed_posts(session_factory, POSTS[:1])
    client = FakeLLMClient([item_payload(), "not json at all"])

    summary = await make_pipeline(client, session_factory, recording_sleep).run()

    assert summary.inserted_post_ids == [1]
    assert summary.entities_updated == []
    assert summary.entity_failures[0].entity_id == "MARA"
    assert summary.entity_failures[0].kind is FailureKind.INVALID_RESPONSE
    assert summary.status is RunStatus.PARTIAL


async def test_limit_takes_newest_posts(session_factory, recording_sleep):
    await seed_posts(session_factory, POSTS)
    client = FakeLLMClient()

    summary = await make_pipeline(client, session_factory, recording_sleep).run(limit=2)

    assert summary.items_unprocessed == 2
    assert sorted(summary.inserted_post_ids) == [2, 3]


async def test_pause_between_sequential_items(session_factory, recording_sleep):
    await seed_posts(session_factory, POSTS[:3])

    await make_pipeline(FakeLLMClient(), session_factory, recording_sleep, item_delay=1.5).run()

    assert recording_sleep.delays == [1.5, 1.5]


async def test_regenerate_is_idempotent(session_factory, recording_sleep):
    await seed_posts(session_factory, POSTS)
    client = FakeLLMClient()
    pipeline = make_pipeline(client, session_factory, recording_sleep)
    await pipeline.run()

    async with session_factory() as session:
        before = await EntityInsightRepository(session).get("MARA")
        before_narratives, before_count = list(before.narratives), before.related_post_count

    summary = await pipeline.regenerate_entities()

    assert summary.entities_updated == ["MARA"]
    async with session_factory() as session:
        repo = EntityInsightRepository(session)
        after = await repo.get("MARA")
        assert await repo.count() == 1
        assert after.related_post_count == before_count
        assert after.narratives == before_narratives
        assert len({n.lower() for n in after.narratives}) == len(after.narratives)


async def test_regenerate_unknown_ticker_reports_empty_membership(session_factory, recording_sleep):
    client = FakeLLMClient()

    summary = await make_pipeline(client, session_factory, recording_sleep).regenerate_entities(["RIOT"])

    assert summary.entity_failures[0].kind is FailureKind.EMPTY_MEMBERSHIP
    assert client.calls == []


class SlowExtractor:
    """Counts how many extractions overlap."""

    def __init__(self):
        self.active = 0
        self.peak = 0

    async def extract(self, item: SourceItem):
        self.active += 1
        self.peak = max(self.peak, self.active)
        await asyncio.sleep(0.01)
        self.active -= 1
        return ItemInsightData(
            source_item_id=item.id,
            summary="s",
            investor_implications="i",
            company_implications="c",
            narratives=("Theme",),
            event_type=EventType.MARKET,
            entity_id=None,
        )


async def test_bounded_concurrency(tmp_path, recording_sleep):
    engine, session_factory = await file_session_factory(tmp_path)
    await seed_posts(session_factory, [{"id": i, "title": f"Network update {i}"} for i in range(1, 7)])
    extractor = SlowExtractor()
    pipeline = make_pipeline(
        FakeLLMClient(), session_factory, recording_sleep, concurrency=2, extractor=extractor
    )

    summary = await pipeline.run()

    assert sorted(summary.inserted_post_ids) == [1, 2, 3, 4, 5, 6]
    assert extractor.peak == 2
    await engine.dispose()


# ============================================
# Failure isolation
# ============================================

MIXED_POSTS = [
    {"id": 1, "title": "Marathon Digital expands capacity"},
    {"id": 2, "title": "Riot Platforms buys land"},
    {"id": 3, "title": "CleanSpark adds sites"},
]


async def test_unexpected_item_error_does_not_abort_batch(session_factory, recording_sleep):
    await seed_posts(session_factory, MIXED_POSTS)

    def handler(kind, prompt, n):
        if kind == "ItemAnalysis" and "Riot Platforms" in prompt:
            return RuntimeError("unexpected SDK failure")
        return entity_payload() if kind == "EntitySynthesis" else item_payload()

    summary = await make_pipeline(FakeLLMClient(handler=handler), session_factory, recording_sleep).run()

    assert summary.error is None
    assert summary.status is RunStatus.PARTIAL
    assert sorted(summary.inserted_post_ids) == [1, 3]
    assert [(f.source_item_id, f.kind) for f in summary.item_failures] == [(2, FailureKind.UNEXPECTED)]
    assert sorted(summary.entities_updated) == ["CLSK", "MARA"]
    async with session_factory() as session:
        assert await ItemInsightRepository(session).list_processed_post_ids() == {1, 3}


async def test_unexpected_synthesis_error_skips_only_that_company(session_factory, recording_sleep):
    await seed_posts(session_factory, MIXED_POSTS)

    def handler(kind, prompt, n):
        if kind == "EntitySynthesis" and "Marathon Digital (MARA)" in prompt:
            return RuntimeError("unexpected SDK failure")
        return entity_payload() if kind == "EntitySynthesis" else item_payload()

    summary = await make_pipeline(FakeLLMClient(handler=handler), session_factory, recording_sleep).run()

    assert summary.error is None
    assert sorted(summary.entities_updated) == ["CLSK", "RIOT"]
    assert [(f.entity_id, f.kind) for f in summary.entity_failures] == [("MARA", FailureKind.UNEXPECTED)]


class CrashOnFirstExtractor(SlowExtractor):
    """Raises for post 1; other posts finish after a short delay."""

    async def extract(self, item: SourceItem):
        if item.id == 1:
            raise RuntimeError("boom")
        return await super().extract(item)


async def test_concurrent_crash_leaves_no_task_running(tmp_path, recording_sleep):
    engine, session_factory = await file_session_factory(tmp_path)
    await seed_posts(session_factory, [{"id": i, "title": f"Network update {i}"} for i in range(1, 4)])
    pipeline = make_pipeline(
        FakeLLMClient(), session_factory, recording_sleep, concurrency=3, extractor=CrashOnFirstExtractor()
    )

    summary = await pipeline.run()
    inserted_at_return = sorted(summary.inserted_post_ids)
    await asyncio.sleep(0.05)

    assert summary.error is None
    assert inserted_at_return == [2, 3]
    assert sorted(summary.inserted_post_ids) == [2, 3]
    assert [(f.source_item_id, f.kind) for f in summary.item_failures] == [(1, FailureKind.UNEXPECTED)]
    async with session_factory() as session:
        assert await ItemInsightRepository(session).list_processed_post_ids() == {2, 3}
        assert (await RunHistoryRepository(session).get_latest()).items_inserted == 2
    await engine.dispose()


async def test_storage_failure_keeps_post_unprocessed(session_factory, recording_sleep, monkeypatch):
    await seed_posts(session_factory, MIXED_POSTS)
    original = ItemInsightRepository.insert_ignore

    async def failing_insert(self, **kwargs):
        if kwargs["post_id"] == 2:
            raise SQLAlchemyError("database is locked")
        return await original(self, **kwargs)

    monkeypatch.setattr(ItemInsightRepository, "insert_ignore", failing_insert)
    pipeline = make_pipeline(FakeLLMClient(), session_factory, recording_sleep)

    summary = await pipeline.run()

    assert summary.status is RunStatus.PARTIAL
    assert sorted(summary.inserted_post_ids) == [1, 3]
    assert [(f.source_item_id, f.kind) for f in summary.item_failures] == [(2, FailureKind.STORAGE)]
    async with session_factory() as session:
        assert await ItemInsightRepository(session).list_processed_post_ids() == {1, 3}

    monkeypatch.undo()
    retry = await pipeline.run()

    assert retry.inserted_post_ids == [2]
    assert retry.entities_updated == ["RIOT"]


async def test_company_storage_failure_is_reported(session_factory, recording_sleep, monkeypatch):
    await seed_posts(session_factory, MIXED_POSTS[:2])

    async def failing_upsert(self, **kwargs):
        if kwargs["company_ticker"] == "MARA":
            raise SQLAlchemyError("disk I/O error")

    monkeypatch.setattr(EntityInsightRepository, "upsert", failing_upsert)

    summary = await make_pipeline(FakeLLMClient(), session_factory, recording_sleep).run()

    assert summary.status is RunStatus.PARTIAL
    assert summary.entities_updated == ["RIOT"]
    assert [(f.entity_id, f.kind) for f in summary.entity_failures] == [("MARA", FailureKind.STORAGE)]

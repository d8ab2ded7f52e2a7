"""Tests for the SQLAlchemy repositories."""
from datetime import datetime

from conftest import seed_posts
from repositories import (
    EntityInsightRepository,
    ItemInsightRepository,
    PostRepository,
    RunHistoryRepository,
)


def insight_kwargs(post_id, ticker="MARA", **overrides):
    values = dict(
        post_id=post_id,
        summary="s",
        implications_investor="i",
        implications_company="c",
        narratives=["Fleet Growth"],
        event_type="expansion",
        company_ticker=ticker,
    )
    values.update(overrides)
    return values


def entity_kwargs(**overrides):
    values = dict(
        company_ticker="MARA",
        display_name="Marathon Digital",
        summary="first",
        implications_investor="i",
        implications_company="c",
        narratives=["Fleet Growth", "Bitcoin Treasury"],
        event_types=["expansion"],
        related_post_count=2,
        latest_post_date=datetime(2024, 3, 15),
    )
    values.update(overrides)
    return values


# ============================================
# Posts
# ============================================

async def test_list_ids_newest_first_with_source_filter(session_factory):
    await seed_posts(session_factory, [
        {"id": 1, "published_date": datetime(2024, 1, 1)},
        {"id": 2, "published_date": datetime(2024, 3, 1), "source": "other"},
        {"id": 3, "published_date": datetime(2024, 2, 1), "source": "MinerMag"},
        {"id": 4, "published_date": datetime(2024, 2, 1)},
    ])

    async with session_factory() as session:
        repo = PostRepository(session)
        assert await repo.list_ids() == [2, 4, 3, 1]
        assert await repo.list_ids(source="minermag") == [4, 3, 1]
        assert await repo.list_ids(source="minermag", limit=2) == [4, 3]
        assert await repo.count_by_source("MINERMAG") == 3
        assert await repo.count() == 4


# ============================================
# Item insights
# ============================================

async def test_insert_ignore_skips_existing_post(session_factory):
    await seed_posts(session_factory, [{"id": 1}])

    async with session_factory() as session:
        first = await ItemInsightRepository(session).insert_ignore(**insight_kwargs(1))
    async with session_factory() as session:
        second = await ItemInsightRepository(session).insert_ignore(**insight_kwargs(1, summary="again"))

    assert first is not None
    assert second is None
    async with session_factory() as session:
        repo = ItemInsightRepository(session)
        assert await repo.count() == 1
        assert (await repo.get_by_post_id(1)).summary == "s"
        assert await repo.list_processed_post_ids() == {1}


async def test_ticker_queries(session_factory):
    async with session_factory() as session:
        repo = ItemInsightRepository(session)
        await repo.insert_ignore(**insight_kwargs(1, "RIOT"))
        await repo.insert_ignore(**insight_kwargs(2, None))
        await repo.insert_ignore(**insight_kwargs(3, "MARA"))
        await repo.insert_ignore(**insight_kwargs(4, "RIOT"))

    async with session_factory() as session:
        repo = ItemInsightRepository(session)
        assert await repo.list_tickers() == ["RIOT", "MARA"]
        assert [r.post_id for r in await repo.get_by_ticker("RIOT")] == [1, 4]
        assert [r.post_id for r in await repo.get_by_post_ids([3, 2])] == [2, 3]


# ============================================
# Company insights
# ============================================

async def test_upsert_replaces_whole_record(session_factory):
    async with session_factory() as session:
        await EntityInsightRepository(session).upsert(**entity_kwargs())
    async with session_factory() as session:
        await EntityInsightRepository(session).upsert(
            **entity_kwargs(summary="second", narratives=["New Theme"], related_post_count=3)
        )

    async with session_factory() as session:
        repo = EntityInsightRepository(session)
        assert await repo.count() == 1
        row = await repo.get("MARA")
        assert row.summary == "second"
        assert row.narratives == ["New Theme"]
        assert row.related_post_count == 3


async def test_upsert_is_idempotent(session_factory):
    for _ in range(2):
        async with session_factory() as session:
            await EntityInsightRepository(session).upsert(**entity_kwargs())

    async with session_factory() as session:
        repo = EntityInsightRepository(session)
        row = await repo.get("MARA")
        assert await repo.count() == 1
        assert row.narratives == ["Fleet Growth", "Bitcoin Treasury"]
        assert row.related_post_count == 2


async def test_list_all_orders_by_latest_activity(session_factory):
    async with session_factory() as session:
        repo = EntityInsightRepository(session)
        await repo.upsert(**entity_kwargs(company_ticker="MARA", latest_post_date=datetime(2024, 1, 1)))
        await repo.upsert(**entity_kwargs(company_ticker="RIOT", latest_post_date=datetime(2024, 5, 1)))

    async with session_factory() as session:
        rows = await EntityInsightRepository(session).list_all()
        assert [r.company_ticker for r in rows] == ["RIOT", "MARA"]


# ============================================
# Run history
# ============================================

async def test_run_history_latest(session_factory):
    async with session_factory() as session:
        repo = RunHistoryRepository(session)
        await repo.create_run("run_a", started_at=datetime(2024, 1, 1), status="success")
        await repo.create_run("run_b", started_at=datetime(2024, 1, 2), status="partial")

    async with session_factory() as session:
        repo = RunHistoryRepository(session)
        assert (await repo.get_latest()).id == "run_b"
        assert [r.id for r in await repo.get_recent(5)] == ["run_b", "run_a"]

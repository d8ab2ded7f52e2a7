"""Pytest fixtures for the narrative pipeline test suite.

Provides:
- Async in-memory SQLite database shared by every session of a test
- A session factory with the same commit/rollback behaviour as database.get_session
- FakeLLMClient standing in for the generative model
- Post seeding helpers
"""
import json
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, Callable, List, Optional

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from constants import EventType
from database.models import Base, Post
from llm import LLMClient, LLMResponse
from processor.models import InsightMember, ItemInsightData

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@pytest.fixture()
async def engine():
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


def make_session_factory(engine):
    """Callable returning a commit-on-success session context manager."""
    maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)

    @asynccontextmanager
    async def _session():
        session = maker()
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    return _session


@pytest.fixture()
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture()
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


async def seed_posts(session_factory, posts: List[dict]) -> List[int]:
    """Insert posts; each dict may set id, title, summary, source, published_date, url."""
    async with session_factory() as session:
        rows = []
        for i, data in enumerate(posts, 1):
            rows.append(
                Post(
                    id=data.get("id", i),
                    title=data.get("title", f"Post {i}"),
                    summary=data.get("summary", ""),
                    url=data.get("url", f"https://example.com/{i}"),
                    published_date=data.get("published_date", datetime(2024, 1, i)),
                    source=data.get("source", "minermag"),
                )
            )
        session.add_all(rows)
    return [r.id for r in rows]


# ---------------------------------------------------------------------------
# Generative model
# ---------------------------------------------------------------------------


def item_payload(
    summary: str = "Company reported a new hosting agreement.",
    narratives: Optional[List[str]] = None,
    event_type: str = "expansion",
    **overrides: Any,
) -> dict:
    payload = {
        "summary": summary,
        "implications_investor": "More contracted revenue.",
        "implications_company": "Higher utilisation of existing sites.",
        "narratives": narratives or ["Hashrate Growth Push", "Hosting Revenue Expansion", "Power Capacity Race"],
        "event_type": event_type,
    }
    payload.update(overrides)
    return payload


def entity_payload(
    narratives: Optional[List[str]] = None,
    event_types: Optional[List[str]] = None,
    **overrides: Any,
) -> dict:
    payload = {
        "summary": "The company keeps scaling its fleet while diversifying into hosting.",
        "implications_investor": "Growth story with execution risk.",
        "implications_company": "Capital intensive expansion continues.",
        "narratives": narratives or ["Fleet Scale Up", "Hosting Diversification", "Energy Cost Discipline", "Balance Sheet Bitcoin"],
        "event_types": event_types or ["expansion"],
    }
    payload.update(overrides)
    return payload


def _default_handler(kind: Optional[str], prompt: str, call_number: int):
    if kind == "EntitySynthesis":
        return entity_payload()
    return item_payload()


class FakeLLMClient(LLMClient):
    """
    Deterministic stand-in for a provider client.

    Responses come from `responses` (consumed in order) when given, else
    from `handler(kind, prompt, call_number)`. A response may be a dict
    (sent as JSON), a raw string, or an exception instance to raise.
    `kind` is the title of the requested JSON schema.
    """

    def __init__(self, responses: Optional[List[Any]] = None, handler: Optional[Callable] = None):
        super().__init__(api_key="test-key", model="fake-model")
        self.responses = list(responses) if responses is not None else None
        self.handler = handler or _default_handler
        self.calls: List[dict] = []

    def chat(self, messages, system=None, response_schema=None, max_tokens=4096, temperature=0.0):
        prompt = messages[-1].content
        kind = (response_schema or {}).get("title")
        self.calls.append({"kind": kind, "prompt": prompt, "system": system})

        if self.responses is not None:
            result = self.responses.pop(0)
        else:
            result = self.handler(kind, prompt, len(self.calls))

        if isinstance(result, Exception):
            raise result
        if isinstance(result, dict):
            result = json.dumps(result)
        return LLMResponse(content=result, model=self.model, usage={"input_tokens": 10, "output_tokens": 20})

    def calls_of(self, kind: str) -> List[dict]:
        return [c for c in self.calls if c["kind"] == kind]


class RecordingSleep:
    """Async sleep replacement that records requested delays and returns at once."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture()
def fake_llm():
    return FakeLLMClient()


@pytest.fixture()
def recording_sleep():
    return RecordingSleep()


def make_member(post_id, ticker, narratives=("Fleet Growth",), event_type="expansion", published_at=None):
    """InsightMember built directly, without a database round trip."""
    insight = ItemInsightData(
        source_item_id=post_id,
        summary=f"summary {post_id}",
        investor_implications="inv",
        company_implications="co",
        narratives=tuple(narratives),
        event_type=EventType.parse(event_type),
        entity_id=ticker,
    )
    return InsightMember(insight=insight, title=f"title {post_id}", published_at=published_at)

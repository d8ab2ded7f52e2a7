"""
Typed records passed between pipeline stages.

Stages never hand each other ORM rows or raw model payloads: rows are
converted with `from_row` on the way in, model output is validated into
these types before it reaches the aggregator.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, List, Tuple

from constants import EventType, FailureKind, RunStatus


@dataclass(frozen=True)
class SourceItem:
    """A news post as read from the source store."""
    id: int
    title: str
    body: str
    url: str
    published_at: Optional[datetime]
    origin: str

    @classmethod
    def from_row(cls, post) -> "SourceItem":
        return cls(
            id=post.id,
            title=post.title or "",
            body=post.summary or "",
            url=post.url or "",
            published_at=post.published_date,
            origin=post.source or "",
        )


@dataclass(frozen=True)
class ItemInsightData:
    """Validated per-post analysis."""
    source_item_id: int
    summary: str
    investor_implications: str
    company_implications: str
    narratives: Tuple[str, ...]
    event_type: EventType
    entity_id: Optional[str]
    id: Optional[int] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row) -> "ItemInsightData":
        return cls(
            id=row.id,
            source_item_id=row.post_id,
            summary=row.summary,
            investor_implications=row.implications_investor,
            company_implications=row.implications_company,
            narratives=tuple(row.narratives or ()),
            event_type=EventType.parse(row.event_type),
            entity_id=row.company_ticker,
            created_at=row.created_at,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "post_id": self.source_item_id,
            "summary": self.summary,
            "implications_investor": self.investor_implications,
            "implications_company": self.company_implications,
            "narratives": list(self.narratives),
            "event_type": self.event_type.value,
            "company_ticker": self.entity_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


@dataclass(frozen=True)
class InsightMember:
    """An item insight together with the post context the synthesizer needs."""
    insight: ItemInsightData
    title: str = ""
    published_at: Optional[datetime] = None


@dataclass
class EntityMembership:
    """Deterministic roll-up of every insight that resolved to one entity."""
    entity_id: str
    members: List[InsightMember]
    narratives: List[str]
    event_types: List[EventType]
    latest_item_date: datetime
    related_item_count: int


@dataclass
class EntityInsightData:
    """Consolidated per-company record, as written to the insight store."""
    entity_id: str
    display_name: str
    summary: str
    investor_implications: str
    company_implications: str
    narratives: List[str]
    event_types: List[EventType]
    related_item_count: int
    latest_item_date: Optional[datetime]
    updated_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row) -> "EntityInsightData":
        return cls(
            entity_id=row.company_ticker,
            display_name=row.display_name,
            summary=row.summary,
            investor_implications=row.implications_investor,
            company_implications=row.implications_company,
            narratives=list(row.narratives or []),
            event_types=[EventType.parse(e) for e in row.event_types or []],
            related_item_count=row.related_post_count,
            latest_item_date=row.latest_post_date,
            updated_at=row.updated_at,
        )

    def to_dict(self) -> dict:
        return {
            "company_ticker": self.entity_id,
            "display_name": self.display_name,
            "summary": self.summary,
            "implications_investor": self.investor_implications,
            "implications_company": self.company_implications,
            "narratives": list(self.narratives),
            "event_types": [e.value for e in self.event_types],
            "related_post_count": self.related_item_count,
            "latest_post_date": self.latest_item_date.isoformat() if self.latest_item_date else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


@dataclass
class ExtractionFailure:
    """Terminal outcome for one post in one pass; the post stays unprocessed."""
    source_item_id: int
    kind: FailureKind
    message: str
    attempts: int = 1

    def to_dict(self) -> dict:
        return {
            "post_id": self.source_item_id,
            "kind": self.kind.value,
            "error": self.message,
            "attempts": self.attempts,
        }


@dataclass
class SynthesisFailure:
    """Terminal outcome for one entity in one pass."""
    entity_id: str
    kind: FailureKind
    message: str
    attempts: int = 1

    def to_dict(self) -> dict:
        return {
            "ticker": self.entity_id,
            "kind": self.kind.value,
            "error": self.message,
            "attempts": self.attempts,
        }


@dataclass
class PassSummary:
    """What a single pipeline pass did."""
    run_id: str
    trigger: str
    started_at: datetime
    finished_at: Optional[datetime] = None
    items_found: int = 0
    items_ignored: int = 0
    items_unprocessed: int = 0
    inserted_post_ids: List[int] = field(default_factory=list)
    duplicate_post_ids: List[int] = field(default_factory=list)
    unassigned_post_ids: List[int] = field(default_factory=list)
    item_failures: List[ExtractionFailure] = field(default_factory=list)
    entities_updated: List[str] = field(default_factory=list)
    entity_failures: List[SynthesisFailure] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def status(self) -> RunStatus:
        if self.error:
            return RunStatus.FAILED
        if not self.item_failures and not self.entity_failures:
            return RunStatus.SUCCESS
        if self.inserted_post_ids or self.entities_updated:
            return RunStatus.PARTIAL
        return RunStatus.FAILED

    @property
    def errors(self) -> List[dict]:
        errors = [f.to_dict() for f in self.item_failures]
        errors.extend(f.to_dict() for f in self.entity_failures)
        if self.error:
            errors.append({"kind": "pass", "error": self.error})
        return errors

    def describe(self) -> str:
        return (
            f"{len(self.inserted_post_ids)}/{self.items_unprocessed} posts analysed "
            f"({len(self.item_failures)} failed, {len(self.unassigned_post_ids)} without company), "
            f"{len(self.entities_updated)} companies updated ({len(self.entity_failures)} failed)"
        )

    def to_dict(self) -> dict:
        return {
            "run_id": self.run_id,
            "trigger": self.trigger,
            "status": self.status.value,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "items_found": self.items_found,
            "items_ignored": self.items_ignored,
            "items_unprocessed": self.items_unprocessed,
            "items_inserted": len(self.inserted_post_ids),
            "items_duplicate": len(self.duplicate_post_ids),
            "items_unassigned": len(self.unassigned_post_ids),
            "items_failed": len(self.item_failures),
            "entities_updated": list(self.entities_updated),
            "entities_failed": len(self.entity_failures),
            "errors": self.errors,
            "summary": self.describe(),
        }

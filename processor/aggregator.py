"""
Entity Aggregator

Pure transform: groups item insights by ticker and computes the
deterministic part of each company record. No model calls, no I/O.
"""
from datetime import datetime
from typing import Dict, Iterable, List, Sequence

from constants import EVENT_TYPE_ORDER, EventType
from .models import EntityMembership, InsightMember
from .schemas import MAX_ENTITY_NARRATIVES


def dedupe_narratives(narratives: Iterable[str], limit: int = MAX_ENTITY_NARRATIVES) -> List[str]:
    """Case-insensitive dedupe keeping first-seen casing and order, capped at `limit`."""
    seen = set()
    result = []
    for narrative in narratives:
        text = (narrative or "").strip()
        key = text.lower()
        if not text or key in seen:
            continue
        seen.add(key)
        result.append(text)
        if len(result) >= limit:
            break
    return result


def sort_event_types(event_types: Iterable[EventType]) -> List[EventType]:
    """Unique event types in canonical order."""
    unique = {EventType.parse(e) for e in event_types}
    return sorted(unique, key=lambda e: EVENT_TYPE_ORDER[e.value])


class EntityAggregator:
    """Partition insights by ticker; insights without a ticker are dropped."""

    def __init__(self, narrative_limit: int = MAX_ENTITY_NARRATIVES):
        self.narrative_limit = narrative_limit

    def aggregate(self, members: Sequence[InsightMember]) -> Dict[str, EntityMembership]:
        groups: Dict[str, List[InsightMember]] = {}
        for member in members:
            entity_id = member.insight.entity_id
            if entity_id is None:
                continue
            groups.setdefault(entity_id, []).append(member)

        return {entity_id: self._membership(entity_id, group) for entity_id, group in groups.items()}

    def _membership(self, entity_id: str, group: List[InsightMember]) -> EntityMembership:
        dates = [m.published_at for m in group if m.published_at is not None]
        return EntityMembership(
            entity_id=entity_id,
            members=list(group),
            narratives=dedupe_narratives(
                (n for m in group for n in m.insight.narratives), self.narrative_limit
            ),
            event_types=sort_event_types(m.insight.event_type for m in group),
            # Members without any publish date should not happen; fall back to now
            latest_item_date=max(dates) if dates else datetime.now(),
            related_item_count=len(group),
        )

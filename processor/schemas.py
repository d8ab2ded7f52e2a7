"""
Response schemas for the generative model.

The JSON schema of each model is sent with the request; the same model
validates the reply before anything downstream sees it.
"""
from typing import List

from pydantic import BaseModel, Field, field_validator

from constants import EventType

MAX_ITEM_NARRATIVES = 4
MAX_ENTITY_NARRATIVES = 6


def _clean_narratives(value: List[str]) -> List[str]:
    return [n.strip() for n in value if isinstance(n, str) and n.strip()]


class ItemAnalysis(BaseModel):
    """Per-post analysis."""

    summary: str = Field(min_length=1)
    implications_investor: str = Field(min_length=1)
    implications_company: str = Field(min_length=1)
    narratives: List[str] = Field(min_length=1)
    event_type: EventType

    @field_validator("narratives", mode="after")
    @classmethod
    def _narratives(cls, value: List[str]) -> List[str]:
        cleaned = _clean_narratives(value)
        if not cleaned:
            raise ValueError("narratives must contain at least one non-blank entry")
        return cleaned[:MAX_ITEM_NARRATIVES]

    @field_validator("event_type", mode="before")
    @classmethod
    def _event_type(cls, value):
        return EventType.parse(value) if isinstance(value, str) else value


class EntitySynthesis(BaseModel):
    """Consolidated per-company view."""

    summary: str = Field(min_length=1)
    implications_investor: str = Field(min_length=1)
    implications_company: str = Field(min_length=1)
    narratives: List[str] = Field(min_length=1)
    event_types: List[EventType] = Field(default_factory=list)

    @field_validator("narratives", mode="after")
    @classmethod
    def _narratives(cls, value: List[str]) -> List[str]:
        cleaned = _clean_narratives(value)
        if not cleaned:
            raise ValueError("narratives must contain at least one non-blank entry")
        return cleaned[:MAX_ENTITY_NARRATIVES]

    @field_validator("event_types", mode="before")
    @classmethod
    def _event_types(cls, value):
        if isinstance(value, str):
            value = [value]
        if isinstance(value, list):
            return [EventType.parse(v) if isinstance(v, str) else v for v in value]
        return value

"""
Constants package for the narrative pipeline.

Contains shared enums and the company alias table.
"""

from .enums import (
    EventType,
    PipelineState,
    FailureKind,
    RunStatus,
    EVENT_TYPES,
    EVENT_TYPE_ORDER,
)
from .companies import (
    COMPANY_ALIASES,
    COMPANY_NAME_MAP,
    NON_NASDAQ_COMPANIES,
    CASE_SENSITIVE_SYMBOLS,
    get_company_name,
    is_nasdaq_listed,
)

__all__ = [
    # Enums
    "EventType",
    "PipelineState",
    "FailureKind",
    "RunStatus",
    "EVENT_TYPES",
    "EVENT_TYPE_ORDER",
    # Companies
    "COMPANY_ALIASES",
    "COMPANY_NAME_MAP",
    "NON_NASDAQ_COMPANIES",
    "CASE_SENSITIVE_SYMBOLS",
    "get_company_name",
    "is_nasdaq_listed",
]

"""
Shared Enums

Application-wide enums used across the pipeline, the store and the API.
"""
from enum import Enum


class EventType(str, Enum):
    """Category of the event a post reports on."""
    FINANCING = "financing"
    EXPANSION = "expansion"
    REGULATION = "regulation"
    MARKET = "market"
    TECHNOLOGY = "technology"
    EXPLORATION = "exploration"
    MERGER_ACQUISITION = "m&a"

    @classmethod
    def parse(cls, value) -> "EventType":
        """Lenient lookup: trims and lower-cases before matching a value."""
        if isinstance(value, cls):
            return value
        return cls(str(value).strip().lower())


class PipelineState(str, Enum):
    """Scheduler state. A pass only starts from IDLE."""
    IDLE = "idle"
    RUNNING = "running"
    STOPPED = "stopped"


class FailureKind(str, Enum):
    """Why an item or entity could not be processed in a pass."""
    TRANSIENT_EXHAUSTED = "transient_exhausted"
    REJECTED = "rejected"
    INVALID_RESPONSE = "invalid_response"
    EMPTY_MEMBERSHIP = "empty_membership"
    STORAGE = "storage"
    UNEXPECTED = "unexpected"


class RunStatus(str, Enum):
    """Outcome of a pass as recorded in run history."""
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"
    SKIPPED = "skipped"


# Declaration order doubles as the canonical sort order for stored event types
EVENT_TYPE_ORDER = {e.value: i for i, e in enumerate(EventType)}
EVENT_TYPES = [e.value for e in EventType]

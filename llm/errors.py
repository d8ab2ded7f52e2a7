"""
LLM error hierarchy and retry-hint parsing.

Provider clients raise only these exceptions, so the retry policy never
has to know about SDK-specific error classes.
"""
import json
import math
import re
from typing import Any, Mapping, Optional


class LLMError(Exception):
    """Base class for generative model failures."""


class LLMTransientError(LLMError):
    """
    Rate limit or temporary overload. Safe to retry.

    Attributes:
        retry_after: Server-advertised wait in seconds, if any
        status_code: HTTP status of the failed call, if known
    """

    def __init__(self, message: str, retry_after: Optional[float] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.retry_after = retry_after
        self.status_code = status_code


class LLMContentRejectedError(LLMError):
    """Prompt or completion blocked by the provider's content policy."""


class LLMResponseError(LLMError):
    """The provider answered, but with nothing usable (empty / not JSON)."""


# HTTP statuses treated as rate limiting or temporary overload
TRANSIENT_STATUS_CODES = frozenset({408, 429, 500, 502, 503, 504, 529})

_RATE_LIMIT_PATTERN = re.compile(r"quota|rate.?limit|resource_exhausted|overloaded|too many requests", re.IGNORECASE)
_REJECTION_PATTERN = re.compile(r"safety|content.?(policy|filter|management)|blocked", re.IGNORECASE)
_NUMBER_PATTERN = re.compile(r"([0-9]+(?:\.[0-9]+)?)")
_RETRY_IN_PATTERN = re.compile(r"retry in\s*([0-9]+(?:\.[0-9]+)?)\s*s", re.IGNORECASE)


def looks_rate_limited(message: str) -> bool:
    return bool(message and _RATE_LIMIT_PATTERN.search(message))


def looks_rejected(message: str) -> bool:
    return bool(message and _REJECTION_PATTERN.search(message))


def _seconds(value: Any) -> Optional[float]:
    """'47s', '47.41s', 47 -> whole seconds, rounded up."""
    match = _NUMBER_PATTERN.search(str(value))
    if not match:
        return None
    return float(math.ceil(float(match.group(1))))


def _delay_from_details(details: Any) -> Optional[float]:
    if not isinstance(details, list):
        return None
    for detail in details:
        if not isinstance(detail, Mapping):
            continue
        kind = str(detail.get("@type") or detail.get("type") or "")
        if "RetryInfo" in kind and detail.get("retryDelay") is not None:
            seconds = _seconds(detail["retryDelay"])
            if seconds is not None:
                return seconds
    return None


def _delay_from_body(body: Any) -> Optional[float]:
    if not isinstance(body, Mapping):
        return None
    error = body.get("error")
    if isinstance(error, Mapping):
        found = _delay_from_details(error.get("details"))
        if found is not None:
            return found
    return _delay_from_details(body.get("details"))


def extract_retry_delay(
    body: Any = None,
    message: Optional[str] = None,
    headers: Optional[Mapping[str, str]] = None,
) -> Optional[float]:
    """
    Find a server-advertised retry delay in a failed call, in seconds.

    Looks, in order, at:
    1. structured RetryInfo entries (`error.details[*].retryDelay`)
    2. the same structure JSON-encoded inside the error message
    3. free text like "Please retry in 47.4s."
    4. a `retry-after` header

    Returns:
        Delay rounded up to whole seconds, or None when nothing is advertised
    """
    found = _delay_from_body(body)
    if found is not None:
        return found

    if message:
        try:
            parsed = json.loads(message)
        except (json.JSONDecodeError, TypeError):
            parsed = None
        found = _delay_from_body(parsed)
        if found is not None:
            return found

        match = _RETRY_IN_PATTERN.search(message)
        if match:
            return float(math.ceil(float(match.group(1))))

    if headers:
        header = headers.get("retry-after") or headers.get("Retry-After")
        if header:
            try:
                return float(math.ceil(float(header)))
            except ValueError:
                return None

    return None

"""
Retry policy for calls to the generative model.

Only LLMTransientError is retried. A server-advertised delay wins over
the computed backoff; otherwise retry k (0-based) waits
min(max_delay, base_delay * 2**k).
"""
import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

from loguru import logger

from config import settings
from llm.errors import LLMTransientError
from .errors import RetryExhaustedError

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    max_retries: int = 5
    base_delay: float = 1.0
    max_delay: float = 60.0

    @classmethod
    def from_settings(cls) -> "RetryPolicy":
        return cls(
            max_retries=settings.RETRY_MAX_RETRIES,
            base_delay=settings.RETRY_BASE_SECONDS,
            max_delay=settings.RETRY_MAX_DELAY_SECONDS,
        )

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    def backoff_delay(self, retry_index: int) -> float:
        return min(self.max_delay, self.base_delay * (2 ** retry_index))

    def delay_for(self, retry_index: int, error: Optional[LLMTransientError] = None) -> float:
        """Seconds to wait before retry number `retry_index`."""
        if error is not None and error.retry_after is not None and error.retry_after >= 0:
            return float(error.retry_after)
        return self.backoff_delay(retry_index)


async def call_with_retry(
    fn: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    label: str = "llm call",
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """
    Await `fn()` until it succeeds or the retry budget is spent.

    Raises:
        RetryExhaustedError: every attempt raised LLMTransientError
        LLMError: any non-transient failure, unchanged, on first occurrence
    """
    for retry_index in range(policy.max_attempts):
        try:
            return await fn()
        except LLMTransientError as e:
            if retry_index >= policy.max_retries:
                raise RetryExhaustedError(label, policy.max_attempts, e) from e
            delay = policy.delay_for(retry_index, e)
            source = "advertised" if e.retry_after is not None else "backoff"
            logger.warning(
                f"{label}: transient failure (attempt {retry_index + 1}/{policy.max_attempts}), "
                f"retrying in {delay:g}s ({source}): {e}"
            )
            await sleep(delay)
    # unreachable: the loop either returns or raises
    raise RuntimeError(f"{label}: retry loop exited without result")

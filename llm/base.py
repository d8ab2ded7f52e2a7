"""
LLM Client Base - Abstract base class for LLM providers.
"""
import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional, List, Dict, Any
from contextvars import ContextVar

from loguru import logger


# Context variables for tagging log lines with the current task / pass
_current_task_type: ContextVar[Optional[str]] = ContextVar('task_type', default=None)
_current_run_id: ContextVar[Optional[str]] = ContextVar('run_id', default=None)


def set_llm_context(task_type: Optional[str] = None, run_id: Optional[str] = None):
    """Set context for LLM call logging."""
    if task_type is not None:
        _current_task_type.set(task_type)
    if run_id is not None:
        _current_run_id.set(run_id)


def get_llm_context() -> Dict[str, Optional[str]]:
    """Get current LLM logging context."""
    return {
        "task_type": _current_task_type.get(),
        "run_id": _current_run_id.get()
    }


@dataclass
class LLMResponse:
    """Standard response from LLM."""
    content: str
    model: str
    usage: Dict[str, int] = field(default_factory=dict)  # input_tokens, output_tokens
    stop_reason: Optional[str] = None
    latency_ms: Optional[int] = None

    @property
    def total_tokens(self) -> int:
        return self.usage.get("input_tokens", 0) + self.usage.get("output_tokens", 0)

    @property
    def success(self) -> bool:
        return bool(self.content and self.content.strip())


@dataclass
class Message:
    """Chat message."""
    role: str  # "user", "assistant", "system"
    content: str


class LLMClient(ABC):
    """
    Abstract base class for LLM clients.

    Implementations must translate provider SDK failures into the
    llm.errors hierarchy so callers can tell transient failures
    (retry) from rejections and bad output (give up).
    """

    def __init__(self, api_key: str, model: str):
        self.api_key = api_key
        self.model = model

    @abstractmethod
    def chat(
        self,
        messages: List[Message],
        system: Optional[str] = None,
        response_schema: Optional[Dict[str, Any]] = None,
        max_tokens: int = 4096,
        temperature: float = 0.0,
    ) -> LLMResponse:
        """
        Generate a response from a conversation.

        Args:
            messages: Conversation messages
            system: Optional system prompt
            response_schema: JSON schema the response must follow. When set,
                the provider is asked for a single JSON object.
            max_tokens: Maximum tokens to generate
            temperature: Sampling temperature

        Raises:
            LLMTransientError: rate limited / overloaded, safe to retry
            LLMContentRejectedError: blocked by the provider's content policy
            LLMError: any other provider failure
        """

    def generate(
        self,
        prompt: str,
        system: Optional[str] = None,
        response_schema: Optional[Dict[str, Any]] = None,
        max_tokens: int = 4096,
        temperature: float = 0.0,
    ) -> LLMResponse:
        """Generate a response from a single prompt."""
        messages = [Message(role="user", content=prompt)]
        return self.chat(
            messages,
            system=system,
            response_schema=response_schema,
            max_tokens=max_tokens,
            temperature=temperature,
        )

    def _log_call(self, response: LLMResponse) -> None:
        context = get_llm_context()
        logger.debug(
            f"LLM call ({context.get('task_type') or 'unknown'}, run {context.get('run_id') or '-'}): "
            f"model={response.model} tokens={response.total_tokens} "
            f"latency={response.latency_ms}ms json={self._check_valid_json(response.content)}"
        )

    @staticmethod
    def _check_valid_json(content: str) -> bool:
        """Check if response is valid JSON."""
        try:
            json.loads(content)
            return True
        except (json.JSONDecodeError, TypeError):
            return False

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(model={self.model})"

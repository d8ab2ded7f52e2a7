"""
Anthropic client.

The messages API has no response_format switch, so the JSON schema is
appended to the system prompt and the reply is validated downstream.
"""
import json
import time
from typing import Optional, List, Dict, Any

import anthropic
from loguru import logger

from .base import LLMClient, LLMResponse, Message
from .errors import (
    LLMError,
    LLMTransientError,
    LLMContentRejectedError,
    LLMResponseError,
    TRANSIENT_STATUS_CODES,
    extract_retry_delay,
    looks_rate_limited,
    looks_rejected,
)

_SCHEMA_INSTRUCTION = (
    "Respond with a single JSON object and nothing else. "
    "It must validate against this JSON schema:\n{schema}"
)


class AnthropicClient(LLMClient):
    """Claude client via the official SDK (SDK retries disabled)."""

    def __init__(
        self,
        api_key: str,
        model: str = "claude-sonnet-4-20250514",
        timeout: float = 120.0,
    ):
        super().__init__(api_key, model)
        self._client = anthropic.Anthropic(api_key=api_key, timeout=timeout, max_retries=0)

    def chat(
        self,
        messages: List[Message],
        system: Optional[str] = None,
        response_schema: Optional[Dict[str, Any]] = None,
        max_tokens: int = 4096,
        temperature: float = 0.0,
    ) -> LLMResponse:
        """Generate response from conversation."""
        system_parts = [system] if system else []
        if response_schema is not None:
            system_parts.append(_SCHEMA_INSTRUCTION.format(schema=json.dumps(response_schema)))

        api_messages = [
            {"role": msg.role, "content": msg.content}
            for msg in messages
            if msg.role in ("user", "assistant")
        ]
        kwargs: Dict[str, Any] = {}
        if system_parts:
            kwargs["system"] = "\n\n".join(system_parts)

        logger.debug(f"Claude request: model={self.model}, messages={len(api_messages)}")
        started = time.monotonic()

        try:
            response = self._client.messages.create(
                model=self.model,
                messages=api_messages,
                max_tokens=max_tokens,
                temperature=temperature,
                **kwargs,
            )
        except anthropic.APIStatusError as e:
            message = str(e)
            headers = e.response.headers if e.response is not None else None
            if e.status_code in TRANSIENT_STATUS_CODES or looks_rate_limited(message):
                raise LLMTransientError(
                    message,
                    retry_after=extract_retry_delay(body=e.body, message=message, headers=headers),
                    status_code=e.status_code,
                ) from e
            if looks_rejected(message):
                raise LLMContentRejectedError(message) from e
            raise LLMError(f"HTTP {e.status_code}: {message}") from e
        except (anthropic.APITimeoutError, anthropic.APIConnectionError) as e:
            raise LLMTransientError(f"Connection problem: {e}") from e
        except anthropic.AnthropicError as e:
            raise LLMError(str(e)) from e

        if response.stop_reason == "refusal":
            raise LLMContentRejectedError("Claude refused to answer")

        text = "".join(block.text for block in response.content if block.type == "text")
        if not text:
            raise LLMResponseError("Claude returned no text content")

        result = LLMResponse(
            content=text,
            model=response.model,
            usage={
                "input_tokens": response.usage.input_tokens,
                "output_tokens": response.usage.output_tokens,
            },
            stop_reason=response.stop_reason,
            latency_ms=int((time.monotonic() - started) * 1000),
        )
        self._log_call(result)
        return result

"""
OpenAI-compatible client.

Works against OpenAI itself or any endpoint speaking the same chat
completions API (set LLM_BASE_URL). Structured output is requested via
`response_format={"type": "json_schema", ...}`.
"""
import time
from typing import Optional, List, Dict, Any

import httpx
import openai
from openai import OpenAI
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


class OpenAICompatibleClient(LLMClient):
    """
    Chat-completions client with JSON schema output.

    SDK-level retries are disabled (`max_retries=0`): backoff is owned by
    processor.retry so the advertised delay and attempt budget are honoured
    in one place.
    """

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o-mini",
        base_url: Optional[str] = None,
        timeout: float = 120.0,
        verify_ssl: bool = True,
    ):
        """
        Args:
            api_key: Provider API key
            model: Model name
            base_url: Endpoint override for OpenAI-compatible providers
            timeout: Request timeout in seconds
            verify_ssl: Whether to verify SSL certificates
        """
        super().__init__(api_key, model)
        self.timeout = timeout

        http_client = None
        if not verify_ssl:
            http_client = httpx.Client(verify=False)
            logger.warning("SSL verification disabled for LLM client")

        self._client = OpenAI(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout,
            max_retries=0,
            http_client=http_client,
        )

    def chat(
        self,
        messages: List[Message],
        system: Optional[str] = None,
        response_schema: Optional[Dict[str, Any]] = None,
        max_tokens: int = 4096,
        temperature: float = 0.0,
    ) -> LLMResponse:
        """Generate response from conversation."""
        api_messages = []
        if system:
            api_messages.append({"role": "system", "content": system})
        for msg in messages:
            api_messages.append({"role": msg.role, "content": msg.content})

        kwargs: Dict[str, Any] = {}
        if response_schema is not None:
            kwargs["response_format"] = {
                "type": "json_schema",
                "json_schema": {
                    "name": response_schema.get("title", "response"),
                    "schema": response_schema,
                },
            }

        logger.debug(f"LLM request: model={self.model}, messages={len(api_messages)}")
        started = time.monotonic()

        try:
            response = self._client.chat.completions.create(
                model=self.model,
                messages=api_messages,
                max_tokens=max_tokens,
                temperature=temperature,
                **kwargs,
            )
        except openai.APIStatusError as e:
            raise self._translate_status_error(e) from e
        except (openai.APITimeoutError, openai.APIConnectionError) as e:
            raise LLMTransientError(f"Connection problem: {e}") from e
        except openai.OpenAIError as e:
            raise LLMError(str(e)) from e

        if not response.choices:
            raise LLMResponseError("Provider returned no choices")

        choice = response.choices[0]
        if choice.finish_reason == "content_filter" or getattr(choice.message, "refusal", None):
            raise LLMContentRejectedError(
                f"Completion refused: {getattr(choice.message, 'refusal', None) or choice.finish_reason}"
            )

        usage = response.usage
        result = LLMResponse(
            content=choice.message.content or "",
            model=response.model,
            usage={
                "input_tokens": usage.prompt_tokens if usage else 0,
                "output_tokens": usage.completion_tokens if usage else 0,
            },
            stop_reason=choice.finish_reason,
            latency_ms=int((time.monotonic() - started) * 1000),
        )
        self._log_call(result)
        return result

    @staticmethod
    def _translate_status_error(e: "openai.APIStatusError") -> LLMError:
        message = str(e)
        status = e.status_code
        headers = e.response.headers if e.response is not None else None

        if status in TRANSIENT_STATUS_CODES or looks_rate_limited(message):
            return LLMTransientError(
                message,
                retry_after=extract_retry_delay(body=e.body, message=message, headers=headers),
                status_code=status,
            )

        code = None
        if isinstance(e.body, dict):
            error = e.body.get("error") if isinstance(e.body.get("error"), dict) else e.body
            code = error.get("code")
        if code in ("content_filter", "content_policy_violation") or looks_rejected(message):
            return LLMContentRejectedError(message)

        return LLMError(f"HTTP {status}: {message}")

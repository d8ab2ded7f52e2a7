"""
LLM Module - Unified interface for LLM providers.

Usage:
    from llm import get_client

    client = get_client()  # Uses config settings
    response = client.generate("Your prompt here", response_schema=schema)
    print(response.content)

Supported providers:
- openai: OpenAI or any OpenAI-compatible endpoint (LLM_BASE_URL)
- anthropic: Claude via the Anthropic SDK
"""
from typing import Optional

from config import settings
from .base import LLMClient, LLMResponse, Message, set_llm_context, get_llm_context
from .errors import (
    LLMError,
    LLMTransientError,
    LLMContentRejectedError,
    LLMResponseError,
    extract_retry_delay,
)
from .openai_client import OpenAICompatibleClient
from .anthropic_client import AnthropicClient


# Default models per provider
_DEFAULT_MODELS = {
    "openai": "gpt-4o-mini",
    "anthropic": "claude-sonnet-4-20250514",
}


def get_client(
    provider: Optional[str] = None,
    api_key: Optional[str] = None,
    model: Optional[str] = None,
) -> LLMClient:
    """
    Get an LLM client instance.

    Args:
        provider: "openai" or "anthropic". Defaults to settings.LLM_PROVIDER
        api_key: API key. Defaults to the provider's key in settings
        model: Model name. Defaults to settings.LLM_MODEL or provider default

    Returns:
        Configured LLMClient instance
    """
    provider = (provider or settings.LLM_PROVIDER).lower()

    if provider not in _DEFAULT_MODELS:
        raise ValueError(f"Unknown LLM provider: {provider}. Available: {list(_DEFAULT_MODELS)}")

    if api_key is None:
        api_key = settings.OPENAI_API_KEY if provider == "openai" else settings.ANTHROPIC_API_KEY

    if not api_key:
        raise ValueError(f"API key required for provider: {provider}")

    model = model or settings.LLM_MODEL or _DEFAULT_MODELS[provider]

    if provider == "anthropic":
        return AnthropicClient(api_key=api_key, model=model, timeout=settings.LLM_TIMEOUT_SECONDS)

    return OpenAICompatibleClient(
        api_key=api_key,
        model=model,
        base_url=settings.LLM_BASE_URL,
        timeout=settings.LLM_TIMEOUT_SECONDS,
        verify_ssl=settings.LLM_VERIFY_SSL,
    )


__all__ = [
    "get_client",
    "LLMClient",
    "LLMResponse",
    "Message",
    "set_llm_context",
    "get_llm_context",
    "LLMError",
    "LLMTransientError",
    "LLMContentRejectedError",
    "LLMResponseError",
    "extract_retry_delay",
    "OpenAICompatibleClient",
    "AnthropicClient",
]

"""
Structured Extractor - per-post analysis

Builds the item_analysis prompt, asks the model for an ItemAnalysis-shaped
JSON object, validates it and attaches the ticker found by TickerResolver.
The model never decides which company a post belongs to.
"""
import asyncio
from typing import Awaitable, Callable, Optional, Union

from loguru import logger

from constants import EVENT_TYPES, FailureKind
from llm import LLMClient, LLMContentRejectedError, LLMError, LLMResponseError
from prompts import PromptLoader
from .errors import RetryExhaustedError, SchemaValidationError
from .models import ExtractionFailure, ItemInsightData, SourceItem
from .output_parser import OutputParser
from .retry import RetryPolicy, call_with_retry
from .schemas import ItemAnalysis
from .ticker_resolver import TickerResolver

SYSTEM_PROMPT = "You analyse news for investors. Reply with JSON only."


class StructuredExtractor:
    """Turns one SourceItem into an ItemInsightData or an ExtractionFailure."""

    def __init__(
        self,
        client: LLMClient,
        resolver: Optional[TickerResolver] = None,
        policy: Optional[RetryPolicy] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        max_tokens: int = 2048,
    ):
        self.client = client
        self.resolver = resolver or TickerResolver()
        self.policy = policy or RetryPolicy.from_settings()
        self.sleep = sleep
        self.max_tokens = max_tokens
        self.prompt_loader = PromptLoader()
        self.parser = OutputParser()

    def build_prompt(self, item: SourceItem) -> str:
        return self.prompt_loader.format(
            "item_analysis",
            post_id=item.id,
            title=item.title,
            body=item.body,
            url=item.url,
            published_at=item.published_at.isoformat() if item.published_at else "unknown",
            origin=item.origin,
            event_types=", ".join(EVENT_TYPES),
        )

    async def extract(self, item: SourceItem) -> Union[ItemInsightData, ExtractionFailure]:
        prompt = self.build_prompt(item)
        schema = ItemAnalysis.model_json_schema()
        attempts = 0

        async def _call():
            nonlocal attempts
            attempts += 1
            response = await asyncio.to_thread(
                self.client.generate,
                prompt,
                system=SYSTEM_PROMPT,
                response_schema=schema,
                max_tokens=self.max_tokens,
            )
            if not response.success:
                raise LLMResponseError("Empty response from model")
            return response

        try:
            response = await call_with_retry(_call, self.policy, f"post {item.id}", self.sleep)
            analysis = self.parser.parse(response.content, ItemAnalysis)
        except RetryExhaustedError as e:
            return self._failure(item, FailureKind.TRANSIENT_EXHAUSTED, str(e), attempts)
        except LLMContentRejectedError as e:
            return self._failure(item, FailureKind.REJECTED, str(e), attempts)
        except (LLMResponseError, SchemaValidationError) as e:
            return self._failure(item, FailureKind.INVALID_RESPONSE, str(e), attempts)
        except LLMError as e:
            return self._failure(item, FailureKind.INVALID_RESPONSE, f"Provider error: {e}", attempts)

        ticker = self.resolver.resolve(item.title, item.body)
        logger.debug(f"Post {item.id} analysed: event={analysis.event_type.value}, ticker={ticker}")

        return ItemInsightData(
            source_item_id=item.id,
            summary=analysis.summary,
            investor_implications=analysis.implications_investor,
            company_implications=analysis.implications_company,
            narratives=tuple(analysis.narratives),
            event_type=analysis.event_type,
            entity_id=ticker,
        )

    @staticmethod
    def _failure(item: SourceItem, kind: FailureKind, message: str, attempts: int) -> ExtractionFailure:
        logger.warning(f"Post {item.id} extraction failed ({kind.value}): {message}")
        return ExtractionFailure(source_item_id=item.id, kind=kind, message=message, attempts=attempts)

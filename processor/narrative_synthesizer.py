"""
Narrative Synthesizer - Consolidated company view from all of its insights.

One model call per company, always over the company's entire current
membership. The result replaces the stored record; nothing is patched.
"""
import asyncio
from typing import Awaitable, Callable, List, Optional, Sequence, Union

from loguru import logger

from constants import EVENT_TYPES, FailureKind, get_company_name
from llm import LLMClient, LLMContentRejectedError, LLMError, LLMResponseError
from prompts import PromptLoader
from .aggregator import EntityAggregator, dedupe_narratives, sort_event_types
from .errors import RetryExhaustedError, SchemaValidationError
from .models import EntityInsightData, EntityMembership, InsightMember, SynthesisFailure
from .output_parser import OutputParser
from .retry import RetryPolicy, call_with_retry
from .schemas import EntitySynthesis, MAX_ENTITY_NARRATIVES

SYSTEM_PROMPT = "You are an investment strategist summarising a company for investors. Reply with JSON only."


class NarrativeSynthesizer:
    """
    Generate the consolidated record for one company.

    Narratives: the model's themes first, topped up from the deduplicated
    member narratives, deduplicated again and capped at six.
    Event types, related count and latest date come from the aggregation,
    not from the model.
    """

    def __init__(
        self,
        client: LLMClient,
        policy: Optional[RetryPolicy] = None,
        aggregator: Optional[EntityAggregator] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        max_tokens: int = 3072,
    ):
        self.client = client
        self.policy = policy or RetryPolicy.from_settings()
        self.aggregator = aggregator or EntityAggregator()
        self.sleep = sleep
        self.max_tokens = max_tokens
        self.prompt_loader = PromptLoader()
        self.parser = OutputParser()

    async def synthesize(
        self,
        entity_id: str,
        members: Sequence[InsightMember],
        membership: Optional[EntityMembership] = None,
    ) -> Union[EntityInsightData, SynthesisFailure]:
        """
        Args:
            entity_id: Company ticker
            members: Every insight currently assigned to the ticker
            membership: Pre-computed aggregation of `members`, if the caller has one
        """
        if not members:
            logger.error(f"Synthesis requested for {entity_id} with no members, skipping")
            return SynthesisFailure(
                entity_id=entity_id,
                kind=FailureKind.EMPTY_MEMBERSHIP,
                message="No insights resolved to this company",
                attempts=0,
            )

        if membership is None:
            membership = self.aggregator.aggregate(members).get(entity_id)
        if membership is None:
            return SynthesisFailure(
                entity_id=entity_id,
                kind=FailureKind.EMPTY_MEMBERSHIP,
                message="No member insight carries this ticker",
                attempts=0,
            )

        prompt = self.build_prompt(entity_id, membership.members)
        schema = EntitySynthesis.model_json_schema()
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
            response = await call_with_retry(_call, self.policy, f"company {entity_id}", self.sleep)
            synthesis = self.parser.parse(response.content, EntitySynthesis)
        except RetryExhaustedError as e:
            return self._failure(entity_id, FailureKind.TRANSIENT_EXHAUSTED, str(e), attempts)
        except LLMContentRejectedError as e:
            return self._failure(entity_id, FailureKind.REJECTED, str(e), attempts)
        except (LLMResponseError, SchemaValidationError) as e:
            return self._failure(entity_id, FailureKind.INVALID_RESPONSE, str(e), attempts)
        except LLMError as e:
            return self._failure(entity_id, FailureKind.INVALID_RESPONSE, f"Provider error: {e}", attempts)

        narratives = dedupe_narratives(
            [*synthesis.narratives, *membership.narratives], MAX_ENTITY_NARRATIVES
        )
        logger.info(
            f"Synthesized {entity_id} from {membership.related_item_count} insights "
            f"({len(narratives)} narratives)"
        )

        return EntityInsightData(
            entity_id=entity_id,
            display_name=get_company_name(entity_id),
            summary=synthesis.summary,
            investor_implications=synthesis.implications_investor,
            company_implications=synthesis.implications_company,
            narratives=narratives,
            event_types=sort_event_types(membership.event_types),
            related_item_count=membership.related_item_count,
            latest_item_date=membership.latest_item_date,
        )

    def build_prompt(self, entity_id: str, members: Sequence[InsightMember]) -> str:
        return self.prompt_loader.format(
            "entity_synthesis",
            insight_count=len(members),
            company_name=get_company_name(entity_id),
            ticker=entity_id,
            insights_section=self._format_members(members),
            event_types=", ".join(EVENT_TYPES),
        )

    def _format_members(self, members: Sequence[InsightMember]) -> str:
        """Format member insights into numbered blocks for the prompt."""
        blocks: List[str] = []
        for i, member in enumerate(members, 1):
            insight = member.insight
            date = member.published_at.strftime("%Y-%m-%d") if member.published_at else "unknown date"
            lines = [
                f"### Analysis {i}: {member.title or 'Untitled'} ({date})",
                f"Event type: {insight.event_type.value}",
                f"Summary: {insight.summary}",
                f"Investor implications: {insight.investor_implications}",
                f"Company implications: {insight.company_implications}",
            ]
            if insight.narratives:
                lines.append(f"Narratives: {'; '.join(insight.narratives)}")
            blocks.append("\n".join(lines))
        return "\n\n".join(blocks)

    @staticmethod
    def _failure(entity_id: str, kind: FailureKind, message: str, attempts: int) -> SynthesisFailure:
        logger.warning(f"Synthesis for {entity_id} failed ({kind.value}): {message}")
        return SynthesisFailure(entity_id=entity_id, kind=kind, message=message, attempts=attempts)

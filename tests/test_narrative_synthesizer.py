"""Tests for the per-company synthesis stage."""
from datetime import datetime

from conftest import FakeLLMClient, entity_payload, make_member as member
from constants import EventType, FailureKind
from llm import LLMTransientError
from processor.models import EntityInsightData, SynthesisFailure
from processor.narrative_synthesizer import NarrativeSynthesizer
from processor.retry import RetryPolicy


def make_synthesizer(client, sleep):
    return NarrativeSynthesizer(client, policy=RetryPolicy(), sleep=sleep)


async def test_empty_membership_fails_fast(recording_sleep):
    client = FakeLLMClient()

    result = await make_synthesizer(client, recording_sleep).synthesize("MARA", [])

    assert isinstance(result, SynthesisFailure)
    assert result.kind is FailureKind.EMPTY_MEMBERSHIP
    assert client.calls == []


async def test_builds_record_from_whole_membership(recording_sleep):
    client = FakeLLMClient([entity_payload(narratives=["Fleet Scale Up", "Hosting Push"], event_types=["market"])])
    members = [
        member(1, "MARA", ["Bitcoin Treasury", "fleet scale up"], "financing", datetime(2024, 1, 1)),
        member(2, "MARA", ["Power Deals"], "expansion", datetime(2024, 3, 15)),
    ]

    result = await make_synthesizer(client, recording_sleep).synthesize("MARA", members)

    assert isinstance(result, EntityInsightData)
    assert result.display_name == "Marathon Digital"
    assert result.related_item_count == 2
    assert result.latest_item_date == datetime(2024, 3, 15)
    # Model themes first, topped up from member narratives, deduplicated
    assert result.narratives == ["Fleet Scale Up", "Hosting Push", "Bitcoin Treasury", "Power Deals"]
    # Event types reflect what members actually reported
    assert result.event_types == [EventType.FINANCING, EventType.EXPANSION]

    prompt = client.calls[0]["prompt"]
    assert "summary 1" in prompt and "summary 2" in prompt
    assert "Marathon Digital (MARA)" in prompt


async def test_narratives_capped_at_six(recording_sleep):
    client = FakeLLMClient([entity_payload(narratives=[f"Model Theme {i}" for i in range(5)])])
    members = [member(1, "MARA", ["Member One", "Member Two", "Member Three"])]

    result = await make_synthesizer(client, recording_sleep).synthesize("MARA", members)

    assert len(result.narratives) == 6
    assert result.narratives[-1] == "Member One"


async def test_same_membership_gives_same_record(recording_sleep):
    client = FakeLLMClient()
    members = [member(1, "RIOT", ["A Theme"]), member(2, "RIOT", ["a theme", "B Theme"])]
    synthesizer = make_synthesizer(client, recording_sleep)

    first = await synthesizer.synthesize("RIOT", members)
    second = await synthesizer.synthesize("RIOT", members)

    assert first.narratives == second.narratives
    assert first.related_item_count == second.related_item_count == 2
    assert len({n.lower() for n in first.narratives}) == len(first.narratives)


async def test_retries_transient_failures(recording_sleep):
    client = FakeLLMClient([LLMTransientError("429", retry_after=3), entity_payload()])

    result = await make_synthesizer(client, recording_sleep).synthesize("MARA", [member(1, "MARA")])

    assert isinstance(result, EntityInsightData)
    assert recording_sleep.delays == [3]
    assert len(client.calls) == 2


async def test_invalid_response_is_failure(recording_sleep):
    client = FakeLLMClient([{"summary": "missing the rest"}])

    result = await make_synthesizer(client, recording_sleep).synthesize("MARA", [member(1, "MARA")])

    assert isinstance(result, SynthesisFailure)
    assert result.kind is FailureKind.INVALID_RESPONSE
    assert len(client.calls) == 1

"""Tests for the prompt template loader."""
import pytest

from prompts import PromptLoader


def test_loader_is_shared():
    assert PromptLoader() is PromptLoader()


def test_list_prompts():
    assert PromptLoader().list_prompts() == ["entity_synthesis", "item_analysis"]


def test_format_fills_placeholders():
    prompt = PromptLoader().format(
        "item_analysis",
        post_id=42,
        title="Marathon Digital expands capacity",
        body="Adds 5 EH/s.",
        url="https://example.com/42",
        published_at="2024-03-15",
        origin="minermag",
        event_types="financing, expansion",
    )

    assert "- Post ID: 42" in prompt
    assert "- Title: Marathon Digital expands capacity" in prompt
    assert "{title}" not in prompt


def test_missing_variable_raises_value_error():
    with pytest.raises(ValueError, match="item_analysis"):
        PromptLoader().format("item_analysis", title="only a title")


def test_unknown_prompt_lists_available():
    with pytest.raises(FileNotFoundError, match="entity_synthesis"):
        PromptLoader().get("does_not_exist")

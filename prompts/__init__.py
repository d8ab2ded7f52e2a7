"""
Prompts Module - Prompt templates for the generative model.

Usage:
    from prompts import PromptLoader

    prompt = PromptLoader().format("item_analysis", title="...", body="...")

Prompt Files:
- item_analysis.md: per-post structured analysis
- entity_synthesis.md: per-company consolidated narrative
"""

from ._loader import PromptLoader

__all__ = ["PromptLoader"]

"""
Processor package for the narrative pipeline.

Stages:
- TickerResolver: post text -> company ticker
- filter_unprocessed: drop posts that already have an insight
- StructuredExtractor: per-post analysis via the model, with retry
- EntityAggregator: group insights by ticker, dedupe narratives
- NarrativeSynthesizer: per-company consolidated record via the model

Main entry point: Pipeline class
"""

from .models import (
    SourceItem,
    ItemInsightData,
    InsightMember,
    EntityMembership,
    EntityInsightData,
    ExtractionFailure,
    SynthesisFailure,
    PassSummary,
)
from .errors import SchemaValidationError, RetryExhaustedError
from .retry import RetryPolicy, call_with_retry
from .ticker_resolver import TickerResolver
from .item_filter import filter_unprocessed
from .output_parser import OutputParser
from .extractor import StructuredExtractor
from .aggregator import EntityAggregator, dedupe_narratives, sort_event_types
from .narrative_synthesizer import NarrativeSynthesizer
from .pipeline import Pipeline, run_pipeline

__all__ = [
    # Pipeline
    "Pipeline",
    "run_pipeline",
    # Stages
    "TickerResolver",
    "filter_unprocessed",
    "StructuredExtractor",
    "EntityAggregator",
    "NarrativeSynthesizer",
    # Retry
    "RetryPolicy",
    "call_with_retry",
    # Records
    "SourceItem",
    "ItemInsightData",
    "InsightMember",
    "EntityMembership",
    "EntityInsightData",
    "ExtractionFailure",
    "SynthesisFailure",
    "PassSummary",
    # Utilities
    "OutputParser",
    "dedupe_narratives",
    "sort_event_types",
    "SchemaValidationError",
    "RetryExhaustedError",
]

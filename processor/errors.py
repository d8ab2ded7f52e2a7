"""
Processor-level exceptions.

These never leave a stage: the extractor and synthesizer turn them into
ExtractionFailure / SynthesisFailure records.
"""
from pydantic import ValidationError


class SchemaValidationError(Exception):
    """Model output parsed as JSON but does not match the expected schema."""

    def __init__(self, schema_name: str, error: ValidationError):
        self.schema_name = schema_name
        self.error = error
        fields = ", ".join(".".join(str(p) for p in e["loc"]) or "<root>" for e in error.errors())
        super().__init__(f"{schema_name} validation failed ({error.error_count()} errors: {fields})")


class RetryExhaustedError(Exception):
    """A transient failure persisted through every allowed retry."""

    def __init__(self, label: str, attempts: int, last_error: Exception):
        self.label = label
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"{label}: gave up after {attempts} attempts: {last_error}")

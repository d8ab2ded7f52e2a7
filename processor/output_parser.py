"""
Output Parser - Parse and validate model output against a pydantic schema
"""
import json
import re
from typing import Optional, Type, TypeVar

from loguru import logger
from pydantic import BaseModel, ValidationError

from llm.errors import LLMResponseError
from .errors import SchemaValidationError

SchemaT = TypeVar("SchemaT", bound=BaseModel)


class OutputParser:
    """Turn raw model text into a validated schema instance."""

    def parse(self, llm_output: str, schema: Type[SchemaT]) -> SchemaT:
        """
        Parse model output into `schema`.

        Handles:
        - JSON extraction from markdown code blocks
        - trailing-comma repair
        - schema validation

        Raises:
            LLMResponseError: no JSON object could be recovered
            SchemaValidationError: JSON was found but does not fit the schema
        """
        json_str = self._extract_json(llm_output or "")
        if not json_str:
            raise LLMResponseError("Could not extract JSON from model output")

        try:
            data = json.loads(json_str)
        except json.JSONDecodeError as e:
            fixed = self._try_fix_json(json_str)
            try:
                data = json.loads(fixed)
            except json.JSONDecodeError:
                logger.debug(f"Unparseable model output: {llm_output[:500]}")
                raise LLMResponseError(f"JSON parse error: {e}") from e
            logger.debug("Model output needed JSON repair")

        if not isinstance(data, dict):
            raise LLMResponseError(f"Expected a JSON object, got {type(data).__name__}")

        try:
            return schema.model_validate(data)
        except ValidationError as e:
            raise SchemaValidationError(schema.__name__, e) from e

    def _extract_json(self, text: str) -> Optional[str]:
        """Extract JSON from text, handling markdown code blocks."""
        stripped = text.strip()
        if stripped.startswith("{") and stripped.endswith("}"):
            return stripped

        matches = re.findall(r'```(?:json)?\s*\n?([\s\S]*?)\n?```', text)
        if matches:
            return max(matches, key=len).strip()

        matches = re.findall(r'\{[\s\S]*\}', text)
        if matches:
            return max(matches, key=len).strip()

        return None

    def _try_fix_json(self, json_str: str) -> str:
        """Remove trailing commas before closing braces/brackets."""
        fixed = re.sub(r',\s*}', '}', json_str)
        return re.sub(r',\s*]', ']', fixed)

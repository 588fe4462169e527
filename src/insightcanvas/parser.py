"""Defensive decoding of model output into concept records."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, List, Sequence

from pydantic import ValidationError

from .errors import (
    MalformedJSONError,
    MissingFieldError,
    NoJsonFoundError,
    TypeMismatchError,
)
from .schema import AnalysisPayload, MentalModel, RawConcept

logger = logging.getLogger(__name__)

_FENCE = "```"

_EXPECTED_TYPES = {
    "string_type": "string",
    "int_type": "integer",
    "int_parsing": "integer",
    "int_from_float": "integer",
    "bool_type": "boolean",
    "float_type": "number",
    "list_type": "array",
    "dict_type": "object",
    "model_type": "object",
    "model_attributes_type": "object",
    "none_required": "null",
}


@dataclass(slots=True)
class ParsedResponse:
    concepts: List[RawConcept]
    mental_model: MentalModel | None = None


def strip_code_fence(text: str) -> str:
    """Remove a surrounding markdown fence such as ```json ... ```.

    An opening line that already carries the payload is kept; brace slicing
    then drops the markers around it.
    """

    if not text.startswith(_FENCE):
        return text
    opening, _, _ = text.partition("\n")
    if "{" in opening:
        return text
    lines = text.split("\n")[1:]
    if lines and lines[-1].strip() == _FENCE:
        lines = lines[:-1]
    elif lines and lines[-1].rstrip().endswith(_FENCE):
        lines[-1] = lines[-1].rstrip()[: -len(_FENCE)]
    return "\n".join(lines).strip()


def extract_json_object(text: str) -> str:
    """Slice ``text`` from the first ``{`` to the last ``}``."""

    cleaned = strip_code_fence(text.strip())
    start = cleaned.find("{")
    end = cleaned.rfind("}")
    if start == -1 or end == -1 or end < start:
        raise NoJsonFoundError(text)
    return cleaned[start : end + 1]


def format_field_path(location: Sequence[Any]) -> str:
    """Render a pydantic error location as ``concepts[0].title``."""

    path = ""
    for part in location:
        if isinstance(part, int):
            path += f"[{part}]"
        else:
            path += f".{part}" if path else str(part)
    return path or "$"


class ResponseParser:
    """Extract and validate the concept payload from raw completion text."""

    def parse(self, raw_text: str) -> ParsedResponse:
        candidate = extract_json_object(raw_text or "")
        # syntax errors are reported with line and column
        try:
            json.loads(candidate)
        except json.JSONDecodeError as exc:
            detail = f"{exc.msg} (line {exc.lineno}, column {exc.colno})"
            logger.warning("parser.malformed_json detail=%s", detail)
            raise MalformedJSONError(detail, candidate) from exc

        try:
            payload = AnalysisPayload.model_validate_json(candidate)
        except ValidationError as exc:
            raise self._classify(exc, candidate) from exc

        logger.debug(
            "parser.success concepts=%s mental_model=%s",
            len(payload.concepts),
            payload.mental_model is not None,
        )
        return ParsedResponse(concepts=list(payload.concepts), mental_model=payload.mental_model)

    @staticmethod
    def _classify(exc: ValidationError, candidate: str) -> Exception:
        first = exc.errors()[0]
        field_path = format_field_path(first.get("loc", ()))
        error_type = first.get("type", "")
        if error_type == "json_invalid":
            return MalformedJSONError(first.get("msg", "invalid JSON"), candidate)
        if error_type == "missing":
            logger.warning("parser.missing_field field=%s", field_path)
            return MissingFieldError(field_path, candidate)
        expected = _EXPECTED_TYPES.get(error_type, first.get("msg", error_type))
        logger.warning("parser.type_mismatch field=%s expected=%s", field_path, expected)
        return TypeMismatchError(field_path, expected, candidate)


__all__ = [
    "ParsedResponse",
    "ResponseParser",
    "extract_json_object",
    "format_field_path",
    "strip_code_fence",
]

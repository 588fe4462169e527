"""Wire schema for concepts emitted by the language model.

The prompt builder embeds :data:`EXAMPLE_PAYLOAD` in its instructions and the
response parser validates against the models below, so both sides change
together. Bump :data:`SCHEMA_VERSION` whenever a field name changes.
"""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

SCHEMA_VERSION = "2024-12-26"


class _WireModel(BaseModel):
    model_config = ConfigDict(strict=True, frozen=True, populate_by_name=True)


class RawExcerpt(_WireModel):
    text: str
    location: str
    context: Optional[str] = None


class RawConcept(_WireModel):
    """A flat concept record as produced by one model response.

    ``external_id`` is only unique inside the response it came from.
    """

    external_id: str = Field(alias="id")
    title: str
    parent_external_id: Optional[str] = Field(default=None, alias="parent_id")
    order: int
    one_line_summary: str
    what_this_is: str
    why_it_matters: str
    key_points: List[str]
    excerpts: List[RawExcerpt]


class MentalModel(_WireModel):
    name: str
    description: str


class AnalysisPayload(_WireModel):
    concepts: List[RawConcept]
    mental_model: Optional[MentalModel] = None


EXAMPLE_PAYLOAD = """{
  "concepts": [
    {
      "id": "concept-001",
      "title": "Document Summary",
      "parent_id": null,
      "order": 0,
      "one_line_summary": "Main point in one sentence",
      "what_this_is": "A brief 2-3 sentence summary of the entire document",
      "why_it_matters": "Why this document is important",
      "key_points": ["Takeaway 1", "Takeaway 2", "Takeaway 3"],
      "excerpts": [
        {"text": "A verbatim quote from the document", "location": "Paragraph 2", "context": null}
      ]
    },
    {
      "id": "concept-002",
      "title": "Supporting Idea",
      "parent_id": "concept-001",
      "order": 0,
      "one_line_summary": "A narrower idea that belongs under the summary",
      "what_this_is": "What this idea says, in 2-3 sentences",
      "why_it_matters": "How it supports the parent concept",
      "key_points": ["Detail 1", "Detail 2"],
      "excerpts": []
    }
  ],
  "mental_model": {"name": "Framework name", "description": "How the ideas fit together"}
}"""


__all__ = [
    "SCHEMA_VERSION",
    "EXAMPLE_PAYLOAD",
    "RawExcerpt",
    "RawConcept",
    "MentalModel",
    "AnalysisPayload",
]

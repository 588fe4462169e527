"""Resolved domain records produced by an analysis run."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4


def _new_id() -> str:
    return uuid4().hex


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(slots=True)
class Excerpt:
    """A verbatim quotation supporting exactly one concept."""

    text: str
    location: str
    context: str | None = None
    id: str = field(default_factory=_new_id)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Excerpt":
        return cls(
            id=data.get("id") or _new_id(),
            text=str(data.get("text", "")),
            location=str(data.get("location", "")),
            context=data.get("context"),
        )


@dataclass(slots=True)
class Concept:
    """One node of the concept tree.

    ``parent_id`` always refers to another concept of the same
    :class:`AnalysisResult`, never to an identifier chosen by the model.
    """

    title: str
    order: int
    one_line_summary: str
    what_this_is: str
    why_it_matters: str
    key_points: list[str] = field(default_factory=list)
    excerpts: list[Excerpt] = field(default_factory=list)
    parent_id: str | None = None
    id: str = field(default_factory=_new_id)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Concept":
        return cls(
            id=data.get("id") or _new_id(),
            title=str(data.get("title", "")),
            parent_id=data.get("parent_id"),
            order=int(data.get("order", 0)),
            one_line_summary=str(data.get("one_line_summary", "")),
            what_this_is=str(data.get("what_this_is", "")),
            why_it_matters=str(data.get("why_it_matters", "")),
            key_points=[str(item) for item in data.get("key_points", [])],
            excerpts=[Excerpt.from_dict(item) for item in data.get("excerpts", [])],
        )


@dataclass(slots=True)
class MentalModelSummary:
    name: str
    description: str


@dataclass(slots=True)
class AnalysisResult:
    """Aggregate root handed to storage once an analysis completes."""

    document_name: str
    document_type: str
    model_used: str
    concepts: list[Concept] = field(default_factory=list)
    word_count: int | None = None
    source_url: str | None = None
    mental_model: MentalModelSummary | None = None
    chunk_count: int = 1
    demoted_concepts: int = 0
    analyzed_at: str = field(default_factory=_utc_now)
    id: str = field(default_factory=_new_id)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AnalysisResult":
        mental_model = data.get("mental_model")
        word_count = data.get("word_count")
        return cls(
            id=data.get("id") or _new_id(),
            document_name=str(data.get("document_name", "")),
            document_type=str(data.get("document_type", "text")),
            analyzed_at=data.get("analyzed_at") or _utc_now(),
            model_used=str(data.get("model_used", "")),
            word_count=int(word_count) if word_count is not None else None,
            source_url=data.get("source_url"),
            concepts=[Concept.from_dict(item) for item in data.get("concepts", [])],
            mental_model=MentalModelSummary(**mental_model) if mental_model else None,
            chunk_count=int(data.get("chunk_count", 1)),
            demoted_concepts=int(data.get("demoted_concepts", 0)),
        )


__all__ = ["Excerpt", "Concept", "MentalModelSummary", "AnalysisResult"]

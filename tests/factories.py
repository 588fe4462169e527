"""Builders for model payloads and a scripted completion backend."""

from __future__ import annotations

import json
from typing import Any, Callable, Iterable


def make_concept(
    concept_id: str,
    title: str,
    *,
    parent_id: str | None = None,
    order: int = 0,
) -> dict[str, Any]:
    return {
        "id": concept_id,
        "title": title,
        "parent_id": parent_id,
        "order": order,
        "one_line_summary": f"{title} in one line",
        "what_this_is": f"{title} explained",
        "why_it_matters": f"{title} matters",
        "key_points": [f"{title} point"],
        "excerpts": [{"text": f"quote about {title}", "location": "Paragraph 1", "context": None}],
    }


def make_response(concepts: Iterable[dict[str, Any]], mental_model: dict[str, str] | None = None) -> str:
    return json.dumps({"concepts": list(concepts), "mental_model": mental_model})


class FakeCompletion:
    """Scripted completion backend; each call consumes the next reply."""

    def __init__(self, replies: Iterable[str | BaseException] | Callable[[str], str]) -> None:
        self.model = "fake-model"
        self.calls: list[tuple[str, str]] = []
        self._responder = replies if callable(replies) else None
        self._replies = [] if callable(replies) else list(replies)

    async def complete(self, system_prompt: str, user_prompt: str, max_tokens: int | None = None) -> str:
        self.calls.append((system_prompt, user_prompt))
        if self._responder is not None:
            return self._responder(user_prompt)
        reply = self._replies.pop(0)
        if isinstance(reply, BaseException):
            raise reply
        return reply

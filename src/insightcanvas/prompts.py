"""Prompt templates for concept extraction."""

from __future__ import annotations

from .errors import bounded_preview
from .schema import EXAMPLE_PAYLOAD

_SYSTEM_PROMPT = """You are a document analysis assistant. Extract the key concepts of the document you receive and organise them as a hierarchy.

For each concept provide:
- "id": a short identifier, unique within your answer
- "title": a concise name for the concept
- "parent_id": the "id" of the broader concept it belongs to, or null for top-level concepts
- "order": the position of the concept among its siblings, starting at 0
- "one_line_summary": the main point in one sentence
- "what_this_is": a 2-3 sentence explanation
- "why_it_matters": why the concept is important
- "key_points": a list of short takeaways
- "excerpts": verbatim quotes from the document with their "location" and optional "context"

OUTPUT ONLY valid JSON matching this example:
{example}

Rules:
- Every "parent_id" must be null or the "id" of another concept in your answer
- Quote excerpts exactly as they appear in the document
- Set "mental_model" to null when no overarching framework applies
- No commentary, no markdown, no text outside the JSON object"""

_CHUNK_NOTE = """

You are reading one part of a larger document. Only describe concepts found in this part; other parts are analysed separately."""

_USER_PROMPT = """{header}Analyze this document:

{text}

Output ONLY JSON, no other text."""

_REPAIR_PROMPT = """{original}

Your previous answer was:
<rejected>
{rejected}
</rejected>

It could not be used: {problem}
Re-emit the complete answer as a single valid JSON object that follows the schema exactly. Output ONLY JSON."""


class PromptBuilder:
    """Render the system and user messages for one analysis call."""

    def build_system_prompt(self, is_chunk: bool = False) -> str:
        prompt = _SYSTEM_PROMPT.format(example=EXAMPLE_PAYLOAD)
        if is_chunk:
            prompt += _CHUNK_NOTE
        return prompt

    def build_user_prompt(self, text: str, chunk_info: str | None = None) -> str:
        header = f"[{chunk_info}]\n\n" if chunk_info else ""
        return _USER_PROMPT.format(header=header, text=text)

    def build_repair_prompt(self, user_prompt: str, problem: str, rejected: str) -> str:
        """Follow-up message asking the model to re-emit valid JSON.

        ``rejected`` is quoted back, truncated to the diagnostic preview limit.
        """

        return _REPAIR_PROMPT.format(
            original=user_prompt,
            problem=problem,
            rejected=bounded_preview(rejected) or "(empty reply)",
        )


__all__ = ["PromptBuilder"]

"""Paragraph-bounded chunking for documents too large for one model call."""

from __future__ import annotations

from typing import List

PARAGRAPH_SEPARATOR = "\n\n"


def count_words(text: str) -> int:
    """Count whitespace-delimited tokens."""

    return len(text.split())


def split_into_chunks(text: str, target_words: int) -> List[str]:
    """Split ``text`` into chunks of roughly ``target_words`` words.

    Paragraphs (separated by a blank line) are accumulated greedily. A chunk is
    closed when the next paragraph would push it over ``target_words`` and the
    chunk already holds words; a single oversized paragraph is never split, so
    such a chunk may exceed the target. Paragraphs without words stay attached
    to the chunk being built, which keeps ``PARAGRAPH_SEPARATOR.join(chunks)``
    identical to ``text``.
    """

    if not text:
        return []
    if target_words <= 0:
        raise ValueError("target_words must be positive")

    chunks: List[str] = []
    current: List[str] = []
    current_words = 0

    for paragraph in text.split(PARAGRAPH_SEPARATOR):
        words = count_words(paragraph)
        if words and current_words and current_words + words > target_words:
            chunks.append(PARAGRAPH_SEPARATOR.join(current))
            current = [paragraph]
            current_words = words
            continue
        current.append(paragraph)
        current_words += words

    if current:
        chunks.append(PARAGRAPH_SEPARATOR.join(current))
    return chunks


__all__ = ["PARAGRAPH_SEPARATOR", "count_words", "split_into_chunks"]

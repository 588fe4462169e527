"""Cross-chunk concept deduplication."""

from __future__ import annotations

import logging
from typing import Iterable, List

from .schema import RawConcept

logger = logging.getLogger(__name__)


def merge_concepts(concepts: Iterable[RawConcept]) -> List[RawConcept]:
    """Drop concepts whose title was already seen and renumber ``order``.

    Titles are compared exactly, so near-identical wording is kept twice.
    The first occurrence wins, which makes input order significant.
    """

    seen: set[str] = set()
    unique: List[RawConcept] = []
    dropped = 0
    for concept in concepts:
        if concept.title in seen:
            dropped += 1
            continue
        seen.add(concept.title)
        unique.append(concept)

    if dropped:
        logger.info("merger.duplicates_dropped count=%s kept=%s", dropped, len(unique))
    return [concept.model_copy(update={"order": index}) for index, concept in enumerate(unique)]


__all__ = ["merge_concepts"]

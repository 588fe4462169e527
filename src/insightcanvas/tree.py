"""Resolve model-assigned parent references into a concept tree."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Sequence

from .models import Concept, Excerpt
from .schema import RawConcept

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class AssembledTree:
    concepts: List[Concept]
    demoted: List[str] = field(default_factory=list)

    @property
    def demoted_count(self) -> int:
        return len(self.demoted)


@dataclass(slots=True)
class ConceptNode:
    concept: Concept
    children: List["ConceptNode"] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        concept = self.concept
        return {
            "id": concept.id,
            "title": concept.title,
            "order": concept.order,
            "one_line_summary": concept.one_line_summary,
            "children": [child.to_dict() for child in self.children],
        }


def scope_external_ids(concepts: Iterable[RawConcept], scope: str | int) -> List[RawConcept]:
    """Prefix external ids with ``scope`` so ids from separate calls cannot collide."""

    scoped: List[RawConcept] = []
    for concept in concepts:
        parent = concept.parent_external_id
        scoped.append(
            concept.model_copy(
                update={
                    "external_id": f"{scope}:{concept.external_id}",
                    "parent_external_id": f"{scope}:{parent}" if parent is not None else None,
                }
            )
        )
    return scoped


def _to_concept(raw: RawConcept) -> Concept:
    return Concept(
        title=raw.title,
        order=raw.order,
        one_line_summary=raw.one_line_summary,
        what_this_is=raw.what_this_is,
        why_it_matters=raw.why_it_matters,
        key_points=list(raw.key_points),
        excerpts=[
            Excerpt(text=item.text, location=item.location, context=item.context)
            for item in raw.excerpts
        ],
    )


def assemble_concepts(raw_concepts: Sequence[RawConcept]) -> AssembledTree:
    """Build concepts with fresh ids and resolved parent links.

    Parents that are missing from the batch, point at the concept itself, or
    would close a cycle are dropped and the concept becomes top-level.
    """

    concepts: List[Concept] = []
    id_map: Dict[str, str] = {}
    for raw in raw_concepts:
        concept = _to_concept(raw)
        concepts.append(concept)
        if raw.external_id in id_map:
            logger.warning("tree.duplicate_external_id external_id=%s", raw.external_id)
            continue
        id_map[raw.external_id] = concept.id

    demoted: List[str] = []
    for raw, concept in zip(raw_concepts, concepts):
        reference = raw.parent_external_id
        if reference is None:
            continue
        parent_id = id_map.get(reference)
        if parent_id is None or parent_id == concept.id:
            logger.warning(
                "tree.integrity.dangling_parent concept=%r parent_ref=%s",
                concept.title,
                reference,
            )
            demoted.append(concept.title)
            continue
        concept.parent_id = parent_id

    parents = {concept.id: concept.parent_id for concept in concepts}
    for concept in concepts:
        cursor = parents[concept.id]
        visited = {concept.id}
        while cursor is not None and cursor not in visited:
            visited.add(cursor)
            cursor = parents[cursor]
        if cursor == concept.id:
            logger.warning("tree.integrity.cycle concept=%r", concept.title)
            concept.parent_id = None
            parents[concept.id] = None
            demoted.append(concept.title)

    return AssembledTree(concepts=concepts, demoted=demoted)


def build_hierarchy(concepts: Iterable[Concept]) -> List[ConceptNode]:
    """Nest concepts under their parents, siblings sorted by ``order``."""

    nodes = {concept.id: ConceptNode(concept) for concept in concepts}
    roots: List[ConceptNode] = []
    for node in nodes.values():
        parent = nodes.get(node.concept.parent_id) if node.concept.parent_id else None
        if parent is None:
            roots.append(node)
        else:
            parent.children.append(node)

    def _sort(items: List[ConceptNode]) -> None:
        items.sort(key=lambda item: item.concept.order)
        for item in items:
            _sort(item.children)

    _sort(roots)
    return roots


def render_outline(nodes: Sequence[ConceptNode], indent: str = "  ") -> str:
    lines: List[str] = []

    def _walk(items: Sequence[ConceptNode], depth: int) -> None:
        for node in items:
            line = f"{indent * depth}- {node.concept.title}"
            if node.concept.one_line_summary:
                line = f"{line}: {node.concept.one_line_summary}"
            lines.append(line)
            _walk(node.children, depth + 1)

    _walk(nodes, 0)
    return "\n".join(lines)


__all__ = [
    "AssembledTree",
    "ConceptNode",
    "assemble_concepts",
    "build_hierarchy",
    "render_outline",
    "scope_external_ids",
]

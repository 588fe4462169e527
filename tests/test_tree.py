from __future__ import annotations

import json
import logging

from insightcanvas.schema import RawConcept
from insightcanvas.tree import (
    assemble_concepts,
    build_hierarchy,
    render_outline,
    scope_external_ids,
)
from factories import make_concept


def _raw(concept_id: str, title: str, **kwargs) -> RawConcept:
    return RawConcept.model_validate_json(json.dumps(make_concept(concept_id, title, **kwargs)))


def _assert_acyclic(concepts) -> None:
    parents = {concept.id: concept.parent_id for concept in concepts}
    for concept in concepts:
        seen = set()
        cursor = concept.id
        while cursor is not None:
            assert cursor not in seen
            seen.add(cursor)
            cursor = parents[cursor]


def test_parent_references_resolve_to_fresh_ids():
    tree = assemble_concepts([_raw("root", "Root"), _raw("child", "Child", parent_id="root")])

    root, child = tree.concepts
    assert root.parent_id is None
    assert child.parent_id == root.id
    assert root.id not in {"root", "child"}
    assert tree.demoted_count == 0


def test_child_listed_before_parent_still_links():
    tree = assemble_concepts([_raw("child", "Child", parent_id="root"), _raw("root", "Root")])

    child, root = tree.concepts
    assert child.parent_id == root.id


def test_unknown_parent_is_demoted_and_logged(caplog):
    raw = [_raw("c1", "Known"), _raw("c2", "Orphan", parent_id="ghost-999")]

    with caplog.at_level(logging.WARNING, logger="insightcanvas.tree"):
        tree = assemble_concepts(raw)

    orphan = tree.concepts[1]
    assert orphan.parent_id is None
    assert tree.demoted == ["Orphan"]
    assert "tree.integrity.dangling_parent" in caplog.text
    assert "ghost-999" in caplog.text


def test_self_reference_is_demoted():
    tree = assemble_concepts([_raw("c1", "Loner", parent_id="c1")])

    assert tree.concepts[0].parent_id is None
    assert tree.demoted_count == 1


def test_cycles_are_broken():
    raw = [
        _raw("a", "A", parent_id="c"),
        _raw("b", "B", parent_id="a"),
        _raw("c", "C", parent_id="b"),
        _raw("d", "D", parent_id="a"),
    ]

    tree = assemble_concepts(raw)

    _assert_acyclic(tree.concepts)
    assert tree.demoted_count == 1
    ids = {concept.id for concept in tree.concepts}
    assert all(concept.parent_id is None or concept.parent_id in ids for concept in tree.concepts)


def test_duplicate_external_ids_link_to_first_occurrence():
    raw = [_raw("x", "First"), _raw("x", "Second"), _raw("y", "Child", parent_id="x")]

    tree = assemble_concepts(raw)

    first, second, child = tree.concepts
    assert child.parent_id == first.id
    assert first.id != second.id


def test_excerpts_are_owned_by_their_concept():
    tree = assemble_concepts([_raw("c1", "One"), _raw("c2", "Two")])

    one, two = tree.concepts
    assert one.excerpts[0].text == "quote about One"
    assert one.excerpts[0].id != two.excerpts[0].id


def test_scoped_ids_keep_chunks_apart():
    first = scope_external_ids([_raw("concept-001", "Alpha"), _raw("concept-002", "Beta", parent_id="concept-001")], 1)
    second = scope_external_ids([_raw("concept-001", "Gamma"), _raw("concept-002", "Delta", parent_id="concept-001")], 2)

    tree = assemble_concepts(first + second)

    alpha, beta, gamma, delta = tree.concepts
    assert beta.parent_id == alpha.id
    assert delta.parent_id == gamma.id
    assert tree.demoted_count == 0


def test_hierarchy_sorts_children_and_renders_outline():
    raw = [
        _raw("r", "Root", order=0),
        _raw("b", "Second", parent_id="r", order=1),
        _raw("a", "First", parent_id="r", order=0),
        _raw("z", "Other root", order=1),
    ]
    tree = assemble_concepts(raw)

    nodes = build_hierarchy(tree.concepts)

    assert [node.concept.title for node in nodes] == ["Root", "Other root"]
    assert [child.concept.title for child in nodes[0].children] == ["First", "Second"]
    assert nodes[0].to_dict()["children"][0]["title"] == "First"
    assert render_outline(nodes).splitlines() == [
        "- Root: Root in one line",
        "  - First: First in one line",
        "  - Second: Second in one line",
        "- Other root: Other root in one line",
    ]

from __future__ import annotations

import json

import pytest

from insightcanvas.errors import (
    PREVIEW_LIMIT,
    MalformedJSONError,
    MissingFieldError,
    NoJsonFoundError,
    TypeMismatchError,
)
from insightcanvas.parser import ResponseParser, extract_json_object, strip_code_fence
from factories import make_concept, make_response


@pytest.fixture()
def payload() -> str:
    return make_response(
        [
            make_concept("c1", "Attention"),
            make_concept("c2", "Focus", parent_id="c1", order=1),
        ],
        mental_model={"name": "Economy of attention", "description": "Attention is scarce"},
    )


def test_parse_clean_payload(payload: str):
    parsed = ResponseParser().parse(payload)

    assert [concept.title for concept in parsed.concepts] == ["Attention", "Focus"]
    assert parsed.concepts[1].parent_external_id == "c1"
    assert parsed.concepts[0].excerpts[0].location == "Paragraph 1"
    assert parsed.mental_model is not None
    assert parsed.mental_model.name == "Economy of attention"


def test_fenced_and_chatty_output_parse_identically(payload: str):
    parser = ResponseParser()
    clean = parser.parse(payload)

    fenced = parser.parse(f"```json\n{payload}\n```")
    chatty = parser.parse(f"Sure! Here is the analysis:\n{payload}\nLet me know if you need more.")
    fenced_chatty = parser.parse(f"```\nHere you go {payload} done\n```")

    assert fenced == clean
    assert chatty == clean
    assert fenced_chatty == clean


def test_missing_mental_model_defaults_to_none():
    raw = json.dumps({"concepts": [make_concept("c1", "Only")]})

    parsed = ResponseParser().parse(raw)

    assert parsed.mental_model is None
    assert parsed.concepts[0].parent_external_id is None


def test_refusal_without_json_raises_no_json_found():
    with pytest.raises(NoJsonFoundError) as excinfo:
        ResponseParser().parse("I cannot summarize this.")

    assert excinfo.value.category == "parse"
    assert excinfo.value.preview == "I cannot summarize this."


def test_reversed_braces_raise_no_json_found():
    with pytest.raises(NoJsonFoundError):
        extract_json_object("} nothing here {")


def test_malformed_json_reports_position():
    with pytest.raises(MalformedJSONError) as excinfo:
        ResponseParser().parse('{"concepts": [ {"id": "c1",, } ]}')

    assert "line 1" in excinfo.value.message
    assert "column" in excinfo.value.message


def test_missing_field_names_its_path():
    concept = make_concept("c1", "Attention")
    del concept["why_it_matters"]

    with pytest.raises(MissingFieldError) as excinfo:
        ResponseParser().parse(make_response([concept]))

    assert excinfo.value.field_path == "concepts[0].why_it_matters"


def test_missing_concepts_key():
    with pytest.raises(MissingFieldError) as excinfo:
        ResponseParser().parse('{"mental_model": null}')

    assert excinfo.value.field_path == "concepts"


def test_type_mismatch_names_path_and_expected_type():
    concept = make_concept("c1", "Attention")
    concept["order"] = "first"

    with pytest.raises(TypeMismatchError) as excinfo:
        ResponseParser().parse(make_response([concept]))

    assert excinfo.value.field_path == "concepts[0].order"
    assert excinfo.value.expected_type == "integer"


def test_key_points_must_be_an_array():
    concept = make_concept("c1", "Attention")
    concept["key_points"] = "just one point"

    with pytest.raises(TypeMismatchError) as excinfo:
        ResponseParser().parse(make_response([concept]))

    assert excinfo.value.field_path == "concepts[0].key_points"
    assert excinfo.value.expected_type == "array"


def test_error_preview_is_bounded():
    raw = "x" * (PREVIEW_LIMIT * 3)

    with pytest.raises(NoJsonFoundError) as excinfo:
        ResponseParser().parse(raw)

    assert len(excinfo.value.preview) <= PREVIEW_LIMIT


def test_strip_code_fence_leaves_plain_text_alone():
    assert strip_code_fence('{"a": 1}') == '{"a": 1}'
    assert strip_code_fence('```json\n{"a": 1}\n```') == '{"a": 1}'


def test_nested_list_items_are_indexed_in_path():
    concept = make_concept("c1", "Attention")
    concept["key_points"] = ["fine", 7]

    with pytest.raises(TypeMismatchError) as excinfo:
        ResponseParser().parse(make_response([concept]))

    assert excinfo.value.field_path == "concepts[0].key_points[1]"
    assert excinfo.value.expected_type == "string"


def test_single_line_fence_parses_like_clean_payload(payload: str):
    parser = ResponseParser()
    compact = json.dumps(json.loads(payload))

    assert parser.parse(f"```json {compact}```") == parser.parse(payload)
    assert parser.parse(f"```{compact}```") == parser.parse(payload)

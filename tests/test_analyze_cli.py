from __future__ import annotations

import json
from pathlib import Path

import pytest

from insightcanvas.scripts import analyze_document
from factories import FakeCompletion, make_concept, make_response

_REPLY = make_response(
    [
        make_concept("c1", "Root"),
        make_concept("c2", "Child", parent_id="c1"),
    ],
    mental_model={"name": "Layers", "description": "Ideas stack"},
)


def _install_fake_client(monkeypatch: pytest.MonkeyPatch, replies) -> None:
    class _FakeClient(FakeCompletion):
        def __init__(self, settings, *, metrics=None) -> None:
            super().__init__(list(replies))

        async def __aenter__(self) -> "_FakeClient":
            return self

        async def __aexit__(self, exc_type, exc, tb) -> None:
            return None

    monkeypatch.setattr(analyze_document, "CompletionClient", _FakeClient)


@pytest.fixture()
def document(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    monkeypatch.setenv("ANTHROPIC_API_KEY", "test-key")
    monkeypatch.setenv("DATA_DIR", str(tmp_path / "data"))
    monkeypatch.setenv("OBSERVABILITY_METRICS_ENABLED", "false")
    path = tmp_path / "notes.txt"
    path.write_text("Some ideas about layers.", encoding="utf-8")
    return path


def test_cli_prints_outline_and_progress(document: Path, monkeypatch: pytest.MonkeyPatch, capsys) -> None:
    _install_fake_client(monkeypatch, [_REPLY])

    exit_code = analyze_document.main([str(document)])

    captured = capsys.readouterr()
    assert exit_code == 0
    assert "Layers: Ideas stack" in captured.out
    assert "- Root: Root in one line\n  - Child: Child in one line" in captured.out
    assert "analyzing: Analyzing content... [1/1]" in captured.err


def test_cli_json_output_and_save(document: Path, tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys) -> None:
    _install_fake_client(monkeypatch, [_REPLY])

    exit_code = analyze_document.main([str(document), "--json", "--save"])

    captured = capsys.readouterr()
    assert exit_code == 0
    payload = json.loads(captured.out)
    assert payload["document_name"] == "notes.txt"
    saved = tmp_path / "data" / "analyses" / f"{payload['id']}.json"
    assert saved.exists()


def test_cli_reports_failure(document: Path, monkeypatch: pytest.MonkeyPatch, capsys) -> None:
    _install_fake_client(monkeypatch, ["I cannot summarize this."])

    exit_code = analyze_document.main([str(document)])

    captured = capsys.readouterr()
    assert exit_code == 1
    assert "[parse] No JSON object found in model output" in captured.err
    assert "Document: notes.txt (4 words)" in captured.err


def test_cli_rejects_unsupported_document(tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys) -> None:
    monkeypatch.setenv("ANTHROPIC_API_KEY", "test-key")
    path = tmp_path / "slides.pdf"
    path.write_bytes(b"%PDF-1.7")

    exit_code = analyze_document.main([str(path)])

    assert exit_code == 1
    assert "[document]" in capsys.readouterr().err

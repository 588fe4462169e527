"""CLI for analysing a local document and printing its concept outline."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from insightcanvas.analyzer import AnalysisOrchestrator, ProgressEvent
from insightcanvas.completion import CompletionClient
from insightcanvas.config import Settings
from insightcanvas.documents import ParsedDocument, load_document
from insightcanvas.errors import AnalysisError, describe_failure
from insightcanvas.models import AnalysisResult
from insightcanvas.observability import MetricsRecorder
from insightcanvas.storage import AnalysisStore
from insightcanvas.tree import build_hierarchy, render_outline


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Extract a concept map from a document")
    parser.add_argument("path", help="Path to a .txt, .md or .html document")
    parser.add_argument(
        "--save",
        action="store_true",
        help="Persist the analysis under DATA_DIR/analyses",
    )
    parser.add_argument(
        "--json",
        dest="as_json",
        action="store_true",
        help="Print the full analysis as JSON instead of an outline",
    )
    parser.add_argument(
        "--source-url",
        dest="source_url",
        help="Original location of the document, stored with the analysis",
    )
    parser.add_argument("--verbose", action="store_true", help="Log pipeline details to stderr")
    return parser


def _print_progress(event: ProgressEvent) -> None:
    suffix = ""
    if event.current is not None and event.total is not None:
        suffix = f" [{event.current}/{event.total}]"
    print(f"{event.phase.value}: {event.message}{suffix}", file=sys.stderr)


async def _analyze(settings: Settings, document: ParsedDocument, source_url: str | None) -> AnalysisResult:
    metrics = MetricsRecorder(
        enabled=settings.observability_metrics_enabled,
        namespace=settings.observability_namespace,
    )
    async with CompletionClient(settings, metrics=metrics) as completion:
        orchestrator = AnalysisOrchestrator(settings, completion, metrics=metrics)
        return await orchestrator.analyze(document, progress=_print_progress, source_url=source_url)


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )

    settings = Settings.from_env()
    if not settings.anthropic_api_key:  # pragma: no cover - CLI validation
        parser.error("ANTHROPIC_API_KEY is not set")
        return 1

    document: ParsedDocument | None = None
    try:
        document = load_document(Path(args.path))
        result = asyncio.run(_analyze(settings, document, args.source_url))
    except AnalysisError as exc:
        print(describe_failure(exc, document), file=sys.stderr)
        return 1

    if args.save:
        AnalysisStore(Path(settings.data_dir)).save(result)
        print(f"Saved analysis {result.id}", file=sys.stderr)

    if args.as_json:
        print(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))
    else:
        if result.mental_model is not None:
            print(f"{result.mental_model.name}: {result.mental_model.description}\n")
        print(render_outline(build_hierarchy(result.concepts)))
        if result.demoted_concepts:
            print(
                f"\n{result.demoted_concepts} concept(s) had invalid parents and were moved to the top level",
                file=sys.stderr,
            )
    return 0


if __name__ == "__main__":  # pragma: no cover - CLI entry
    sys.exit(main())

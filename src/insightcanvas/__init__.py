"""InsightCanvas application package."""

from __future__ import annotations

from .analyzer import AnalysisOrchestrator, AnalysisPhase, ProgressEvent
from .config import Settings
from .documents import ParsedDocument, load_document
from .models import AnalysisResult, Concept, Excerpt

__all__ = [
    "Settings",
    "AnalysisOrchestrator",
    "AnalysisPhase",
    "ProgressEvent",
    "ParsedDocument",
    "load_document",
    "AnalysisResult",
    "Concept",
    "Excerpt",
    "CompletionClient",
    "create_app",
]


def __getattr__(name: str):  # pragma: no cover - small helper
    if name == "CompletionClient":
        from .completion import CompletionClient

        return CompletionClient
    if name == "create_app":
        from .app import create_app

        return create_app
    raise AttributeError(f"module 'insightcanvas' has no attribute {name}")

"""Error taxonomy for the document analysis pipeline."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover - type hints only
    from .documents import ParsedDocument

PREVIEW_LIMIT = 800


def bounded_preview(text: str | None, limit: int = PREVIEW_LIMIT) -> str:
    """Return at most ``limit`` characters of ``text`` for diagnostics."""

    if not text:
        return ""
    if len(text) <= limit:
        return text
    return text[: limit - 1].rstrip() + "…"


class AnalysisError(Exception):
    """Base class for every failure surfaced by the analysis pipeline."""

    category = "analysis"

    def __init__(self, message: str, *, preview: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.preview = bounded_preview(preview)


# Transport ----------------------------------------------------------------


class TransportError(AnalysisError):
    """Network level failure talking to the completion endpoint."""

    category = "transport"


class CompletionNetworkError(TransportError):
    def __init__(self, detail: str) -> None:
        super().__init__(f"Network error: {detail}")
        self.detail = detail


# Protocol -----------------------------------------------------------------


class ProtocolError(AnalysisError):
    """The endpoint answered, but not with a usable completion."""

    category = "protocol"


class CompletionHTTPError(ProtocolError):
    def __init__(self, status: int, body: str) -> None:
        preview = bounded_preview(body)
        super().__init__(f"API error: status {status}", preview=preview)
        self.status = status
        self.body = preview


class MalformedEnvelopeError(ProtocolError):
    def __init__(self, detail: str, *, body: str | None = None) -> None:
        super().__init__(f"Invalid response envelope: {detail}", preview=body)
        self.detail = detail


# Parse --------------------------------------------------------------------


class ParseError(AnalysisError):
    """The completion text could not be decoded into concepts."""

    category = "parse"


class NoJsonFoundError(ParseError):
    def __init__(self, text: str) -> None:
        super().__init__("No JSON object found in model output", preview=text)


class MalformedJSONError(ParseError):
    def __init__(self, detail: str, text: str) -> None:
        super().__init__(f"Malformed JSON: {detail}", preview=text)
        self.detail = detail


class MissingFieldError(ParseError):
    def __init__(self, field_path: str, text: str) -> None:
        super().__init__(f"Missing required field '{field_path}'", preview=text)
        self.field_path = field_path


class TypeMismatchError(ParseError):
    def __init__(self, field_path: str, expected_type: str, text: str) -> None:
        super().__init__(
            f"Field '{field_path}' should be of type {expected_type}",
            preview=text,
        )
        self.field_path = field_path
        self.expected_type = expected_type


# Orchestration ------------------------------------------------------------


class AnalysisCancelledError(AnalysisError):
    category = "orchestration"

    def __init__(self, document_name: str) -> None:
        super().__init__(f"Analysis of '{document_name}' was cancelled")
        self.document_name = document_name


class AnalysisInProgressError(AnalysisError):
    category = "orchestration"

    def __init__(self, document_name: str) -> None:
        super().__init__(f"An analysis of '{document_name}' is already running")
        self.document_name = document_name


# Configuration ------------------------------------------------------------


class ConfigurationError(AnalysisError):
    """Required settings are missing, so no request can be made."""

    category = "configuration"

    def __init__(self, setting: str) -> None:
        super().__init__(f"{setting} must be set to call the completion endpoint")
        self.setting = setting


# Documents ----------------------------------------------------------------


class DocumentError(AnalysisError):
    category = "document"


class UnsupportedDocumentError(DocumentError):
    def __init__(self, file_name: str, extension: str) -> None:
        label = f".{extension}" if extension else "(no extension)"
        super().__init__(f"Document format {label} is not supported: {file_name}")
        self.file_name = file_name
        self.extension = extension


class DocumentReadError(DocumentError):
    def __init__(self, file_name: str, detail: str) -> None:
        super().__init__(f"Error reading document {file_name}: {detail}")
        self.file_name = file_name
        self.detail = detail


def describe_failure(error: BaseException, document: "ParsedDocument | None" = None) -> str:
    """Render a user-facing failure report with enough context to reproduce it."""

    category = getattr(error, "category", "internal")
    lines = [f"[{category}] {error}"]
    if document is not None:
        lines.append(f"Document: {document.file_name} ({document.word_count} words)")
    preview = getattr(error, "preview", "")
    if preview:
        lines.append("Response preview:")
        lines.append(preview)
    return "\n".join(lines)


__all__ = [
    "PREVIEW_LIMIT",
    "bounded_preview",
    "describe_failure",
    "AnalysisError",
    "TransportError",
    "CompletionNetworkError",
    "ProtocolError",
    "CompletionHTTPError",
    "MalformedEnvelopeError",
    "ParseError",
    "NoJsonFoundError",
    "MalformedJSONError",
    "MissingFieldError",
    "TypeMismatchError",
    "AnalysisCancelledError",
    "AnalysisInProgressError",
    "ConfigurationError",
    "DocumentError",
    "UnsupportedDocumentError",
    "DocumentReadError",
]

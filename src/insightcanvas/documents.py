"""Turn uploaded files into :class:`ParsedDocument` records."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from bs4 import BeautifulSoup

from .chunker import count_words
from .errors import DocumentReadError, UnsupportedDocumentError

logger = logging.getLogger(__name__)

_INLINE_SPACE_RE = re.compile(r"[ \t\xa0]+")
_BLANK_RUN_RE = re.compile(r"\n\s*\n\s*\n+")


class DocumentType(str, Enum):
    TEXT = "text"
    MARKDOWN = "markdown"
    HTML = "html"
    DOCX = "docx"


_EXTENSION_TYPES: dict[str, DocumentType] = {
    "txt": DocumentType.TEXT,
    "md": DocumentType.MARKDOWN,
    "markdown": DocumentType.MARKDOWN,
    "html": DocumentType.HTML,
    "htm": DocumentType.HTML,
    "docx": DocumentType.DOCX,
}


@dataclass(frozen=True, slots=True)
class ParsedDocument:
    """Immutable text document handed to the analysis pipeline."""

    text: str
    word_count: int
    document_type: DocumentType
    file_name: str

    @classmethod
    def from_text(
        cls,
        text: str,
        document_type: DocumentType | str = DocumentType.TEXT,
        file_name: str = "document.txt",
    ) -> "ParsedDocument":
        return cls(
            text=text,
            word_count=count_words(text),
            document_type=DocumentType(document_type),
            file_name=file_name,
        )


def _extension(file_name: str) -> str:
    return Path(file_name).suffix.lower().lstrip(".")


def is_supported(file_name: str) -> bool:
    """Return ``True`` when the extension is one the parser recognises."""

    return _extension(file_name) in _EXTENSION_TYPES


def html_to_text(html: str) -> str:
    """Strip markup, scripts and styles, keeping paragraph breaks."""

    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(["script", "style"]):
        tag.decompose()
    text = soup.get_text(" ")
    lines = [_INLINE_SPACE_RE.sub(" ", line).strip() for line in text.splitlines()]
    text = "\n".join(lines)
    return _BLANK_RUN_RE.sub("\n\n", text).strip()


def parse_document_bytes(data: bytes, file_name: str) -> ParsedDocument:
    """Decode raw file contents according to the file extension."""

    extension = _extension(file_name)
    document_type = _EXTENSION_TYPES.get(extension)
    if document_type is None or document_type is DocumentType.DOCX:
        logger.warning("document.unsupported file=%s extension=%s", file_name, extension)
        raise UnsupportedDocumentError(file_name, extension)

    try:
        raw = data.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise DocumentReadError(file_name, "could not decode text as UTF-8") from exc

    if document_type is DocumentType.HTML:
        text = html_to_text(raw)
    else:
        text = raw.strip()

    document = ParsedDocument.from_text(text, document_type, file_name)
    logger.info(
        "document.parsed file=%s type=%s words=%s chars=%s",
        file_name,
        document_type.value,
        document.word_count,
        len(text),
    )
    return document


def load_document(path: str | Path) -> ParsedDocument:
    """Read and parse a document from disk."""

    file_path = Path(path)
    if not is_supported(file_path.name):
        raise UnsupportedDocumentError(file_path.name, _extension(file_path.name))
    try:
        data = file_path.read_bytes()
    except OSError as exc:
        raise DocumentReadError(file_path.name, str(exc)) from exc
    return parse_document_bytes(data, file_path.name)


__all__ = [
    "DocumentType",
    "ParsedDocument",
    "html_to_text",
    "is_supported",
    "load_document",
    "parse_document_bytes",
]

"""File-backed persistence for completed analyses."""

from __future__ import annotations

import json
import logging
import os
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import List

from .models import AnalysisResult

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class AnalysisSummary:
    id: str
    document_name: str
    document_type: str
    analyzed_at: str
    model_used: str
    word_count: int | None
    concept_count: int


class AnalysisStore:
    """Store each :class:`AnalysisResult` as one JSON document.

    Concepts and excerpts are embedded in the analysis file, so deleting an
    analysis removes them as well.
    """

    def __init__(self, root: Path) -> None:
        self._root = Path(root)
        self._analyses_dir = self._root / "analyses"
        self._lock = threading.Lock()
        self._analyses_dir.mkdir(parents=True, exist_ok=True)

    def _path_for(self, analysis_id: str) -> Path:
        safe_id = "".join(char for char in analysis_id if char.isalnum() or char in "-_")
        if not safe_id:
            raise ValueError("Invalid analysis identifier")
        return self._analyses_dir / f"{safe_id}.json"

    def save(self, result: AnalysisResult) -> None:
        path = self._path_for(result.id)
        tmp_path = path.with_suffix(".json.tmp")
        with self._lock:
            with tmp_path.open("w", encoding="utf-8") as handle:
                json.dump(result.to_dict(), handle, indent=2, ensure_ascii=False)
            os.replace(tmp_path, path)
        logger.info(
            "analysis.saved id=%s document=%s concepts=%s",
            result.id,
            result.document_name,
            len(result.concepts),
        )

    def get(self, analysis_id: str) -> AnalysisResult | None:
        try:
            path = self._path_for(analysis_id)
        except ValueError:
            return None
        if not path.exists():
            return None
        with path.open("r", encoding="utf-8") as handle:
            return AnalysisResult.from_dict(json.load(handle))

    def list_analyses(self) -> List[AnalysisSummary]:
        summaries: List[AnalysisSummary] = []
        for path in self._analyses_dir.glob("*.json"):
            try:
                with path.open("r", encoding="utf-8") as handle:
                    data = json.load(handle)
            except (OSError, json.JSONDecodeError) as exc:
                logger.warning("analysis.load_failed path=%s error=%s", path, exc)
                continue
            summaries.append(
                AnalysisSummary(
                    id=data.get("id", path.stem),
                    document_name=data.get("document_name", ""),
                    document_type=data.get("document_type", ""),
                    analyzed_at=data.get("analyzed_at", ""),
                    model_used=data.get("model_used", ""),
                    word_count=data.get("word_count"),
                    concept_count=len(data.get("concepts", [])),
                )
            )
        return sorted(summaries, key=lambda item: item.analyzed_at, reverse=True)

    def delete(self, analysis_id: str) -> bool:
        try:
            path = self._path_for(analysis_id)
        except ValueError:
            return False
        with self._lock:
            if not path.exists():
                return False
            path.unlink()
        logger.info("analysis.deleted id=%s", analysis_id)
        return True


__all__ = ["AnalysisStore", "AnalysisSummary"]

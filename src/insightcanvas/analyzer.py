"""Analysis orchestration: chunking, model calls, merging and tree assembly."""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Iterator, List, Optional, Protocol

from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from .chunker import split_into_chunks
from .config import Settings
from .documents import ParsedDocument
from .errors import (
    AnalysisCancelledError,
    AnalysisError,
    AnalysisInProgressError,
    ParseError,
    TransportError,
)
from .merger import merge_concepts
from .models import AnalysisResult, MentalModelSummary
from .observability import MetricsRecorder
from .parser import ParsedResponse, ResponseParser
from .prompts import PromptBuilder
from .schema import RawConcept
from .tree import assemble_concepts, scope_external_ids

logger = logging.getLogger(__name__)


class CompletionBackend(Protocol):
    model: str

    async def complete(self, system_prompt: str, user_prompt: str, max_tokens: int | None = None) -> str:
        ...


class AnalysisPhase(str, Enum):
    IDLE = "idle"
    PREPARING = "preparing"
    ANALYZING = "analyzing"
    MERGING = "merging"
    ASSEMBLING = "assembling"
    COMPLETE = "complete"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class ProgressEvent:
    """One state transition of an analysis run."""

    phase: AnalysisPhase
    message: str
    current: int | None = None
    total: int | None = None
    error: BaseException | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "phase": self.phase.value,
            "message": self.message,
            "current": self.current,
            "total": self.total,
        }
        if self.error is not None:
            payload["category"] = getattr(self.error, "category", "internal")
        return payload


ProgressCallback = Callable[[ProgressEvent], None]


class _RunState:
    """Tracks the phase of one run and forwards transitions to the caller."""

    def __init__(self, document: ParsedDocument, progress: ProgressCallback | None) -> None:
        self.document = document
        self.phase = AnalysisPhase.IDLE
        self._progress = progress

    def transition(
        self,
        phase: AnalysisPhase,
        message: str,
        *,
        current: int | None = None,
        total: int | None = None,
        error: BaseException | None = None,
    ) -> None:
        self.phase = phase
        logger.info(
            "analysis.phase document=%s phase=%s current=%s total=%s message=%r",
            self.document.file_name,
            phase.value,
            current,
            total,
            message,
        )
        if self._progress is not None:
            self._progress(
                ProgressEvent(phase=phase, message=message, current=current, total=total, error=error)
            )


class AnalysisOrchestrator:
    """Turn a parsed document into an :class:`AnalysisResult`.

    Documents above ``chunk_threshold_words`` are split into paragraph-bounded
    chunks of about ``chunk_target_words`` words. Chunks run on a pool of
    ``chunk_concurrency`` workers (sequential by default) and their concepts
    are concatenated in chunk order before merging. The first unrecovered
    error fails the whole run; nothing partial is returned.
    """

    def __init__(
        self,
        settings: Settings,
        completion: CompletionBackend,
        *,
        prompt_builder: PromptBuilder | None = None,
        parser: ResponseParser | None = None,
        metrics: MetricsRecorder | None = None,
    ) -> None:
        self._settings = settings
        self._completion = completion
        self._prompts = prompt_builder or PromptBuilder()
        self._parser = parser or ResponseParser()
        self._metrics = metrics
        self._active: set[str] = set()
        self._active_lock = threading.Lock()

    @property
    def active_documents(self) -> frozenset[str]:
        with self._active_lock:
            return frozenset(self._active)

    def uses_chunking(self, document: ParsedDocument) -> bool:
        return document.word_count > self._settings.chunk_threshold_words

    @contextmanager
    def _claim(self, document_name: str) -> Iterator[None]:
        with self._active_lock:
            if document_name in self._active:
                raise AnalysisInProgressError(document_name)
            self._active.add(document_name)
        try:
            yield
        finally:
            with self._active_lock:
                self._active.discard(document_name)

    async def analyze(
        self,
        document: ParsedDocument,
        *,
        progress: ProgressCallback | None = None,
        cancel_event: asyncio.Event | None = None,
        source_url: str | None = None,
    ) -> AnalysisResult:
        with self._claim(document.file_name):
            run = _RunState(document, progress)
            start = time.perf_counter()
            try:
                result = await self._run(run, cancel_event, source_url)
            except AnalysisError as exc:
                self._fail(run, exc)
                raise
            except asyncio.CancelledError:
                self._fail(run, AnalysisCancelledError(document.file_name))
                raise
            except Exception as exc:
                logger.exception("analysis.unexpected_error document=%s", document.file_name)
                self._fail(run, exc)
                raise

            if self._metrics:
                self._metrics.record_timing(
                    "analysis.duration",
                    time.perf_counter() - start,
                    chunks=result.chunk_count,
                )
                self._metrics.increment("analysis.completed", document_type=result.document_type)
                self._metrics.increment("analysis.concepts", value=len(result.concepts))
            return result

    async def _run(
        self,
        run: _RunState,
        cancel_event: asyncio.Event | None,
        source_url: str | None,
    ) -> AnalysisResult:
        document = run.document
        run.transition(AnalysisPhase.PREPARING, "Preparing analysis...")

        if self.uses_chunking(document):
            chunks = split_into_chunks(document.text, self._settings.chunk_target_words)
            run.transition(
                AnalysisPhase.PREPARING,
                f"Document is large ({document.word_count} words). Analyzing in {len(chunks)} parts...",
                total=len(chunks),
            )
            raw_concepts = await self._analyze_chunks(run, chunks, cancel_event)
            mental_model = None
            run.transition(AnalysisPhase.MERGING, "Merging concepts...")
            merged = merge_concepts(raw_concepts)
            chunk_count = len(chunks)
        else:
            self._check_cancelled(run, cancel_event)
            run.transition(AnalysisPhase.ANALYZING, "Analyzing content...", current=1, total=1)
            response = await self._analyze_text(document.text, chunk_info=None)
            mental_model = response.mental_model
            run.transition(AnalysisPhase.MERGING, "Single pass, nothing to merge")
            merged = list(response.concepts)
            chunk_count = 1

        run.transition(AnalysisPhase.ASSEMBLING, "Creating concept map...")
        tree = assemble_concepts(merged)
        if tree.demoted:
            logger.warning(
                "analysis.integrity document=%s demoted=%s titles=%s",
                document.file_name,
                tree.demoted_count,
                tree.demoted,
            )
        if self._metrics:
            self._metrics.increment("analysis.demoted_concepts", value=tree.demoted_count)

        result = AnalysisResult(
            document_name=document.file_name,
            document_type=document.document_type.value,
            model_used=self._completion.model,
            word_count=document.word_count,
            source_url=source_url,
            concepts=tree.concepts,
            mental_model=(
                MentalModelSummary(name=mental_model.name, description=mental_model.description)
                if mental_model is not None
                else None
            ),
            chunk_count=chunk_count,
            demoted_concepts=tree.demoted_count,
        )
        run.transition(AnalysisPhase.COMPLETE, "Analysis complete")
        return result

    async def _analyze_chunks(
        self,
        run: _RunState,
        chunks: List[str],
        cancel_event: asyncio.Event | None,
    ) -> List[RawConcept]:
        total = len(chunks)
        results: Dict[int, List[RawConcept]] = {}
        semaphore = asyncio.Semaphore(self._settings.chunk_concurrency)

        async def worker(index: int, chunk: str) -> None:
            async with semaphore:
                self._check_cancelled(run, cancel_event)
                run.transition(
                    AnalysisPhase.ANALYZING,
                    f"Analyzing part {index + 1} of {total}...",
                    current=index + 1,
                    total=total,
                )
                chunk_start = time.perf_counter()
                response = await self._analyze_text(chunk, chunk_info=f"Part {index + 1} of {total}")
                results[index] = scope_external_ids(response.concepts, index + 1)
                logger.info(
                    "analysis.chunk.completed document=%s chunk=%s/%s concepts=%s",
                    run.document.file_name,
                    index + 1,
                    total,
                    len(response.concepts),
                )
                if self._metrics:
                    self._metrics.record_timing(
                        "analysis.chunk_duration",
                        time.perf_counter() - chunk_start,
                        chunks=total,
                    )

        if self._settings.chunk_concurrency == 1:
            for index, chunk in enumerate(chunks):
                await worker(index, chunk)
        else:
            tasks = [asyncio.create_task(worker(index, chunk)) for index, chunk in enumerate(chunks)]
            try:
                await asyncio.gather(*tasks)
            except BaseException:
                for task in tasks:
                    task.cancel()
                await asyncio.gather(*tasks, return_exceptions=True)
                raise

        collected: List[RawConcept] = []
        for index in range(total):
            collected.extend(results[index])
        return collected

    async def _analyze_text(self, text: str, *, chunk_info: str | None) -> ParsedResponse:
        system_prompt = self._prompts.build_system_prompt(is_chunk=chunk_info is not None)
        base_prompt = self._prompts.build_user_prompt(text, chunk_info)
        user_prompt = base_prompt

        attempt = 0
        while True:
            raw = await self._complete(system_prompt, user_prompt)
            try:
                return self._parser.parse(raw)
            except ParseError as exc:
                if attempt >= self._settings.parse_retries:
                    raise
                attempt += 1
                logger.warning(
                    "analysis.parse_retry attempt=%s error=%s",
                    attempt,
                    exc.message,
                )
                user_prompt = self._prompts.build_repair_prompt(base_prompt, exc.message, raw)

    async def _complete(self, system_prompt: str, user_prompt: str) -> str:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self._settings.transport_retries + 1),
            wait=wait_exponential(multiplier=self._settings.retry_backoff, max=30),
            retry=retry_if_exception_type(TransportError),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        return await retrying(
            self._completion.complete,
            system_prompt,
            user_prompt,
            self._settings.analysis_max_tokens,
        )

    def _check_cancelled(self, run: _RunState, cancel_event: Optional[asyncio.Event]) -> None:
        if cancel_event is not None and cancel_event.is_set():
            raise AnalysisCancelledError(run.document.file_name)

    def _fail(self, run: _RunState, error: Exception) -> None:
        category = getattr(error, "category", "internal")
        logger.error(
            "analysis.failed document=%s words=%s phase=%s category=%s error=%s",
            run.document.file_name,
            run.document.word_count,
            run.phase.value,
            category,
            error,
        )
        run.transition(AnalysisPhase.FAILED, str(error) or type(error).__name__, error=error)
        if self._metrics:
            self._metrics.increment("analysis.failed", category=category)


__all__ = [
    "AnalysisOrchestrator",
    "AnalysisPhase",
    "CompletionBackend",
    "ProgressCallback",
    "ProgressEvent",
]

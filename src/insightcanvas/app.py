"""FastAPI application exposing document analysis over HTTP."""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import asdict
from pathlib import Path
from typing import Any, AsyncGenerator

from fastapi import FastAPI, File, Form, HTTPException, UploadFile
from fastapi.responses import JSONResponse, Response, StreamingResponse

from .analyzer import AnalysisOrchestrator, ProgressEvent
from .completion import CompletionClient
from .config import Settings
from .documents import ParsedDocument, parse_document_bytes
from .errors import (
    AnalysisInProgressError,
    ConfigurationError,
    DocumentError,
    ParseError,
    ProtocolError,
    TransportError,
    UnsupportedDocumentError,
    describe_failure,
)
from .observability import MetricsRecorder
from .storage import AnalysisStore
from .tree import build_hierarchy

logger = logging.getLogger(__name__)

_CONSOLE_HANDLER = "insightcanvas.console"
_LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def _configure_logging(level: str) -> logging.Logger:
    """Give the package logger one console handler at ``level``.

    When running under uvicorn the handler borrows uvicorn's formatter so
    package lines look like server lines. Calling this again only updates the
    level.
    """

    package_logger = logging.getLogger("insightcanvas")
    package_logger.setLevel(level)
    if any(handler.get_name() == _CONSOLE_HANDLER for handler in package_logger.handlers):
        return package_logger

    server_handlers = logging.getLogger("uvicorn.error").handlers
    formatter = server_handlers[0].formatter if server_handlers else None
    handler = logging.StreamHandler()
    handler.set_name(_CONSOLE_HANDLER)
    handler.setFormatter(formatter or logging.Formatter(_LOG_FORMAT))
    package_logger.addHandler(handler)
    return package_logger


def _status_for(error: Exception) -> int:
    if isinstance(error, UnsupportedDocumentError):
        return 415
    if isinstance(error, DocumentError):
        return 400
    if isinstance(error, AnalysisInProgressError):
        return 409
    if isinstance(error, ConfigurationError):
        return 503
    if isinstance(error, (TransportError, ProtocolError)):
        return 502
    if isinstance(error, ParseError):
        return 422
    return 500


class ApplicationState:
    """Container for runtime dependencies used by the FastAPI app."""

    def __init__(
        self,
        *,
        settings: Settings,
        orchestrator: AnalysisOrchestrator,
        store: AnalysisStore,
        metrics: MetricsRecorder | None,
        completion: CompletionClient | None,
    ) -> None:
        self.settings = settings
        self.orchestrator = orchestrator
        self.store = store
        self.metrics = metrics
        self.completion = completion


def create_app(
    *,
    settings: Settings | None = None,
    orchestrator: AnalysisOrchestrator | None = None,
    store: AnalysisStore | None = None,
    metrics: MetricsRecorder | None = None,
) -> FastAPI:
    settings = settings or Settings.from_env()
    _configure_logging(settings.log_level)
    if metrics is None:
        metrics = MetricsRecorder(
            enabled=settings.observability_metrics_enabled,
            namespace=settings.observability_namespace,
            prometheus_enabled=settings.observability_prometheus_enabled,
        )
    completion: CompletionClient | None = None
    if orchestrator is None:
        completion = CompletionClient(settings, metrics=metrics)
        orchestrator = AnalysisOrchestrator(settings, completion, metrics=metrics)
    store = store or AnalysisStore(Path(settings.data_dir))

    app = FastAPI(title="InsightCanvas")
    state = ApplicationState(
        settings=settings,
        orchestrator=orchestrator,
        store=store,
        metrics=metrics,
        completion=completion,
    )
    app.state.services = state

    @app.on_event("shutdown")
    async def _close_completion_client() -> None:
        if state.completion is not None:
            await state.completion.aclose()

    async def _read_upload(file: UploadFile) -> ParsedDocument:
        data = await file.read()
        logger.info("upload.received file=%s bytes=%s", file.filename, len(data))
        try:
            return parse_document_bytes(data, file.filename or "upload.txt")
        except DocumentError as exc:
            raise HTTPException(status_code=_status_for(exc), detail=describe_failure(exc)) from exc

    @app.post("/api/analyses", response_class=JSONResponse)
    async def create_analysis(
        file: UploadFile = File(...),
        source_url: str | None = Form(None),
    ) -> JSONResponse:
        document = await _read_upload(file)
        try:
            result = await state.orchestrator.analyze(document, source_url=source_url)
        except Exception as exc:
            raise HTTPException(
                status_code=_status_for(exc),
                detail=describe_failure(exc, document),
            ) from exc
        state.store.save(result)
        return JSONResponse(result.to_dict(), status_code=201)

    @app.post("/api/analyses/stream", response_class=StreamingResponse)
    async def stream_analysis(
        file: UploadFile = File(...),
        source_url: str | None = Form(None),
    ) -> StreamingResponse:
        document = await _read_upload(file)
        queue: asyncio.Queue[dict[str, Any] | None] = asyncio.Queue()

        def on_progress(event: ProgressEvent) -> None:
            queue.put_nowait({"type": "progress", **event.to_dict()})

        async def run() -> None:
            try:
                result = await state.orchestrator.analyze(
                    document,
                    progress=on_progress,
                    source_url=source_url,
                )
                state.store.save(result)
                queue.put_nowait({"type": "result", "analysis": result.to_dict()})
            except Exception as exc:
                queue.put_nowait(
                    {
                        "type": "error",
                        "category": getattr(exc, "category", "internal"),
                        "detail": describe_failure(exc, document),
                    }
                )
            finally:
                queue.put_nowait(None)

        async def event_stream() -> AsyncGenerator[str, None]:
            task = asyncio.create_task(run())
            try:
                while True:
                    item = await queue.get()
                    if item is None:
                        break
                    yield json.dumps(item) + "\n"
            finally:
                if not task.done():
                    task.cancel()

        return StreamingResponse(event_stream(), media_type="application/x-ndjson")

    @app.get("/api/analyses", response_class=JSONResponse)
    async def list_analyses() -> JSONResponse:
        return JSONResponse([asdict(item) for item in state.store.list_analyses()])

    @app.get("/api/analyses/{analysis_id}", response_class=JSONResponse)
    async def get_analysis(analysis_id: str) -> JSONResponse:
        result = state.store.get(analysis_id)
        if result is None:
            raise HTTPException(status_code=404, detail="Analysis not found")
        return JSONResponse(result.to_dict())

    @app.get("/api/analyses/{analysis_id}/tree", response_class=JSONResponse)
    async def get_analysis_tree(analysis_id: str) -> JSONResponse:
        result = state.store.get(analysis_id)
        if result is None:
            raise HTTPException(status_code=404, detail="Analysis not found")
        nodes = build_hierarchy(result.concepts)
        return JSONResponse(
            {
                "id": result.id,
                "document_name": result.document_name,
                "concepts": [node.to_dict() for node in nodes],
            }
        )

    @app.delete("/api/analyses/{analysis_id}", response_class=Response)
    async def delete_analysis(analysis_id: str) -> Response:
        if not state.store.delete(analysis_id):
            raise HTTPException(status_code=404, detail="Analysis not found")
        return Response(status_code=204)

    @app.get("/metrics")
    async def metrics_endpoint() -> Response:
        recorder = state.metrics
        if recorder is None or not recorder.prometheus_enabled:
            raise HTTPException(status_code=404, detail="Metrics export disabled")
        return Response(recorder.render_prometheus(), media_type=recorder.prometheus_content_type)

    return app


__all__ = ["create_app", "ApplicationState"]

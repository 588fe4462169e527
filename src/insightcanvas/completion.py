"""Async client for the Anthropic-style messages endpoint."""

from __future__ import annotations

import logging
import time
from typing import Any

import httpx

from .config import Settings
from .errors import (
    CompletionHTTPError,
    CompletionNetworkError,
    ConfigurationError,
    MalformedEnvelopeError,
)
from .observability import MetricsRecorder

logger = logging.getLogger(__name__)


class CompletionClient:
    """Send one system/user prompt pair and return the raw completion text.

    The client performs exactly one HTTP exchange per call; retries are the
    caller's decision.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        http_client: httpx.AsyncClient | None = None,
        metrics: MetricsRecorder | None = None,
    ) -> None:
        self._settings = settings
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=settings.request_timeout)
        self._metrics = metrics

    @property
    def model(self) -> str:
        return self._settings.analysis_model

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http.aclose()

    async def __aenter__(self) -> "CompletionClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    def _headers(self) -> dict[str, str]:
        api_key = self._settings.anthropic_api_key
        if not api_key:
            raise ConfigurationError("ANTHROPIC_API_KEY")
        return {
            "Content-Type": "application/json",
            "x-api-key": api_key,
            "anthropic-version": self._settings.anthropic_version,
        }

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        max_tokens: int | None = None,
    ) -> str:
        url = self._settings.messages_url
        limit = max_tokens or self._settings.analysis_max_tokens
        payload = {
            "model": self.model,
            "max_tokens": limit,
            "system": system_prompt,
            "messages": [{"role": "user", "content": user_prompt}],
        }
        logger.info(
            "completion.request model=%s max_tokens=%s system_chars=%s user_chars=%s",
            self.model,
            limit,
            len(system_prompt),
            len(user_prompt),
        )

        start = time.perf_counter()
        try:
            response = await self._http.post(
                url,
                json=payload,
                headers=self._headers(),
                timeout=self._settings.request_timeout,
            )
        except httpx.TransportError as exc:
            logger.error("completion.network_error model=%s error=%s", self.model, exc)
            self._record("network_error", start)
            raise CompletionNetworkError(str(exc) or type(exc).__name__) from exc

        if not response.is_success:
            logger.error(
                "completion.http_error model=%s status=%s",
                self.model,
                response.status_code,
            )
            self._record("http_error", start)
            raise CompletionHTTPError(response.status_code, response.text)

        text = self._extract_text(response)
        self._record("success", start)
        logger.info(
            "completion.success model=%s status=%s chars=%s duration=%.2fs",
            self.model,
            response.status_code,
            len(text),
            time.perf_counter() - start,
        )
        return text

    @staticmethod
    def _extract_text(response: httpx.Response) -> str:
        try:
            data: Any = response.json()
        except ValueError as exc:
            raise MalformedEnvelopeError("body is not JSON", body=response.text) from exc

        content = data.get("content") if isinstance(data, dict) else None
        if not isinstance(content, list) or not content:
            raise MalformedEnvelopeError("missing 'content' list", body=response.text)
        first = content[0]
        text = first.get("text") if isinstance(first, dict) else None
        if not isinstance(text, str):
            raise MalformedEnvelopeError("missing 'content[0].text'", body=response.text)
        return text

    def _record(self, outcome: str, start: float) -> None:
        if self._metrics is None:
            return
        self._metrics.increment("completion.requests", model=self.model, outcome=outcome)
        self._metrics.record_timing(
            "completion.duration",
            time.perf_counter() - start,
            model=self.model,
            outcome=outcome,
        )


__all__ = ["CompletionClient"]

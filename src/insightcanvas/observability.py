"""Metrics instrumentation that logs every sample and can export to Prometheus."""

from __future__ import annotations

import logging
import re
import time
from contextlib import contextmanager
from typing import Any, Dict, Tuple

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

_PROM_NAME_RE = re.compile(r"[^a-zA-Z0-9_]")

_MetricKey = Tuple[str, str, Tuple[str, ...]]


class MetricsRecorder:
    """Emit structured ``key=value`` metric lines and optional Prometheus samples."""

    def __init__(
        self,
        *,
        enabled: bool = True,
        namespace: str = "insightcanvas",
        logger: logging.Logger | None = None,
        prometheus_enabled: bool = False,
        registry: CollectorRegistry | None = None,
    ) -> None:
        self._enabled = enabled
        self._namespace = namespace.strip() or "insightcanvas"
        self._logger = logger or logging.getLogger("insightcanvas.metrics")
        self._registry = (registry or CollectorRegistry()) if prometheus_enabled else None
        self._collectors: Dict[_MetricKey, Any] = {}

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def prometheus_enabled(self) -> bool:
        return self._registry is not None

    @property
    def prometheus_content_type(self) -> str:
        return CONTENT_TYPE_LATEST

    def render_prometheus(self) -> bytes:
        if self._registry is None:
            raise RuntimeError("Prometheus export is disabled")
        return generate_latest(self._registry)

    def increment(self, metric: str, *, value: int = 1, **tags: Any) -> None:
        """Increment a counter metric."""

        if not self._enabled:
            return
        clean_tags = self._clean(tags)
        self._emit(metric, {"value": int(value)}, clean_tags)
        self._observe("counter", metric, clean_tags, lambda c: c.inc(max(int(value), 0)))

    def set_gauge(self, metric: str, value: float, **tags: Any) -> None:
        if not self._enabled:
            return
        clean_tags = self._clean(tags)
        self._emit(metric, {"value": value}, clean_tags)
        self._observe("gauge", metric, clean_tags, lambda g: g.set(float(value)))

    def record_timing(self, metric: str, duration_seconds: float, **tags: Any) -> None:
        """Emit a timing metric, recording milliseconds to logs."""

        if not self._enabled:
            return
        seconds = max(duration_seconds, 0.0)
        clean_tags = self._clean(tags)
        self._emit(metric, {"duration_ms": round(seconds * 1000.0, 4)}, clean_tags)
        self._observe("histogram", metric, clean_tags, lambda h: h.observe(seconds))

    @contextmanager
    def track_timing(self, metric: str, **tags: Any):
        """Record the execution time of the wrapped block."""

        start = time.perf_counter()
        try:
            yield
        finally:
            self.record_timing(metric, time.perf_counter() - start, **tags)

    @staticmethod
    def _clean(tags: dict[str, Any]) -> dict[str, Any]:
        return {key: val for key, val in tags.items() if val is not None}

    def _emit(self, metric: str, fields: dict[str, Any], tags: dict[str, Any]) -> None:
        segments = [f"{key}={self._stringify(value)}" for key, value in sorted(fields.items())]
        segments += [f"{key}={self._stringify(value)}" for key, value in sorted(tags.items())]
        message = f"{self._namespace}.{metric}"
        if segments:
            message = f"{message} {' '.join(segments)}"
        self._logger.info(message)

    def _observe(self, kind: str, metric: str, tags: dict[str, Any], apply) -> None:
        if self._registry is None:
            return
        label_keys = tuple(sorted(tags))
        label_names = tuple(_PROM_NAME_RE.sub("_", key) or "label" for key in label_keys)
        key = (kind, metric, label_names)
        collector = self._collectors.get(key)
        if collector is None:
            factory = {"counter": Counter, "gauge": Gauge, "histogram": Histogram}[kind]
            collector = factory(
                self._prom_metric_name(metric),
                f"{metric} {kind}",
                labelnames=list(label_names),
                registry=self._registry,
            )
            self._collectors[key] = collector
        if label_names:
            values = {name: self._stringify(tags[raw]) for name, raw in zip(label_names, label_keys)}
            collector = collector.labels(**values)
        apply(collector)

    def _prom_metric_name(self, metric: str) -> str:
        cleaned = _PROM_NAME_RE.sub("_", metric)
        return f"{_PROM_NAME_RE.sub('_', self._namespace)}_{cleaned}".strip("_")

    @staticmethod
    def _stringify(value: Any) -> str:
        if isinstance(value, float):
            return f"{value:.4f}" if not value.is_integer() else f"{int(value)}"
        return str(value)


__all__ = ["MetricsRecorder"]

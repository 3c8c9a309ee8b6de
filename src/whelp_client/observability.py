"""Client-side metrics emitted as log lines, with optional Prometheus export."""

from __future__ import annotations

import logging
import re
import time
from contextlib import contextmanager
from typing import Any, Iterator

from prometheus_client import (
    CollectorRegistry,
    Counter as PromCounter,
    Histogram as PromHistogram,
    generate_latest,
)


_PROM_NAME_RE = re.compile(r"[^a-zA-Z0-9_]")


class MetricsRecorder:
    """Record counters and timings for client operations.

    Every observation is written to the ``whelp_client.metrics`` logger as a
    single ``namespace.metric key=value`` line. When Prometheus export is
    enabled, counters and histograms
    are mirrored into a private registry that callers can render.
    """

    def __init__(
        self,
        *,
        enabled: bool = True,
        namespace: str = "whelp_client",
        logger: logging.Logger | None = None,
        prometheus_enabled: bool = False,
    ) -> None:
        self._enabled = enabled
        self._namespace = namespace.strip() or "whelp_client"
        self._logger = logger or logging.getLogger("whelp_client.metrics")
        self._registry = (
            CollectorRegistry() if prometheus_enabled else None
        )
        self._instruments: dict[tuple[str, str, tuple[str, ...]], Any] = {}

    @classmethod
    def from_settings(cls, settings) -> "MetricsRecorder":
        return cls(
            enabled=settings.observability_metrics_enabled,
            namespace=settings.observability_namespace,
            prometheus_enabled=settings.observability_prometheus_enabled,
        )

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def prometheus_enabled(self) -> bool:
        return self._registry is not None

    def render_prometheus(self) -> bytes:
        if self._registry is None:
            raise RuntimeError("Prometheus export is disabled")
        return generate_latest(self._registry)

    def increment(self, metric: str, *, value: int = 1, **tags: Any) -> None:
        """Increment a counter metric."""

        if not self._enabled:
            return
        clean_tags = _clean(tags)
        self._emit(metric, {"value": int(value)}, clean_tags)
        counter = self._instrument("counter", metric, clean_tags)
        if counter is not None:
            counter.labels(**self._label_values(clean_tags)).inc(max(int(value), 0))

    def record_timing(self, metric: str, duration_seconds: float, **tags: Any) -> None:
        """Emit a timing metric, logging milliseconds."""

        if not self._enabled:
            return
        clean_tags = _clean(tags)
        duration_ms = max(duration_seconds * 1000.0, 0.0)
        self._emit(metric, {"duration_ms": round(duration_ms, 4)}, clean_tags)
        histogram = self._instrument("histogram", metric, clean_tags)
        if histogram is not None:
            histogram.labels(**self._label_values(clean_tags)).observe(max(duration_seconds, 0.0))

    @contextmanager
    def track_timing(self, metric: str, **tags: Any) -> Iterator[None]:
        """Record how long the wrapped block took, even when it raises."""

        if not self._enabled:
            yield
            return
        start = time.perf_counter()
        try:
            yield
        finally:
            self.record_timing(metric, time.perf_counter() - start, **tags)

    def _emit(self, metric: str, fields: dict[str, Any], tags: dict[str, Any]) -> None:
        parts = [f"{key}={_stringify(value)}" for key, value in sorted(fields.items())]
        parts.extend(f"{key}={_stringify(value)}" for key, value in sorted(tags.items()))
        message = f"{self._namespace}.{metric}"
        if parts:
            message = f"{message} {' '.join(parts)}"
        self._logger.info(message)

    def _instrument(self, kind: str, metric: str, tags: dict[str, Any]):
        if self._registry is None:
            return None
        label_names = tuple(_sanitize(name) for name in sorted(tags))
        key = (kind, metric, label_names)
        instrument = self._instruments.get(key)
        if instrument is None:
            factory = PromCounter if kind == "counter" else PromHistogram
            name = f"{_sanitize(self._namespace)}_{_sanitize(metric)}".strip("_")
            instrument = factory(
                name,
                f"{metric} {kind}",
                labelnames=list(label_names),
                registry=self._registry,
            )
            self._instruments[key] = instrument
        return instrument

    @staticmethod
    def _label_values(tags: dict[str, Any]) -> dict[str, str]:
        return {_sanitize(key): _stringify(value) for key, value in tags.items()}


def _clean(tags: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in tags.items() if value is not None}


def _sanitize(name: str) -> str:
    return _PROM_NAME_RE.sub("_", name) or "label"


def _stringify(value: Any) -> str:
    if isinstance(value, float):
        return f"{int(value)}" if value.is_integer() else f"{value:.4f}"
    return str(value)

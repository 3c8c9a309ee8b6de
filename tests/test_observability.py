import io
import logging

import pytest

from whelp_client.observability import MetricsRecorder


def _capture_logger_output(logger_name: str):
    logger = logging.getLogger(logger_name)
    buffer = io.StringIO()
    handler = logging.StreamHandler(buffer)
    handler.setLevel(logging.INFO)
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)
    return logger, handler, buffer


def test_metrics_recorder_logs_when_enabled() -> None:
    metrics = MetricsRecorder(enabled=True, namespace="whelp.test")
    logger, handler, buffer = _capture_logger_output("whelp_client.metrics")

    try:
        metrics.increment("documents.submitted", kind="file")
        metrics.record_timing("http.request", 0.05, method="GET", status=200)
    finally:
        logger.removeHandler(handler)

    output = buffer.getvalue()
    assert "whelp.test.documents.submitted value=1 kind=file" in output
    assert "whelp.test.http.request duration_ms=50" in output


def test_metrics_recorder_disabled_suppresses_logs(caplog) -> None:
    metrics = MetricsRecorder(enabled=False)

    with caplog.at_level(logging.INFO, logger="whelp_client.metrics"):
        metrics.increment("documents.submitted", kind="text")
        with metrics.track_timing("http.request", method="POST"):
            pass

    assert not caplog.records


def test_track_timing_records_even_when_block_raises(caplog) -> None:
    metrics = MetricsRecorder(enabled=True)

    with caplog.at_level(logging.INFO, logger="whelp_client.metrics"):
        with pytest.raises(RuntimeError):
            with metrics.track_timing("http.request", method="GET"):
                raise RuntimeError("boom")

    assert any("whelp_client.http.request" in record.getMessage() for record in caplog.records)


def test_prometheus_export_renders_counters() -> None:
    metrics = MetricsRecorder(enabled=True, prometheus_enabled=True)

    metrics.increment("documents.submitted", kind="file")
    metrics.increment("documents.submitted", kind="file")

    rendered = metrics.render_prometheus().decode()
    assert 'whelp_client_documents_submitted_total{kind="file"} 2.0' in rendered


def test_prometheus_render_requires_export() -> None:
    with pytest.raises(RuntimeError):
        MetricsRecorder(enabled=True).render_prometheus()

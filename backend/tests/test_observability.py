import json
import logging

from docdigest.core.logging_config import JsonFormatter, configure_logging
from docdigest.core.metrics import render_metrics, retries_total
from docdigest.observability.events import emit_action, emit_api_error, emit_rate_limit_hit, emit_retry_scheduled


def test_json_formatter_includes_provider_context() -> None:
    record = logging.LogRecord("docdigest.provider.retry", logging.WARNING, __file__, 1, "retrying %s", ("a.pdf",), None)
    record.provider = "anthropic"
    record.retry_count = 1

    payload = json.loads(JsonFormatter().format(record))

    assert payload["level"] == "WARNING"
    assert payload["logger"] == "docdigest.provider.retry"
    assert payload["message"] == "retrying a.pdf"
    assert payload["provider"] == "anthropic"
    assert payload["retry_count"] == 1
    assert "category" not in payload


def test_configure_logging_uses_json_in_production() -> None:
    root = logging.getLogger()
    previous = (list(root.handlers), root.level)
    try:
        configure_logging(log_level="debug", app_env="production")
        assert isinstance(root.handlers[0].formatter, JsonFormatter)
        assert root.level == logging.DEBUG
        assert logging.getLogger("httpx").level == logging.WARNING
    finally:
        root.handlers[:] = previous[0]
        root.setLevel(previous[1])


def test_emitters_write_json_events(caplog) -> None:
    caplog.set_level(logging.INFO, logger="docdigest.observability")

    emit_action("summary_generation_start", filename="a.pdf", text_length=12)
    emit_rate_limit_hit(provider="anthropic", max_requests=5, window_seconds=60.0, wait_seconds=1.5)
    emit_retry_scheduled(retry_count=1, delay_seconds=1.0, category="server", context={"filename": "a.pdf"})
    emit_api_error(message="boom", category="server", status_code=500, retryable=True, context={})

    events = [json.loads(record.getMessage()) for record in caplog.records]
    assert [event["event"] for event in events] == [
        "summary_generation_start",
        "rate_limit_hit",
        "retry_summary_generation",
        "api_error",
    ]
    assert caplog.records[-1].levelno == logging.WARNING


def test_render_metrics_exposes_counters() -> None:
    retries_total.labels(category="server").inc()
    body, content_type = render_metrics()
    assert b"docdigest_retries_total" in body
    assert content_type.startswith("text/plain")

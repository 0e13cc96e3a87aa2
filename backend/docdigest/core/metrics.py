from __future__ import annotations

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest


rate_limit_waits_total = Counter(
    "docdigest_rate_limit_waits_total",
    "Number of times an admission had to wait for rate-limit capacity.",
    ["provider"],
)

rate_limit_wait_seconds = Histogram(
    "docdigest_rate_limit_wait_seconds",
    "Time spent waiting for rate-limit admission in seconds.",
    ["provider"],
)

retries_total = Counter(
    "docdigest_retries_total",
    "Retries scheduled after a retryable failure.",
    ["category"],
)

classified_errors_total = Counter(
    "docdigest_classified_errors_total",
    "Failures normalized by the error classifier.",
    ["category", "retryable"],
)

summaries_total = Counter(
    "docdigest_summaries_total",
    "Summary streams by terminal outcome.",
    ["outcome"],
)


def render_metrics() -> tuple[bytes, str]:
    return generate_latest(), CONTENT_TYPE_LATEST

from __future__ import annotations

import json
import logging
from typing import Any

logger = logging.getLogger('docdigest.observability')


def _emit(event_name: str, payload: dict[str, Any], *, level: int = logging.INFO) -> None:
    message = {
        'event': event_name,
        **payload,
    }
    logger.log(level, json.dumps(message, sort_keys=True, separators=(',', ':'), default=str))


def emit_action(action: str, **details: Any) -> None:
    _emit(action, details)


def emit_rate_limit_hit(*, provider: str, max_requests: int, window_seconds: float, wait_seconds: float) -> None:
    _emit(
        'rate_limit_hit',
        {
            'provider': provider,
            'max_requests': max_requests,
            'window_seconds': window_seconds,
            'wait_seconds': round(wait_seconds, 6),
        },
    )


def emit_api_error(
    *,
    message: str,
    category: str,
    status_code: int | None,
    retryable: bool,
    context: dict[str, Any] | None,
) -> None:
    _emit(
        'api_error',
        {
            'message': message,
            'category': category,
            'status_code': status_code,
            'retryable': retryable,
            'context': context or {},
        },
        level=logging.WARNING,
    )


def emit_retry_scheduled(*, retry_count: int, delay_seconds: float, category: str, context: dict[str, Any] | None) -> None:
    _emit(
        'retry_summary_generation',
        {
            'retry_count': retry_count,
            'delay_seconds': round(delay_seconds, 6),
            'error_category': category,
            'context': context or {},
        },
    )

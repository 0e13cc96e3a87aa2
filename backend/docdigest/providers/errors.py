from __future__ import annotations

from collections.abc import Mapping
from datetime import UTC, datetime
from enum import Enum
import re
from typing import Any

import httpx

from docdigest.core import metrics


class ErrorCategory(str, Enum):
    NETWORK = "network"
    AUTHENTICATION = "authentication"
    RATE_LIMIT = "rate_limit"
    VALIDATION = "validation"
    SERVER = "server"
    CLIENT = "client"
    UNKNOWN = "unknown"


RETRYABLE_CATEGORIES = frozenset({ErrorCategory.NETWORK, ErrorCategory.RATE_LIMIT, ErrorCategory.SERVER})

_DEFAULT_MESSAGES = {
    ErrorCategory.NETWORK: "Network connection error",
    ErrorCategory.AUTHENTICATION: "Authentication failed",
    ErrorCategory.RATE_LIMIT: "Rate limit exceeded",
    ErrorCategory.VALIDATION: "Validation error",
    ErrorCategory.SERVER: "Server error",
    ErrorCategory.CLIENT: "Client error",
    ErrorCategory.UNKNOWN: "An unknown error occurred",
}

_USER_MESSAGES = {
    ErrorCategory.NETWORK: "Network connection error. Please check your internet connection.",
    ErrorCategory.AUTHENTICATION: "Authentication failed. Please check your API key.",
    ErrorCategory.RATE_LIMIT: "Rate limit exceeded. Please try again in a minute.",
    ErrorCategory.VALIDATION: "The request contained invalid data.",
    ErrorCategory.SERVER: "The server encountered an error. Please try again later.",
    ErrorCategory.CLIENT: "There was an error with your request.",
    ErrorCategory.UNKNOWN: "An unexpected error occurred. Please try again.",
}

_API_KEY_PATTERN = re.compile(r"\bapi[-_ ]?key[\"']?\s*[:=]\s*[\"']?[^\s,;\"']+[\"']?", re.IGNORECASE)
_BEARER_PATTERN = re.compile(r"bearer\s+\S+", re.IGNORECASE)
_SECRET_KEY_PATTERN = re.compile(r"\bsk-[A-Za-z0-9_-]{8,}")

_NETWORK_PATTERN = re.compile(r"network|connection", re.IGNORECASE)
_AUTH_PATTERN = re.compile(r"auth|unauthorized|api key", re.IGNORECASE)
_RATE_LIMIT_PATTERN = re.compile(r"rate limit", re.IGNORECASE)


class AppError(Exception):
    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory,
        status_code: int | None = None,
        context: dict[str, Any] | None = None,
        cause: object = None,
        timestamp: datetime | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.category = category
        self.status_code = status_code
        self.retryable = category in RETRYABLE_CATEGORIES
        self.context = dict(context or {})
        self.cause = cause
        self.timestamp = timestamp or datetime.now(UTC)

    @property
    def user_message(self) -> str:
        return user_friendly_message(self)

    def __repr__(self) -> str:
        return (
            f"AppError(category={self.category.value!r}, status_code={self.status_code!r}, "
            f"retryable={self.retryable!r}, message={self.message!r})"
        )


def sanitize_message(message: str) -> str:
    sanitized = _API_KEY_PATTERN.sub("API_KEY_REDACTED", message)
    sanitized = _BEARER_PATTERN.sub("BEARER_TOKEN_REDACTED", sanitized)
    return _SECRET_KEY_PATTERN.sub("SECRET_KEY_REDACTED", sanitized)


def user_friendly_message(error: AppError) -> str:
    base = _USER_MESSAGES[error.category]
    if error.category is ErrorCategory.SERVER and error.status_code:
        return f"{base} ({error.status_code})"
    return base


def category_for_status(status_code: int) -> ErrorCategory:
    if status_code in (401, 403):
        return ErrorCategory.AUTHENTICATION
    if status_code == 422:
        return ErrorCategory.VALIDATION
    if status_code == 429:
        return ErrorCategory.RATE_LIMIT
    if 400 <= status_code < 500:
        return ErrorCategory.CLIENT
    if status_code >= 500:
        return ErrorCategory.SERVER
    return ErrorCategory.UNKNOWN


def category_for_message(message: str) -> ErrorCategory:
    if _NETWORK_PATTERN.search(message):
        return ErrorCategory.NETWORK
    if _AUTH_PATTERN.search(message):
        return ErrorCategory.AUTHENTICATION
    if _RATE_LIMIT_PATTERN.search(message):
        return ErrorCategory.RATE_LIMIT
    return ErrorCategory.CLIENT


def _is_number(value: object) -> bool:
    return isinstance(value, int | float) and not isinstance(value, bool)


def _status_code_of(failure: object) -> int | None:
    if isinstance(failure, httpx.HTTPStatusError):
        return failure.response.status_code if failure.response is not None else None
    if isinstance(failure, Mapping):
        candidates = (failure.get("status"), failure.get("statusCode"), failure.get("status_code"))
    else:
        candidates = (getattr(failure, "status_code", None), getattr(failure, "status", None))
    for candidate in candidates:
        if _is_number(candidate):
            return int(candidate)
    return None


def _message_of(failure: object) -> str | None:
    if isinstance(failure, Mapping):
        message = failure.get("message")
        if not isinstance(message, str) or not message:
            nested = failure.get("error")
            message = nested.get("message") if isinstance(nested, Mapping) else None
    elif isinstance(failure, BaseException):
        message = getattr(failure, "message", None)
        if not isinstance(message, str) or not message:
            message = str(failure)
    else:
        message = getattr(failure, "message", None)
    if isinstance(message, str) and message.strip():
        return message
    return None


def _is_transport_failure(failure: object) -> bool:
    return isinstance(failure, TimeoutError | ConnectionError | httpx.TimeoutException | httpx.TransportError)


def classify_error(failure: object, context: dict[str, Any] | None = None) -> AppError:
    if isinstance(failure, AppError):
        return failure

    status_code = _status_code_of(failure)
    message = _message_of(failure)

    if status_code is not None:
        category = category_for_status(status_code)
        if message is None:
            message = _DEFAULT_MESSAGES[category]
            if category in (ErrorCategory.CLIENT, ErrorCategory.SERVER):
                message = f"{message} ({status_code})"
    elif _is_transport_failure(failure):
        category = ErrorCategory.NETWORK
        if message is None:
            timed_out = isinstance(failure, TimeoutError | httpx.TimeoutException)
            message = "Request timed out" if timed_out else _DEFAULT_MESSAGES[category]
    elif message is not None:
        category = category_for_message(message)
    else:
        category = ErrorCategory.UNKNOWN
        message = _DEFAULT_MESSAGES[category]

    error = AppError(
        sanitize_message(message),
        category=category,
        status_code=status_code,
        context=context,
        cause=failure,
    )
    metrics.classified_errors_total.labels(category=category.value, retryable=str(error.retryable).lower()).inc()
    return error

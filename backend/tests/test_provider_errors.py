import httpx
import pytest

from docdigest.providers.errors import (
    AppError,
    ErrorCategory,
    classify_error,
    sanitize_message,
    user_friendly_message,
)


class _StatusFailure(Exception):
    def __init__(self, status_code: int, message: str = "") -> None:
        super().__init__(message)
        self.status_code = status_code


@pytest.mark.parametrize(
    ("status_code", "category", "retryable"),
    [
        (401, ErrorCategory.AUTHENTICATION, False),
        (403, ErrorCategory.AUTHENTICATION, False),
        (422, ErrorCategory.VALIDATION, False),
        (429, ErrorCategory.RATE_LIMIT, True),
        (404, ErrorCategory.CLIENT, False),
        (500, ErrorCategory.SERVER, True),
        (503, ErrorCategory.SERVER, True),
    ],
)
def test_classification_maps_status_codes(status_code: int, category: ErrorCategory, retryable: bool) -> None:
    error = classify_error(_StatusFailure(status_code))
    assert error.category is category
    assert error.retryable is retryable
    assert error.status_code == status_code


def test_classification_maps_httpx_429_retryable() -> None:
    req = httpx.Request("POST", "https://example.test/api/summary")
    resp = httpx.Response(429, request=req)
    exc = httpx.HTTPStatusError("rate", request=req, response=resp)
    error = classify_error(exc)
    assert error.category is ErrorCategory.RATE_LIMIT
    assert error.retryable is True
    assert error.cause is exc


def test_classification_reads_response_like_mappings() -> None:
    error = classify_error({"statusCode": 502, "error": {"message": "upstream exploded"}})
    assert error.category is ErrorCategory.SERVER
    assert error.message == "upstream exploded"

    default_message = classify_error({"status": 500})
    assert default_message.message == "Server error (500)"


def test_classification_status_code_wins_over_message() -> None:
    error = classify_error(_StatusFailure(401, "network hiccup"))
    assert error.category is ErrorCategory.AUTHENTICATION
    assert error.retryable is False


@pytest.mark.parametrize(
    ("message", "category", "retryable"),
    [
        ("Network unreachable", ErrorCategory.NETWORK, True),
        ("Connection reset by peer", ErrorCategory.NETWORK, True),
        ("Unauthorized access", ErrorCategory.AUTHENTICATION, False),
        ("Invalid API key", ErrorCategory.AUTHENTICATION, False),
        ("Rate limit reached", ErrorCategory.RATE_LIMIT, True),
        ("Something odd happened", ErrorCategory.CLIENT, False),
    ],
)
def test_classification_matches_message_patterns(message: str, category: ErrorCategory, retryable: bool) -> None:
    error = classify_error(RuntimeError(message))
    assert error.category is category
    assert error.retryable is retryable
    assert error.status_code is None


def test_classification_maps_timeouts_and_transport_failures_to_network() -> None:
    assert classify_error(TimeoutError()).category is ErrorCategory.NETWORK
    assert classify_error(TimeoutError()).message == "Request timed out"
    connect = httpx.ConnectError("boom", request=httpx.Request("GET", "https://example.test"))
    error = classify_error(connect)
    assert error.category is ErrorCategory.NETWORK
    assert error.retryable is True


def test_classification_falls_back_to_unknown() -> None:
    for failure in (object(), None, 42, Exception("")):
        error = classify_error(failure)
        assert error.category is ErrorCategory.UNKNOWN
        assert error.retryable is False
        assert error.message == "An unknown error occurred"


def test_classify_error_returns_existing_app_error() -> None:
    err = AppError("slow down", category=ErrorCategory.RATE_LIMIT, status_code=429)
    assert classify_error(err) is err


def test_classification_is_deterministic() -> None:
    failure = {"status": 429, "message": "Too many requests"}
    first = classify_error(failure, {"filename": "a.pdf"})
    second = classify_error(failure, {"filename": "a.pdf"})
    assert (first.category, first.retryable, first.message, first.status_code, first.context) == (
        second.category,
        second.retryable,
        second.message,
        second.status_code,
        second.context,
    )


def test_sanitize_message_redacts_credentials() -> None:
    assert sanitize_message("Request failed: api_key=abc123XYZ") == "Request failed: API_KEY_REDACTED"
    assert sanitize_message("header Bearer abc.def.ghi rejected") == "header BEARER_TOKEN_REDACTED rejected"
    assert "sk-ant" not in sanitize_message("used key sk-ant-api03-abcdefgh")
    assert sanitize_message("apiKey: abc123, retry later") == "API_KEY_REDACTED, retry later"


def test_sanitize_message_keeps_prose_about_api_keys() -> None:
    message = "The API key is invalid for this project"
    assert sanitize_message(message) == message
    error = classify_error(RuntimeError(message))
    assert error.message == message
    assert error.category is ErrorCategory.AUTHENTICATION


def test_classified_messages_are_sanitized() -> None:
    error = classify_error({"status": 401, "message": "Bearer abc123 is invalid"})
    assert error.message == "BEARER_TOKEN_REDACTED is invalid"
    assert "abc123" not in error.user_message


def test_user_friendly_message_per_category() -> None:
    server = AppError("boom", category=ErrorCategory.SERVER, status_code=503)
    assert user_friendly_message(server) == "The server encountered an error. Please try again later. (503)"
    auth = AppError("nope", category=ErrorCategory.AUTHENTICATION, status_code=401)
    assert auth.user_message == "Authentication failed. Please check your API key."

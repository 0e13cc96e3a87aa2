from docdigest.providers.cancellation import CancellationToken, OperationCancelledError
from docdigest.providers.errors import AppError, ErrorCategory, classify_error, sanitize_message, user_friendly_message
from docdigest.providers.rate_limiter import RateLimitConfig, RateLimitConfigError, RateLimiter
from docdigest.providers.retry import RetryOrchestrator, RetryPolicy, RetryState
from docdigest.providers.summary_client import HttpSummaryClient, SummaryResponseFormatError

__all__ = [
    "AppError",
    "ErrorCategory",
    "classify_error",
    "sanitize_message",
    "user_friendly_message",
    "CancellationToken",
    "OperationCancelledError",
    "RateLimitConfig",
    "RateLimitConfigError",
    "RateLimiter",
    "RetryOrchestrator",
    "RetryPolicy",
    "RetryState",
    "HttpSummaryClient",
    "SummaryResponseFormatError",
]

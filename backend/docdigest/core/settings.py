import os
import sys
from functools import lru_cache
from urllib.parse import urlparse

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_name: str = "DocDigest"
    app_env: str = "local"
    log_level: str = "INFO"

    summary_api_url: str = "http://localhost:4000/api/summary"
    summary_api_key: str = ""
    summary_request_timeout_seconds: float = 30.0
    summary_max_source_chars: int = 100_000
    summary_provider_key: str = "anthropic"

    rate_limit_max_requests: int = 5
    rate_limit_window_seconds: float = 60.0
    rate_limit_min_spacing_seconds: float = 0.3

    retry_max_retries: int = 2
    retry_base_delay_seconds: float = 1.0
    retry_multiplier: float = 2.0
    retry_max_delay_seconds: float | None = None

    streaming_min_char_delay_seconds: float = 0.015
    streaming_max_char_delay_seconds: float = 0.045
    streaming_inter_segment_pause_seconds: float = 0.3


    @model_validator(mode="after")
    def validate_guardrails(self) -> "Settings":
        if self.rate_limit_max_requests < 1:
            raise ValueError("RATE_LIMIT_MAX_REQUESTS must be at least 1.")
        if self.rate_limit_window_seconds <= 0:
            raise ValueError("RATE_LIMIT_WINDOW_SECONDS must be greater than zero.")
        if self.retry_max_retries < 0:
            raise ValueError("RETRY_MAX_RETRIES must not be negative.")
        if self.retry_base_delay_seconds <= 0:
            raise ValueError("RETRY_BASE_DELAY_SECONDS must be greater than zero.")
        if self.retry_multiplier < 1:
            raise ValueError("RETRY_MULTIPLIER must be at least 1.")
        if self.streaming_min_char_delay_seconds > self.streaming_max_char_delay_seconds:
            raise ValueError("STREAMING_MIN_CHAR_DELAY_SECONDS must not exceed STREAMING_MAX_CHAR_DELAY_SECONDS.")

        if self.app_env.lower() != "production":
            return self

        if not self.summary_api_key.strip() or self.summary_api_key in {"replace-me", "placeholder-for-ssr"}:
            raise ValueError("Production requires SUMMARY_API_KEY and forbids placeholder values.")
        parsed = urlparse(self.summary_api_url)
        host = (parsed.hostname or "").lower()
        if parsed.scheme != "https" or not host:
            raise ValueError("Production requires SUMMARY_API_URL to be an absolute https URL.")
        if host in {"localhost", "127.0.0.1", "::1"}:
            raise ValueError("Production forbids a localhost SUMMARY_API_URL.")
        return self


@lru_cache
def get_settings() -> Settings:
    app_env = os.getenv("APP_ENV", "").lower()
    is_pytest_runtime = "pytest" in sys.modules
    if app_env == "test" or (not app_env and is_pytest_runtime):
        return Settings(
            app_env="test",
            summary_api_url=os.getenv("SUMMARY_API_URL") or "http://testserver/api/summary",
            retry_base_delay_seconds=0.01,
            streaming_min_char_delay_seconds=0.0,
            streaming_max_char_delay_seconds=0.0,
            streaming_inter_segment_pause_seconds=0.0,
        )
    return Settings()

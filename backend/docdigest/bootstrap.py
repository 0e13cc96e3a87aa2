from __future__ import annotations

from dataclasses import dataclass
import logging

import httpx

from docdigest.core.logging_config import configure_logging
from docdigest.core.settings import Settings, get_settings
from docdigest.providers.summary_client import HttpSummaryClient
from docdigest.services.summarization_coordinator import SummarizationCoordinator, SummaryStream


logger = logging.getLogger("docdigest.bootstrap")


@dataclass(frozen=True)
class SummaryService:
    coordinator: SummarizationCoordinator
    client: HttpSummaryClient

    def summarize(self, source_text: str, identifier: str) -> SummaryStream:
        return self.coordinator.produce_streamed_summary(source_text, identifier, self.client)


def build_summary_service(
    settings: Settings | None = None,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> SummaryService:
    """Wire logging, the coordinator and the HTTP client from settings."""
    settings = settings or get_settings()
    configure_logging(log_level=settings.log_level, app_env=settings.app_env)
    client = HttpSummaryClient(
        settings.summary_api_url,
        api_key=settings.summary_api_key,
        timeout_seconds=settings.summary_request_timeout_seconds,
        max_source_chars=settings.summary_max_source_chars,
        transport=transport,
    )
    logger.info("summary service configured (env=%s, provider=%s)", settings.app_env, settings.summary_provider_key)
    return SummaryService(coordinator=SummarizationCoordinator.from_settings(settings), client=client)

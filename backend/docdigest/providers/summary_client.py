from __future__ import annotations

import logging
from typing import Any

import httpx

from docdigest.observability.events import emit_action
from docdigest.services.response_parser import extract_bullet_points


logger = logging.getLogger("docdigest.provider.summary_client")

TRUNCATION_MARKER = " ... (text truncated)"


class SummaryResponseFormatError(Exception):
    def __init__(self, message: str = "Invalid response format from summary service", *, payload: Any = None) -> None:
        super().__init__(message)
        self.payload = payload


def truncate_source_text(source_text: str, max_chars: int) -> str:
    if len(source_text) <= max_chars:
        return source_text
    return source_text[:max_chars] + TRUNCATION_MARKER


def summary_points_from_payload(payload: Any) -> list[str]:
    if not isinstance(payload, dict):
        raise SummaryResponseFormatError(payload=payload)
    summary = payload.get("summary")
    if isinstance(summary, list) and all(isinstance(item, str) for item in summary):
        return list(summary)
    text = payload.get("text")
    if isinstance(text, str) and text.strip():
        return extract_bullet_points(text)
    raise SummaryResponseFormatError(payload=payload)


class HttpSummaryClient:
    """Calls the remote summary endpoint once. Retries and rate limiting belong to the caller."""

    def __init__(
        self,
        endpoint: str,
        *,
        api_key: str = "",
        timeout_seconds: float = 30.0,
        max_source_chars: int = 100_000,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.endpoint = endpoint
        self.max_source_chars = max_source_chars
        self._api_key = api_key
        self._timeout = httpx.Timeout(timeout_seconds)
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    async def __call__(self, source_text: str, identifier: str) -> list[str]:
        body = {
            "pdfText": truncate_source_text(source_text, self.max_source_chars),
            "filename": identifier,
        }
        emit_action("claude_api_call_start", filename=identifier, text_length=len(source_text))
        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            response = await client.post(self.endpoint, json=body, headers=self._headers())
            response.raise_for_status()
        try:
            payload = response.json()
        except ValueError as exc:
            raise SummaryResponseFormatError(payload=response.text) from exc
        points = summary_points_from_payload(payload)
        logger.debug("summary endpoint returned %d points", len(points))
        return points

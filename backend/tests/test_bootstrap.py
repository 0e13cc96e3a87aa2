import logging

import httpx
import pytest

from docdigest.bootstrap import build_summary_service
from docdigest.core.settings import get_settings
from docdigest.services.summarization_coordinator import SummaryOutcome


@pytest.mark.asyncio
async def test_summary_service_streams_from_http_endpoint() -> None:
    root = logging.getLogger()
    previous = (list(root.handlers), root.level)

    def handler(request: httpx.Request) -> httpx.Response:
        assert str(request.url) == "http://testserver/api/summary"
        return httpx.Response(200, json={"summary": ["One", "Two"]})

    try:
        service = build_summary_service(get_settings(), transport=httpx.MockTransport(handler))
        stream = service.summarize("document text", "doc.pdf")
        states = [state async for state in stream]
    finally:
        root.handlers[:] = previous[0]
        root.setLevel(previous[1])

    assert service.client.endpoint == "http://testserver/api/summary"
    assert states[-1].is_complete is True
    assert states[-1].bullet_points == ("One", "Two")
    assert stream.outcome is SummaryOutcome.COMPLETED

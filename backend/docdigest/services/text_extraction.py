from __future__ import annotations

from typing import Protocol


class TextExtractor(Protocol):
    async def extract_text(self, data: bytes) -> list[str]:
        """Return the document's text, one entry per page, in page order."""
        ...


async def extract_source_text(extractor: TextExtractor, data: bytes) -> str:
    pages = await extractor.extract_text(data)
    return "\n\n".join(page.strip() for page in pages if page and page.strip())

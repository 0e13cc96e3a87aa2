from __future__ import annotations

import logging
import re

logger = logging.getLogger("docdigest.response_parser")

MAX_FALLBACK_PARAGRAPHS = 10

_NUMBERED_ITEM = re.compile(r"^\d+\.\s")
_BULLET_MARKER = re.compile(r"^[-•*]\s*")
_NUMBER_MARKER = re.compile(r"^\d+\.\s*")


def _is_bullet_line(line: str) -> bool:
    return line.startswith("-") or line.startswith("•") or line.startswith("* ") or bool(_NUMBERED_ITEM.match(line))


def extract_bullet_points(text: str) -> list[str]:
    """Split a model response into bullet points, falling back to paragraphs."""
    if not text or not text.strip():
        return []
    bullet_points = []
    for raw_line in text.split("\n"):
        line = raw_line.strip()
        if not _is_bullet_line(line):
            continue
        cleaned = _NUMBER_MARKER.sub("", _BULLET_MARKER.sub("", line)).strip()
        if cleaned:
            bullet_points.append(cleaned)
    if bullet_points:
        return bullet_points
    logger.warning("no bullet points detected in summary response, using paragraph fallback")
    return extract_fallback_summary(text)


def extract_fallback_summary(text: str) -> list[str]:
    paragraphs = []
    for raw in text.split("\n\n"):
        paragraph = raw.strip()
        lowered = paragraph.lower()
        if not paragraph or "summary" in lowered or "bullet point" in lowered or paragraph.startswith("#"):
            continue
        paragraphs.append(paragraph.replace("\n", " "))
    return paragraphs[:MAX_FALLBACK_PARAGRAPHS]

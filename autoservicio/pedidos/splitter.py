"""Split a multi-item request into independent sub-requests."""

from __future__ import annotations

import re

# Split on newlines or on "y" followed by a number or a word of
# four letters or more. "arroz y sal" stays whole, "2 arroces y aceite"
# splits. Best-effort only: "pan y queso" splits even when meant as one item.
_SPLIT = re.compile(r"\s+y\s+(?=\d|\w{4,})|\n+")

# "entre 3000 y 5000" is a price range, not two items
_PRICE_BETWEEN = re.compile(r"(entre\s+\$?\s*\d[\d.,]*)\s+y\s+(?=\$?\s*\d)")
_PLACEHOLDER = "\x00"

MIN_SEGMENT_LENGTH = 3


def split_requests(message: str) -> list[str]:
    """Return lower-cased, trimmed segments of at least three characters."""
    if not message:
        return []
    protected = _PRICE_BETWEEN.sub(rf"\1{_PLACEHOLDER}", message.lower())
    parts = _SPLIT.split(protected)
    segments: list[str] = []
    for part in parts:
        segment = part.replace(_PLACEHOLDER, " y ").strip(" \t\r\n,.;")
        if len(segment) >= MIN_SEGMENT_LENGTH:
            segments.append(segment)
    return segments

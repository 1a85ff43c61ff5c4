"""Last-resort field extraction for competitor lists.

Pulls ``"key": "value"`` pairs positionally when no balanced object could
be sliced from the response. Results are always low confidence.
"""

from __future__ import annotations

import re
from typing import Any

from brandpulse.parsing.types import StageFailure

_FIELD_PATTERNS = {
    field: re.compile(rf'"?{field}"?\s*:\s*"([^"]*)"', re.IGNORECASE)
    for field in ("name", "domain", "industry", "relevance", "description")
}

DEFAULT_INDUSTRY = "General"
DEFAULT_RELEVANCE = "Direct Competitor"


def extract_competitors_by_regex(text: str) -> dict[str, Any]:
    """Build a competitor-list payload from positional field matches.

    The i-th domain/industry/relevance is paired with the i-th name. Names
    shorter than two characters are skipped.
    """
    found = {field: pattern.findall(text) for field, pattern in _FIELD_PATTERNS.items()}
    names = found["name"]
    if not names:
        raise StageFailure("regex fallback found no competitor names")

    def at(field: str, index: int, default: str = "") -> str:
        values = found[field]
        return values[index].strip() if index < len(values) and values[index].strip() else default

    competitors = []
    for i, raw_name in enumerate(names):
        name = raw_name.strip()
        if len(name) < 2:
            continue
        competitors.append(
            {
                "name": name,
                "domain": at("domain", i) or re.sub(r"[^a-z0-9]", "", name.lower()) + ".com",
                "industry": at("industry", i, DEFAULT_INDUSTRY),
                "relevance": at("relevance", i, DEFAULT_RELEVANCE),
                "description": at("description", i),
            }
        )

    if not competitors:
        raise StageFailure("regex fallback found no usable competitor names")
    return {"competitors": competitors}

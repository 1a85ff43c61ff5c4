"""Tagged union of the payload shapes providers return.

A parsed value is classified once; consumers branch on the variant type
instead of probing keys.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Union


@dataclass(frozen=True)
class MentionCountsShape:
    """Flat ``{"name": count}`` object."""

    counts: dict[str, float]


@dataclass(frozen=True)
class BrandMetricsShape:
    """``{"brand_metrics": {...}, "competitors": [{...}, ...]}``."""

    brand_metrics: dict[str, Any]
    competitors: tuple[dict[str, Any], ...] = ()


@dataclass(frozen=True)
class ScoresShape:
    """``{"scores": {...}}``."""

    scores: dict[str, Any]


@dataclass(frozen=True)
class FlatArrayShape:
    items: tuple[Any, ...] = ()


@dataclass(frozen=True)
class UnrecognizedShape:
    raw: Any = None
    reason: str = field(default="")


PayloadShape = Union[MentionCountsShape, BrandMetricsShape, ScoresShape, FlatArrayShape, UnrecognizedShape]


def as_number(value: Any) -> float | None:
    """Return a finite float for numbers and numeric strings, None otherwise.

    ``json.loads`` accepts NaN, Infinity and overflowing literals like 1e999;
    none of them is a count.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def classify_payload(value: Any) -> PayloadShape:
    if isinstance(value, list):
        return FlatArrayShape(items=tuple(value))
    if not isinstance(value, dict):
        return UnrecognizedShape(raw=value, reason=f"top-level {type(value).__name__}")
    if not value:
        return UnrecognizedShape(raw=value, reason="empty object")

    brand_metrics = value.get("brand_metrics")
    if isinstance(brand_metrics, dict):
        competitors = value.get("competitors")
        items = tuple(c for c in competitors if isinstance(c, dict)) if isinstance(competitors, list) else ()
        return BrandMetricsShape(brand_metrics=brand_metrics, competitors=items)

    scores = value.get("scores")
    if isinstance(scores, dict):
        return ScoresShape(scores=scores)

    numbers = {key: as_number(v) for key, v in value.items()}
    if all(n is not None for n in numbers.values()):
        return MentionCountsShape(counts={k: n for k, n in numbers.items() if n is not None})

    return UnrecognizedShape(raw=value, reason="object keys do not match a known shape")

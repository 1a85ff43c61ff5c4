"""Completeness checks and payload validators.

A validator takes the parsed JSON value and returns the typed value,
raising StageFailure when the payload is incomplete. Validation failure
counts as a parse failure: no partial value leaves the extractor.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Any

from pydantic import BaseModel, ValidationError

from brandpulse.analysis.types import MentionCounts
from brandpulse.parsing.framing import count_unbalanced
from brandpulse.parsing.shapes import BrandMetricsShape, MentionCountsShape, as_number, classify_payload
from brandpulse.parsing.types import StageFailure
from brandpulse.schemas.brand_intel import BrandIntel
from brandpulse.schemas.competitor import CompetitorListPayload

Validator = Callable[[Any], Any]


def check_completeness(json_text: str) -> None:
    """Reject slices that are visibly truncated."""
    stripped = json_text.rstrip()
    if not stripped.endswith(("}", "]")):
        raise StageFailure("payload does not end with '}' or ']'")
    braces, brackets = count_unbalanced(stripped)
    if braces or brackets:
        raise StageFailure(f"unbalanced containers (braces={braces}, brackets={brackets})")


def _summarize(error: ValidationError) -> str:
    parts = []
    for err in error.errors()[:5]:
        loc = ".".join(str(p) for p in err["loc"])
        parts.append(f"{loc}: {err['msg']}")
    return "; ".join(parts)


def model_validator(model: type[BaseModel]) -> Validator:
    """Wrap a pydantic model as a validator."""

    def _validate(value: Any) -> BaseModel:
        try:
            return model.model_validate(value)
        except ValidationError as e:
            raise StageFailure(f"{model.__name__} invalid: {_summarize(e)}") from e

    return _validate


validate_competitor_list = model_validator(CompetitorListPayload)
validate_brand_intel = model_validator(BrandIntel)


def validate_product_names(value: Any) -> list[str]:
    """A JSON array of product-name strings; lowercased, deduplicated."""
    if isinstance(value, dict):
        value = value.get("products") or value.get("product_names")
    if not isinstance(value, list):
        raise StageFailure("expected a JSON array of product names")
    names: list[str] = []
    for item in value:
        if isinstance(item, str):
            cleaned = item.strip().lower()
            if cleaned and cleaned not in names:
                names.append(cleaned)
    return names


def _to_count(value: Any) -> int:
    if value is None:
        return 0
    number = as_number(value)
    if number is None:
        raise StageFailure(f"mention count {value!r} is not a finite number")
    return max(0, int(round(number)))


class MentionCountsValidator:
    """Resolve a provider payload into MentionCounts for a known entity list.

    The brand count is required. Competitors missing from the payload count as 0.
    """

    def __init__(self, brand_name: str, competitor_names: Sequence[str]):
        self.brand_name = brand_name
        self.competitor_names = list(competitor_names)

    def __call__(self, value: Any) -> MentionCounts:
        shape = classify_payload(value)

        if isinstance(shape, MentionCountsShape):
            lookup = {key.strip().lower(): v for key, v in shape.counts.items()}
        elif isinstance(shape, BrandMetricsShape):
            lookup = self._lookup_from_brand_metrics(shape)
        else:
            raise StageFailure(f"unsupported payload shape for mention counts: {type(shape).__name__}")

        brand_key = self.brand_name.strip().lower()
        if brand_key not in lookup:
            raise StageFailure(f"mention count for brand {self.brand_name!r} missing")

        competitors = {name: _to_count(lookup.get(name.strip().lower())) for name in self.competitor_names}
        return MentionCounts(brand=_to_count(lookup[brand_key]), competitors=competitors)

    def _lookup_from_brand_metrics(self, shape: BrandMetricsShape) -> dict[str, Any]:
        lookup: dict[str, Any] = {}
        brand_mentions = shape.brand_metrics.get("mentions", shape.brand_metrics.get("count"))
        if brand_mentions is not None:
            lookup[self.brand_name.strip().lower()] = brand_mentions
        for item in shape.competitors:
            name = item.get("competitor_name") or item.get("name")
            if isinstance(name, str):
                lookup[name.strip().lower()] = item.get("mentions", item.get("count"))
        return lookup

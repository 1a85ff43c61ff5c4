"""Structured-output extractor: ordered stages with accumulated diagnostics."""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from typing import Any, Literal

from brandpulse.core.metrics import STRUCTURED_OUTPUT_EXTRACTIONS
from brandpulse.parsing.framing import extract_balanced, strip_framing
from brandpulse.parsing.repair import clean_json_text
from brandpulse.parsing.types import (
    ExtractionResult,
    ExtractionStage,
    Provenance,
    StageDiagnostic,
    StageFailure,
    StructuredOutputError,
)
from brandpulse.parsing.validation import Validator, check_completeness

logger = logging.getLogger(__name__)

_PARSE_STAGES: tuple[tuple[ExtractionStage, Provenance, Callable[[str], str]], ...] = (
    (ExtractionStage.STRICT_PARSE, Provenance.STRICT, lambda text: text),
    (ExtractionStage.CLEANING_PARSE, Provenance.CLEANED, clean_json_text),
)


def _identity(value: Any) -> Any:
    return value


class StructuredOutputExtractor:
    """Extract and validate one JSON container from raw model output.

    Args:
        validator: turns the parsed value into the typed payload; raises
            StageFailure when required fields are missing.
        container: "object" slices from the first '{', "array" from the first '['.
        regex_fallback: optional text -> value function, tried only when no
            balanced container could be sliced. Its result is validated too
            and tagged low confidence.
    """

    def __init__(
        self,
        validator: Validator | None = None,
        *,
        container: Literal["object", "array"] = "object",
        regex_fallback: Callable[[str], Any] | None = None,
    ):
        self.validator = validator or _identity
        self.opener = "{" if container == "object" else "["
        self.regex_fallback = regex_fallback

    def extract(self, text: str) -> ExtractionResult:
        diagnostics: list[StageDiagnostic] = []

        framed = strip_framing(text)
        if not framed:
            diagnostics.append(StageDiagnostic(ExtractionStage.STRIP_FRAMING, "empty after removing framing"))
            raise self._error(diagnostics)

        try:
            sliced = extract_balanced(framed, self.opener)
        except StageFailure as e:
            diagnostics.append(StageDiagnostic(ExtractionStage.BRACE_MATCH, str(e)))
            return self._try_regex_fallback(framed, diagnostics)

        for stage, provenance, transform in _PARSE_STAGES:
            candidate = transform(sliced)
            try:
                value = json.loads(candidate)
            except json.JSONDecodeError as e:
                diagnostics.append(StageDiagnostic(stage, f"{e.msg} at char {e.pos}"))
                continue

            try:
                check_completeness(candidate)
                validated = self.validator(value)
            except StageFailure as e:
                diagnostics.append(StageDiagnostic(ExtractionStage.VALIDATION, f"after {stage.value}: {e}"))
                continue

            return self._succeed(validated, provenance, diagnostics)

        raise self._error(diagnostics)

    def _try_regex_fallback(self, framed: str, diagnostics: list[StageDiagnostic]) -> ExtractionResult:
        if self.regex_fallback is None:
            raise self._error(diagnostics)
        try:
            validated = self.validator(self.regex_fallback(framed))
        except StageFailure as e:
            diagnostics.append(StageDiagnostic(ExtractionStage.REGEX_FALLBACK, str(e)))
            raise self._error(diagnostics)
        logger.warning("Structured output recovered by regex fallback (low confidence)")
        return self._succeed(validated, Provenance.REGEX_FALLBACK, diagnostics)

    @staticmethod
    def _succeed(value: Any, provenance: Provenance, diagnostics: list[StageDiagnostic]) -> ExtractionResult:
        STRUCTURED_OUTPUT_EXTRACTIONS.labels(outcome=provenance.value).inc()
        if diagnostics:
            logger.debug("Extraction succeeded via %s after: %s", provenance.value, "; ".join(map(str, diagnostics)))
        return ExtractionResult(value=value, provenance=provenance, diagnostics=tuple(diagnostics))

    @staticmethod
    def _error(diagnostics: list[StageDiagnostic]) -> StructuredOutputError:
        STRUCTURED_OUTPUT_EXTRACTIONS.labels(outcome="failed").inc()
        return StructuredOutputError(diagnostics)

"""Types for structured-output extraction."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ExtractionStage(str, Enum):
    STRIP_FRAMING = "strip_framing"
    BRACE_MATCH = "brace_match"
    STRICT_PARSE = "strict_parse"
    CLEANING_PARSE = "cleaning_parse"
    VALIDATION = "validation"
    REGEX_FALLBACK = "regex_fallback"


class Provenance(str, Enum):
    """Which stage produced the accepted value."""

    STRICT = "strict"
    CLEANED = "cleaned"
    REGEX_FALLBACK = "regex_fallback"  # Low confidence


@dataclass(frozen=True)
class StageDiagnostic:
    stage: ExtractionStage
    message: str

    def __str__(self) -> str:
        return f"{self.stage.value}: {self.message}"


@dataclass(frozen=True)
class ExtractionResult:
    value: Any
    provenance: Provenance
    diagnostics: tuple[StageDiagnostic, ...] = field(default=())

    @property
    def low_confidence(self) -> bool:
        return self.provenance is Provenance.REGEX_FALLBACK


class StageFailure(Exception):
    """A single stage could not produce a value. Internal to the pipeline."""


class StructuredOutputError(Exception):
    """No stage produced a valid value."""

    def __init__(self, diagnostics: list[StageDiagnostic] | tuple[StageDiagnostic, ...]):
        self.diagnostics = tuple(diagnostics)
        detail = "; ".join(str(d) for d in self.diagnostics) or "no stages ran"
        super().__init__(f"Structured output extraction failed: {detail}")

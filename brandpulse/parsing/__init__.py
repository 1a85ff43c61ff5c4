"""Resilient structured-output extraction for LLM responses.

Stages run in order and stop at the first success:
  1. Strip framing (end-of-generation tokens, <think> blocks, code fences)
  2. Brace-matched slice (string/escape aware)
  3. Strict JSON parse
  4. Cleaning parse (mechanical repairs)
  5. Completeness + payload validation after every successful parse
  6. Regex fallback (opt-in, low confidence)

Failure raises StructuredOutputError with every stage's diagnostic;
a partial value is never returned.
"""

from brandpulse.parsing.extractor import StructuredOutputExtractor
from brandpulse.parsing.shapes import classify_payload
from brandpulse.parsing.types import ExtractionResult, Provenance, StructuredOutputError

__all__ = [
    "ExtractionResult",
    "Provenance",
    "StructuredOutputError",
    "StructuredOutputExtractor",
    "classify_payload",
]

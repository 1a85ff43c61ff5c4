"""Prometheus metrics for the scoring worker."""

from prometheus_client import Counter, Histogram, Info

from brandpulse import __version__

APP_INFO = Info("brandpulse", "Brand visibility scoring info")
APP_INFO.info({"version": __version__, "name": "brandpulse"})

PROVIDER_REQUESTS = Counter(
    "llm_provider_requests_total",
    "LLM provider calls by outcome",
    ["provider", "status"],
)

STRUCTURED_OUTPUT_EXTRACTIONS = Counter(
    "structured_output_extractions_total",
    "Structured-output extraction attempts by outcome (strict | cleaned | regex_fallback | failed)",
    ["outcome"],
)

ANSWERS_SCORED = Counter(
    "answers_scored_total",
    "Answers processed by the scoring pipeline",
    ["outcome"],  # scored | skipped | failed
)

STATUS_TRANSITIONS = Counter(
    "status_transitions_total",
    "Collector result status transition attempts",
    ["outcome"],  # updated | conflict | skipped_terminal | not_found
)

SCORING_DURATION = Histogram(
    "answer_scoring_duration_seconds",
    "Time spent scoring a single answer, including LLM counting",
    buckets=[0.1, 0.25, 0.5, 1, 2.5, 5, 10, 30, 60],
)

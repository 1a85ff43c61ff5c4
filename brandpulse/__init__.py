"""Brand visibility scoring for LLM-generated answers."""

__version__ = "0.1.0"

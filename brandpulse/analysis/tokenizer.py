"""Tokenizer and sentence splitter.

Tokens are maximal runs of unicode letters and digits, lowercased.
Everything else (punctuation, whitespace, symbols, underscores) is a separator.
Pure and deterministic: tokenize(" ".join(tokenize(t))) == tokenize(t).
"""

from __future__ import annotations

import re

_TOKEN_RE = re.compile(r"[^\W_]+")
_WHITESPACE_RE = re.compile(r"\s+")

# A sentence is a run of non-terminators plus its terminators; a trailing
# fragment without a terminator is still a sentence.
_SENTENCE_RE = re.compile(r"[^.!?]+(?:[.!?]+|$)")


def tokenize(text: str) -> list[str]:
    """Split text into lowercase letter/digit tokens."""
    if not text:
        return []
    return _TOKEN_RE.findall(text.lower())


def normalize_whitespace(text: str) -> str:
    """Collapse runs of whitespace into single spaces and trim."""
    return _WHITESPACE_RE.sub(" ", text or "").strip()


def split_sentences(text: str) -> list[str]:
    """Split text on runs of '.', '!' and '?', keeping the terminators."""
    sentences = []
    for match in _SENTENCE_RE.finditer(text or ""):
        sentence = match.group(0).strip()
        if sentence:
            sentences.append(sentence)
    return sentences

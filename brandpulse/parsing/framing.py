"""Framing removal and balanced-container slicing."""

from __future__ import annotations

import re

from brandpulse.parsing.types import StageFailure

END_OF_GENERATION_TOKENS: tuple[str, ...] = (
    "<|endoftext|>",
    "<|im_end|>",
    "<|end|>",
    "<|eot_id|>",
    "---END---",
)

_THINK_RE = re.compile(r"<think>.*?</think>", re.DOTALL | re.IGNORECASE)
_FENCED_BLOCK_RE = re.compile(r"```[a-zA-Z]*\s*\n?(.*?)```", re.DOTALL)
_LEADING_FENCE_RE = re.compile(r"^```[a-zA-Z]*\s*")
_TRAILING_FENCE_RE = re.compile(r"\s*```\s*$")

_CLOSERS = {"{": "}", "[": "]"}


def strip_framing(text: str) -> str:
    """Remove end-of-generation tokens, reasoning blocks and Markdown fences."""
    cleaned = text or ""
    for token in END_OF_GENERATION_TOKENS:
        idx = cleaned.find(token)
        if idx != -1:
            cleaned = cleaned[:idx]

    cleaned = _THINK_RE.sub("", cleaned)

    fenced = _FENCED_BLOCK_RE.search(cleaned)
    if fenced and fenced.group(1).strip():
        cleaned = fenced.group(1)
    else:
        cleaned = _LEADING_FENCE_RE.sub("", cleaned.strip())
        cleaned = _TRAILING_FENCE_RE.sub("", cleaned)

    return cleaned.strip()


def extract_balanced(text: str, opener: str = "{") -> str:
    """Slice from the first ``opener`` to its matching closer.

    Brackets inside string literals and escaped quotes are ignored.
    Raises StageFailure when there is no opener or it is never closed.
    """
    closer = _CLOSERS[opener]
    start = text.find(opener)
    if start == -1:
        raise StageFailure(f"no opening {opener!r} found")

    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == opener:
            depth += 1
        elif ch == closer:
            depth -= 1
            if depth == 0:
                return text[start : i + 1]

    raise StageFailure(f"unbalanced {opener!r}: no matching {closer!r} before end of text")


def count_unbalanced(text: str) -> tuple[int, int]:
    """Return (brace depth, bracket depth) at end of text, outside string literals."""
    braces = brackets = 0
    in_string = False
    escaped = False
    for ch in text:
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "{":
            braces += 1
        elif ch == "}":
            braces -= 1
        elif ch == "[":
            brackets += 1
        elif ch == "]":
            brackets -= 1
    return braces, brackets

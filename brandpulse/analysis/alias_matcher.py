"""Alias Matcher: locates entity mentions in a token sequence.

At each token index every alias token sequence is tried longest-first;
the first full contiguous match records a 1-based position and the scan
skips past the matched span. A shorter alias therefore never claims a
position inside a longer alias that matched at the same index.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from brandpulse.analysis.tokenizer import split_sentences, tokenize
from brandpulse.analysis.types import AliasSet, MentionSentences, Occurrence, TextUnit

logger = logging.getLogger(__name__)

_CORPORATE_SUFFIX_RE = re.compile(r"\s+(inc|llc|corp|corporation|ltd|limited|co|gmbh|plc)\.?$", re.IGNORECASE)


def _clean(value: Any) -> str:
    if not isinstance(value, str):
        return ""
    return value.strip().lower()


def build_alias_set(
    canonical: str,
    aliases: Iterable[str] = (),
    product_names: Iterable[str] = (),
) -> AliasSet:
    """Build an alias set with the lowercased canonical name first.

    Known aliases come next, then a suffix-stripped variant of the canonical
    name ("Acme Inc" -> "acme"), then product names. Product names are
    untrusted LLM output and only ever lowercased and deduplicated.
    """
    ordered: list[str] = []
    seen: set[str] = set()

    def add(value: Any) -> None:
        cleaned = _clean(value)
        if cleaned and cleaned not in seen:
            seen.add(cleaned)
            ordered.append(cleaned)

    primary = _clean(canonical)
    add(primary)
    for alias in aliases:
        add(alias)
    stripped = _CORPORATE_SUFFIX_RE.sub("", primary)
    if stripped != primary:
        add(stripped)
    for name in product_names:
        add(name)

    return AliasSet(canonical=canonical, aliases=tuple(ordered))


def aliases_from_metadata(metadata: Mapping[str, Any] | None) -> list[str]:
    """Read the ``aliases`` list from an entity's metadata mapping."""
    if not metadata:
        return []
    raw = metadata.get("aliases")
    if not isinstance(raw, list):
        return []
    return [a for a in raw if isinstance(a, str) and a.strip()]


def find_occurrences(tokens: Sequence[str], alias_set: AliasSet) -> Occurrence:
    """Return the 1-based start positions of every alias match in ``tokens``."""
    sequences = alias_set.token_sequences
    positions: list[int] = []
    i = 0
    n = len(tokens)
    while i < n:
        matched = 0
        for seq in sequences:
            length = len(seq)
            if i + length <= n and tuple(tokens[i : i + length]) == seq:
                matched = length
                break
        if matched:
            positions.append(i + 1)
            i += matched
        else:
            i += 1
    return Occurrence(positions=tuple(positions))


def _sentence_index(text: str) -> tuple[list[str], list[int]]:
    """Split ``text`` into sentences and map each token index to its sentence."""
    sentences = split_sentences(text)
    owner: list[int] = []
    for idx, sentence in enumerate(sentences):
        owner.extend([idx] * len(tokenize(sentence)))
    return sentences, owner


def find_occurrences_with_sentences(text_unit: TextUnit, alias_set: AliasSet) -> MentionSentences:
    """Like find_occurrences, also collecting each distinct containing sentence."""
    occurrence = find_occurrences(text_unit.tokens, alias_set)
    if not occurrence.positions:
        return MentionSentences(occurrence=occurrence)

    sentences, owner = _sentence_index(text_unit.normalized)
    if len(owner) != text_unit.total_words:
        # Sentence split dropped or added tokens; positions cannot be mapped reliably
        logger.debug(
            "Sentence token count %d != answer token count %d for %r",
            len(owner),
            text_unit.total_words,
            alias_set.canonical,
        )

    found: list[str] = []
    for position in occurrence.positions:
        index = position - 1
        if index >= len(owner):
            continue
        sentence = sentences[owner[index]]
        if sentence not in found:
            found.append(sentence)
    return MentionSentences(occurrence=occurrence, sentences=tuple(found))

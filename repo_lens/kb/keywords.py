"""
Keyword extraction: normalizes free text into a deduplicated token set.

Used both when indexing entries and when normalizing search queries, so the
two sides always agree on what a "keyword" is.
"""

from __future__ import annotations

import re

STOP_WORDS: frozenset[str] = frozenset({
    "a", "an", "the", "and", "or", "but", "in", "on", "at", "to", "for",
    "with", "by", "of", "is", "are", "was", "were", "be", "been", "being",
    "have", "has", "had", "do", "does", "did", "will", "would", "could",
    "should", "may", "might", "can", "must", "shall",
    # question words and fillers that carry no lookup value
    "how", "what", "where", "when", "why", "which", "who", "whom",
    "this", "that", "these", "those", "there", "their", "them", "then",
    "than", "from", "into", "about", "not", "you", "your", "its", "our",
    "any", "all", "some",
})

_CAMEL_RE = re.compile(r"[A-Z]+(?=[A-Z][a-z])|[A-Z]?[a-z]+|[A-Z]+|\d+")
_IDENT_RE = re.compile(r"[A-Za-z][A-Za-z0-9]*")
_NON_WORD_RE = re.compile(r"[^\w\s]")
_SPACE_RE = re.compile(r"\s+")

MIN_KEYWORD_LENGTH = 3


def _camel_parts(text: str) -> str:
    """Append the pieces of every camelCase identifier found in *text*."""
    extra: list[str] = []
    for ident in _IDENT_RE.findall(text):
        if ident.islower() or ident.isupper():
            continue
        parts = _CAMEL_RE.findall(ident)
        if len(parts) > 1:
            extra.extend(parts)
    if not extra:
        return text
    return f"{text} {' '.join(extra)}"


def _keep(token: str) -> bool:
    return len(token) >= MIN_KEYWORD_LENGTH and token not in STOP_WORDS


def extract_keywords(text: str | None) -> frozenset[str]:
    """
    Return the keyword set for *text*.

    Lowercases, strips non-word characters, splits camelCase and snake_case
    identifiers into their parts (keeping the whole identifier too), and drops
    short tokens and stop-words.  Never raises; ``None`` or empty input gives
    an empty set.
    """
    if not text:
        return frozenset()
    cleaned = _camel_parts(str(text)).lower()
    cleaned = _NON_WORD_RE.sub(" ", cleaned)
    cleaned = _SPACE_RE.sub(" ", cleaned).strip()
    if not cleaned:
        return frozenset()

    keywords: set[str] = set()
    for token in cleaned.split(" "):
        if _keep(token):
            keywords.add(token)
        if "_" in token:
            keywords.update(part for part in token.split("_") if _keep(part))
    return frozenset(keywords)

"""
RetrievalEngine: additive heuristic ranking of knowledge entries.

For every query keyword an entry collects points from independent signals:

=========================  ======
exact keyword match          5.0
shared-prefix keyword        2.0   (only when the exact form is absent)
content substring            3.0
whole-word content match    +1.0
file path substring          1.5
serialized metadata          0.5
=========================  ======

Related terms from a small synonym table add 0.25 each when found in the
content; they are not counted when normalizing.  The total is divided by the
number of query keywords, then positive scores get a bounded priority boost.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Iterable, Union

from .entry import KnowledgeEntry, metadata_to_dict
from .keywords import extract_keywords
from .store import KnowledgeStore

logger = logging.getLogger(__name__)

EXACT_KEYWORD_WEIGHT = 5.0
PARTIAL_KEYWORD_WEIGHT = 2.0
CONTENT_WEIGHT = 3.0
WHOLE_WORD_BONUS = 1.0
PATH_WEIGHT = 1.5
METADATA_WEIGHT = 0.5
RELATED_TERM_WEIGHT = 0.25

HIGH_PRIORITY_BOOST = 1.25
MEDIUM_PRIORITY_BOOST = 1.10
README_OVERVIEW_BOOST = 1.15

MIN_PREFIX_LENGTH = 4

DEFAULT_TOP_K = 20
DEFAULT_MIN_SCORE = 0.5
DEFAULT_MAX_PER_FILE = 3

RELATED_TERMS: dict[str, tuple[str, ...]] = {
    "member": ("membership", "subscriber"),
    "members": ("membership", "subscriber"),
    "membership": ("member", "subscription", "portal"),
    "subscription": ("subscribe", "plan", "billing"),
    "price": ("pricing", "cost"),
    "pricing": ("price", "cost", "tier"),
    "plan": ("tier", "subscription"),
    "payment": ("billing", "checkout", "charge"),
    "settings": ("config", "configuration", "admin"),
    "config": ("configuration", "settings", "options"),
    "subtitle": ("subheading", "description", "label"),
    "component": ("interface", "element", "widget"),
    "page": ("view", "screen", "route"),
    "auth": ("authentication", "login", "session"),
    "login": ("signin", "auth", "session"),
    "email": ("mail", "newsletter", "mailer"),
    "newsletter": ("email", "mailer"),
    "error": ("exception", "failure"),
    "database": ("model", "schema", "query"),
    "test": ("spec", "assert"),
}

OVERVIEW_TERMS = frozenset({"readme", "overview", "summary", "introduction", "about", "project"})

EntrySource = Union[KnowledgeStore, Iterable[KnowledgeEntry]]


@dataclass(frozen=True)
class SearchHit:
    entry: KnowledgeEntry
    score: float


def related_terms(query_keywords: frozenset[str]) -> frozenset[str]:
    """Synonyms of the query keywords that are not themselves query keywords."""
    terms: set[str] = set()
    for keyword in query_keywords:
        terms.update(RELATED_TERMS.get(keyword, ()))
    return frozenset(terms - query_keywords)


def _shares_prefix(keyword: str, candidate: str) -> bool:
    if min(len(keyword), len(candidate)) < MIN_PREFIX_LENGTH:
        return False
    return candidate.startswith(keyword) or keyword.startswith(candidate)


def _metadata_text(entry: KnowledgeEntry) -> str:
    data = metadata_to_dict(entry.metadata)
    if data is None:
        return ""
    return json.dumps(data, sort_keys=True).lower()


class RetrievalEngine:
    """
    Rank entries for a free-text query.

    Parameters
    ----------
    top_k:
        Page size.
    min_score:
        Entries scoring below this are dropped.
    max_per_file:
        Cap on results from one file; ``0`` disables the cap.
    """

    def __init__(self, top_k: int = DEFAULT_TOP_K,
                 min_score: float = DEFAULT_MIN_SCORE,
                 max_per_file: int = DEFAULT_MAX_PER_FILE):
        self.top_k = top_k
        self.min_score = min_score
        self.max_per_file = max_per_file

    # ------------------------------------------------------------------
    # Scoring
    # ------------------------------------------------------------------

    def score(self, query_keywords: frozenset[str], entry: KnowledgeEntry) -> float:
        """
        Score one entry against already-normalized query keywords.

        Returns 0.0 for an empty keyword set.
        """
        if not query_keywords:
            return 0.0
        content = entry.content.lower()
        path = entry.file_path.lower()
        metadata = _metadata_text(entry)

        total = 0.0
        for keyword in query_keywords:
            if keyword in entry.keywords:
                total += EXACT_KEYWORD_WEIGHT
            elif any(_shares_prefix(keyword, kw) for kw in entry.keywords):
                total += PARTIAL_KEYWORD_WEIGHT
            if keyword in content:
                total += CONTENT_WEIGHT
                if re.search(rf"\b{re.escape(keyword)}\b", content):
                    total += WHOLE_WORD_BONUS
            if keyword in path:
                total += PATH_WEIGHT
            if metadata and keyword in metadata:
                total += METADATA_WEIGHT

        for term in related_terms(query_keywords):
            if term in content:
                total += RELATED_TERM_WEIGHT

        score = total / len(query_keywords)
        if score > 0:
            score *= self._boost(query_keywords, entry)
        return score

    @staticmethod
    def _boost(query_keywords: frozenset[str], entry: KnowledgeEntry) -> float:
        boost = 1.0
        if entry.priority == "high":
            boost *= HIGH_PRIORITY_BOOST
        elif entry.priority == "medium":
            boost *= MEDIUM_PRIORITY_BOOST
        if entry.hints.get("is_readme") and query_keywords & OVERVIEW_TERMS:
            boost *= README_OVERVIEW_BOOST
        return boost

    # ------------------------------------------------------------------
    # Ranking
    # ------------------------------------------------------------------

    def rank(self, query: str, source: EntrySource) -> list[SearchHit]:
        """
        Return scored hits for *query*, best first.

        Never raises: a failure while ranking is logged and yields an empty
        list.
        """
        try:
            return self._rank(query, source)
        except Exception as exc:
            logger.warning("[Search] Ranking failed for %r: %s", query, exc)
            return []

    def _rank(self, query: str, source: EntrySource) -> list[SearchHit]:
        keywords = extract_keywords(query)
        if not keywords:
            return []
        entries = source.snapshot() if isinstance(source, KnowledgeStore) else tuple(source)

        scored: list[tuple[float, int, KnowledgeEntry]] = []
        for index, entry in enumerate(entries):
            value = self.score(keywords, entry)
            if value > 0 and value >= self.min_score:
                scored.append((value, index, entry))
        scored.sort(key=lambda item: (-item[0], item[1]))

        hits: list[SearchHit] = []
        per_file: dict[str, int] = {}
        for value, _index, entry in scored:
            if self.max_per_file > 0:
                count = per_file.get(entry.file_path, 0)
                if count >= self.max_per_file:
                    continue
                per_file[entry.file_path] = count + 1
            hits.append(SearchHit(entry, value))
            if len(hits) >= self.top_k:
                break

        logger.debug("[Search] %r -> %d/%d candidates kept", query, len(hits), len(scored))
        return hits

    def search(self, query: str, source: EntrySource) -> list[KnowledgeEntry]:
        """Ranked entries for *query*; empty when nothing scores above threshold."""
        return [hit.entry for hit in self.rank(query, source)]

"""
Answer generation from ranked search hits.

With an LLM client configured the top hits are handed to the model as
context; any :class:`LLMError` falls back to a template answer assembled from
the hits themselves.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Callable, Optional

from ..llm import LLMClient, LLMError
from .entry import FunctionMeta
from .searcher import SearchHit

logger = logging.getLogger(__name__)

LLM_CONFIDENCE = 0.9
MOCK_CONFIDENCE_CAP = 0.3
MAX_REFERENCES = 3
MAX_CONTEXT_HITS = 8
SNIPPET_CHARS = 120
STRONG_SCORE = 5.0


@dataclass
class Reference:
    file_path: str
    snippet: str
    last_updated: Optional[str] = None
    updated_by: Optional[str] = None
    change_frequency: Optional[str] = None


@dataclass
class Answer:
    text: str
    confidence: float
    references: list[Reference] = field(default_factory=list)
    used_mock_data: bool = False
    source: str = "template"    # "llm" | "template"


def _snippet(text: str) -> str:
    text = " ".join(text.split())
    if len(text) > SNIPPET_CHARS:
        return text[:SNIPPET_CHARS] + "..."
    return text


def build_prompt(question: str, hits: list[SearchHit]) -> str:
    blocks = []
    for hit in hits[:MAX_CONTEXT_HITS]:
        blocks.append(f"File: {hit.entry.file_path}\n{hit.entry.content[:1500]}")
    context = "\n\n---\n\n".join(blocks)
    return (
        f"Question: {question}\n\n"
        f"Relevant excerpts from the repository:\n\n{context}\n\n"
        "Answer the question in plain language, citing file paths where useful. "
        "If the excerpts do not answer it, say so."
    )


class AnswerGenerator:
    """
    Parameters
    ----------
    search:
        ``question -> list[SearchHit]``, best first.
    llm:
        Optional client; None means template answers only.
    using_mock_data:
        Reports whether the knowledge being searched is synthetic.
    """

    def __init__(self, search: Callable[[str], list[SearchHit]],
                 llm: Optional[LLMClient] = None,
                 using_mock_data: Callable[[], bool] = lambda: False):
        self.search = search
        self.llm = llm
        self.using_mock_data = using_mock_data

    def answer(self, question: str) -> Optional[Answer]:
        hits = self.search(question)
        if not hits:
            logger.info("[Answer] No results for %r", question)
            return None
        mock = self.using_mock_data()
        references = [
            Reference(h.entry.file_path, _snippet(h.entry.content), h.entry.last_updated,
                      h.entry.updated_by, h.entry.change_frequency)
            for h in hits[:MAX_REFERENCES]
        ]

        answer = None
        if self.llm is not None:
            try:
                text = self.llm.generate_response(build_prompt(question, hits))
                answer = Answer(text.strip(), LLM_CONFIDENCE, references, mock, "llm")
            except LLMError as exc:
                logger.warning("[Answer] LLM unavailable, using template answer: %s", exc)
        if answer is None:
            answer = Answer(self._template(question, hits), self._confidence(hits),
                            references, mock, "template")
        if mock:
            answer.confidence = min(answer.confidence, MOCK_CONFIDENCE_CAP)
        return answer

    @staticmethod
    def _confidence(hits: list[SearchHit]) -> float:
        base = min(0.3 + 0.15 * len(hits), 0.95)
        strength = min(1.0, hits[0].score / STRONG_SCORE)
        return round(base * (0.5 + 0.5 * strength), 2)

    @staticmethod
    def _template(question: str, hits: list[SearchHit]) -> str:
        files: list[str] = []
        functions: list[str] = []
        for hit in hits:
            if hit.entry.file_path not in files:
                files.append(hit.entry.file_path)
            meta = hit.entry.metadata
            if isinstance(meta, FunctionMeta) and meta.name not in functions:
                functions.append(meta.name)
        topics = []
        for path in files:
            stem = os.path.splitext(os.path.basename(path))[0]
            if stem not in topics:
                topics.append(stem)

        lines = [f"## {question.strip()}", ""]
        lines.append("The most relevant code lives in "
                     + ", ".join(f"`{p}`" for p in files[:3]) + ".")
        if functions:
            lines.append("Functions involved: " + ", ".join(functions[:3]) + ".")
        if topics:
            lines.append("Topics: " + ", ".join(topics[:5]) + ".")
        lines.append("")
        lines.append("**Key findings:**")
        lines.append("")
        for hit in hits[:MAX_REFERENCES]:
            lines.append(f"* {_snippet(hit.entry.content)} ({hit.entry.file_path})")

        dated = sorted((h.entry.last_updated for h in hits if h.entry.last_updated),
                       reverse=True)
        if dated:
            lines.append("")
            lines.append(f"**This information is current as of {dated[0][:10]}.**")
        return "\n".join(lines)

"""
Entry builder: turns :class:`ExtractedKnowledge` into ``KnowledgeEntry`` objects.

One file produces, in order:

1. the (truncated) file content plus a one-line summary, for files likely to
   hold business logic;
2. one entry per doc comment, line comment, function, class, export, API
   route, text block and structured-data literal;
3. a page entry for markdown documents and a config entry for configuration
   documents.

Every entry gets a deterministic id, a keyword set and, where it helps
ranking, ``priority`` / ``is_readme`` hints.
"""

from __future__ import annotations

import logging
import os
import re
from typing import Callable, Optional

from .entry import (
    ClassMeta,
    ConfigMeta,
    ContentMeta,
    EntryMetadata,
    EntryType,
    ExportMeta,
    FunctionMeta,
    KnowledgeEntry,
    PageMeta,
    RouteMeta,
    TextMeta,
    make_entry_id,
)
from .extractor import ExtractedKnowledge, PYTHON_EXTENSIONS, extract, file_extension
from .keywords import extract_keywords

logger = logging.getLogger(__name__)

DEFAULT_MAX_CONTENT_CHARS = 2000
MIN_CONTENT_LENGTH = 50

_GITHUB_METADATA_PATTERNS = (
    ".github/CODE_OF_CONDUCT.md",
    ".github/CONTRIBUTING.md",
    ".github/ISSUE_TEMPLATE/",
    ".github/PULL_REQUEST_TEMPLATE",
    ".github/workflows/",
    ".github/scripts/",
    "bump-version.js",
)

_BUSINESS_LOGIC_PATTERNS = (
    re.compile(r"\.(js|mjs|cjs|ts|jsx|tsx|py|json|yaml|yml|toml|ini|conf|config)$", re.I),
    re.compile(r"(config|settings|integration|service|api|webhook|provider|client|connector)",
               re.I),
)

_HIGH_PRIORITY_PATH_RE = re.compile(
    r"(^|/)(services?|api|controllers?|routes?|models?|integrations?|webhooks?)(/|$)", re.I)
_MEDIUM_PRIORITY_PATH_RE = re.compile(
    r"(^|/)(src|lib|core|server|app|components|pages|utils|helpers|docs?)(/|$)", re.I)
_README_RE = re.compile(r"(^|/)readme(\.[a-z]+)?$", re.I)


# ---------------------------------------------------------------------------
# Path predicates
# ---------------------------------------------------------------------------

def is_github_metadata_file(file_path: str) -> bool:
    """True for repository-hosting metadata (workflows, templates, policies)."""
    return any(pattern in file_path for pattern in _GITHUB_METADATA_PATTERNS)


def is_business_logic_file(file_path: str) -> bool:
    return any(p.search(file_path) for p in _BUSINESS_LOGIC_PATTERNS)


def is_readme(file_path: str) -> bool:
    return _README_RE.search(file_path) is not None


def priority_for(file_path: str) -> Optional[str]:
    """Scoring hint for entries from *file_path*: ``high``, ``medium`` or None."""
    if is_readme(file_path) or _HIGH_PRIORITY_PATH_RE.search(file_path):
        return "high"
    if _MEDIUM_PRIORITY_PATH_RE.search(file_path):
        return "medium"
    return None


# ---------------------------------------------------------------------------
# Summaries
# ---------------------------------------------------------------------------

def summarize_content(content: str, file_path: str) -> Optional[str]:
    """One-line structural summary of a file, or None when nothing counts."""
    name = os.path.basename(file_path).lower()
    assignments = len(re.findall(r"(\w+)\s*[:=]\s*['\"][^'\"\n]+['\"]", content))

    if "integration" in name or "service" in name:
        parts = []
        objects = len(re.findall(r"(?:const|let|var)\s+\w+\s*=\s*\{", content))
        imports = len(re.findall(r"(?:import\s.*from\s*['\"][^'\"]+['\"]|require\()", content))
        if objects:
            parts.append(f"Services: {objects} defined")
        if imports:
            parts.append(f"Imports: {imports} external packages")
        if assignments:
            parts.append(f"Configs: {assignments} configuration items")
        if parts:
            return f"Integration File Summary: {', '.join(parts)}"

    if "config" in name or "settings" in name:
        parts = []
        objects = len(re.findall(r"\w+\s*[:=]\s*\{", content))
        if assignments:
            parts.append(f"Settings: {assignments} configuration values")
        if objects:
            parts.append(f"Objects: {objects} configuration objects")
        if parts:
            return f"Configuration File Summary: {', '.join(parts)}"

    if "api" in name or "endpoint" in name:
        parts = []
        routes = len(re.findall(r"\.(?:get|post|put|patch|delete)\s*\(", content))
        endpoints = len(re.findall(r"['\"][^'\"\n]*/[^'\"\n]*['\"]", content))
        if routes:
            parts.append(f"Routes: {routes} API routes")
        if endpoints:
            parts.append(f"Endpoints: {endpoints} endpoints defined")
        if parts:
            return f"API File Summary: {', '.join(parts)}"

    parts = [f"{content.count(chr(10)) + 1} lines"]
    functions = len(re.findall(r"function\s+\w+|const\s+\w+\s*=\s*(?:async\s*)?\(|\bdef\s+\w+",
                               content))
    classes = len(re.findall(r"\bclass\s+\w+", content))
    if functions:
        parts.append(f"{functions} functions")
    if classes:
        parts.append(f"{classes} classes")
    return f"File Summary: {', '.join(parts)}"


# ---------------------------------------------------------------------------
# Builder
# ---------------------------------------------------------------------------

class EntryBuilder:
    """
    Builds the entries for one file at a time.

    Parameters
    ----------
    max_content_chars:
        Upper bound on the stored file-content body.
    extractor:
        ``(content, file_path) -> ExtractedKnowledge``; defaults to
        :func:`repo_lens.kb.extractor.extract`.
    """

    def __init__(self, max_content_chars: int = DEFAULT_MAX_CONTENT_CHARS,
                 extractor: Callable[[str, str], ExtractedKnowledge] = extract):
        self.max_content_chars = max_content_chars
        self.extractor = extractor

    def build(self, file_path: str, content: str) -> list[KnowledgeEntry]:
        if is_github_metadata_file(file_path):
            logger.debug("[EntryBuilder] Skipping repository metadata file: %s", file_path)
            return []

        knowledge = self.extractor(content, file_path)
        if knowledge.errors:
            logger.debug("[EntryBuilder] Partial extraction for %s (failed: %s)",
                         file_path, ", ".join(knowledge.errors))

        if knowledge.is_empty() and not is_business_logic_file(file_path):
            logger.debug("[EntryBuilder] Nothing to index in %s", file_path)
            return []

        builder = _FileEntries(file_path)
        self._content_entries(builder, content, knowledge)
        self._comment_entries(builder, knowledge)
        self._code_entries(builder, knowledge)
        self._text_entries(builder, knowledge)
        self._document_entries(builder, knowledge)
        return builder.entries

    # ── raw content ──

    def _content_entries(self, out: "_FileEntries", content: str,
                         knowledge: ExtractedKnowledge) -> None:
        if len(content) <= MIN_CONTENT_LENGTH or not is_business_logic_file(out.file_path):
            return
        body = content[:self.max_content_chars]
        hints = {}
        if knowledge.imports:
            hints["imports"] = sorted({imp.source for imp in knowledge.imports})
        out.add(
            EntryType.CONTENT, body, extract_keywords(body),
            ContentMeta("file-content", os.path.basename(out.file_path), len(content)),
            **hints,
        )
        summary = summarize_content(content, out.file_path)
        if summary:
            out.add(
                EntryType.CONTENT, summary, extract_keywords(summary),
                ContentMeta("content-summary", os.path.basename(out.file_path), len(content)),
            )

    # ── comments ──

    def _comment_entries(self, out: "_FileEntries", knowledge: ExtractedKnowledge) -> None:
        for comment in knowledge.doc_comments + knowledge.line_comments:
            out.add(EntryType.COMMENT, comment, extract_keywords(comment))

    # ── code structure ──

    def _code_entries(self, out: "_FileEntries", knowledge: ExtractedKnowledge) -> None:
        python = file_extension(out.file_path) in PYTHON_EXTENSIONS
        for func in knowledge.functions:
            qualified = f"{func.parent_class}.{func.name}" if func.parent_class else func.name
            prefix = "async " if func.is_async else ""
            if python:
                text = f"{prefix}def {qualified}({func.params}): ..."
            else:
                text = f"{prefix}function {qualified}({func.params}) {{ ... }}"
            out.add(
                EntryType.FUNCTION, text,
                extract_keywords(f"{text} {func.name} {func.parent_class or ''}"),
                FunctionMeta(func.name, func.params, func.is_async, func.parent_class),
            )

        for cls in knowledge.classes:
            text = f"Class: {cls.name}"
            if cls.superclass:
                text += f" extends {cls.superclass}"
            if cls.methods:
                text += f" with methods: {', '.join(cls.methods)}"
            out.add(
                EntryType.CLASS, text,
                extract_keywords(f"class {cls.name} {cls.superclass or ''} {' '.join(cls.methods)}"),
                ClassMeta(cls.name, cls.superclass, tuple(cls.methods)),
            )

        for name, value in knowledge.exports.items():
            is_default = name == "default"
            text = (f"export default {value}" if is_default
                    else f"module.exports.{name} = {value}")
            out.add(
                EntryType.EXPORT, text,
                extract_keywords(f"{name} {value}" if not is_default else value),
                ExportMeta(name, value, is_default),
            )

        for route in knowledge.api_routes:
            text = f"API Route: {route.method} {route.path} => {route.handler}"
            out.add(
                EntryType.API_ROUTE, text,
                extract_keywords(f"api route {route.method} {route.path} {route.handler}"),
                RouteMeta(route.method, route.path, route.handler),
            )

        for name, literal in knowledge.structured_data.items():
            text = f"{name} = {literal}"
            out.add(
                EntryType.STRUCTURED_DATA, text, extract_keywords(text),
                ContentMeta("structured-data", os.path.basename(out.file_path), len(literal)),
            )

    # ── markup text ──

    def _text_entries(self, out: "_FileEntries", knowledge: ExtractedKnowledge) -> None:
        for text_type, text in knowledge.text_blocks:
            out.add(EntryType.TEXT_CONTENT, text, extract_keywords(text), TextMeta(text_type))

    # ── documents ──

    def _document_entries(self, out: "_FileEntries", knowledge: ExtractedKnowledge) -> None:
        page = knowledge.page
        if page is not None:
            path = out.file_path
            label = "blog post" if ("/posts/" in path or "/blog/" in path) else "page"
            text = f"{label}: {page.title or 'Untitled'}"
            if page.description:
                text += f" - {page.description}"
            if page.headings:
                text += f" (sections: {', '.join(page.headings[:10])})"
            out.add(
                EntryType.PAGE, text,
                extract_keywords(" ".join(
                    [label, page.title, page.description] + page.headings + page.tags)),
                PageMeta(page.title, page.description, tuple(page.headings)),
            )

        config = knowledge.config
        if config is not None:
            text = f"Config ({config.format})"
            if config.name:
                text += f": {config.name}"
            if config.description:
                text += f" - {config.description}"
            if config.keys:
                text += f". Keys: {', '.join(config.keys[:30])}"
            if config.scripts:
                text += f". Scripts: {', '.join(config.scripts[:30])}"
            if config.dependencies:
                text += f". Dependencies: {', '.join(config.dependencies[:40])}"
            out.add(
                EntryType.CONFIG, text, extract_keywords(text),
                ConfigMeta(config.format, tuple(config.keys)),
            )


class _FileEntries:
    """Accumulates one file's entries and hands out per-file ordinals."""

    def __init__(self, file_path: str):
        self.file_path = file_path
        self.priority = priority_for(file_path)
        self.readme = is_readme(file_path)
        self.entries: list[KnowledgeEntry] = []

    def add(self, entry_type: str, content: str, keywords: frozenset[str],
            metadata: Optional[EntryMetadata] = None, **extra_hints) -> None:
        if not content or not content.strip():
            return
        hints = dict(extra_hints)
        if self.priority:
            hints["priority"] = self.priority
        if self.readme:
            hints["is_readme"] = True
        self.entries.append(KnowledgeEntry(
            id=make_entry_id(self.file_path, entry_type, content, len(self.entries)),
            type=entry_type,
            content=content,
            file_path=self.file_path,
            keywords=keywords,
            metadata=metadata,
            hints=hints,
        ))

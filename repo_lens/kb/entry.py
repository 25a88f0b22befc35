"""
Knowledge entries: the immutable unit stored in the knowledge base.

Metadata is a small tagged union: one dataclass per entry shape, each with a
``kind`` tag used for (de)serialization.  Nothing in the system requires
metadata to be present; it only feeds the scoring heuristics and answer
rendering.  Free-form scoring hints (``priority``, ``is_readme``) live in the
separate ``hints`` mapping.
"""

from __future__ import annotations

import dataclasses
import hashlib
from dataclasses import dataclass, field
from typing import Any, Optional, Union


class EntryType:
    COMMENT = "comment"
    FUNCTION = "function"
    EXPORT = "export"
    CLASS = "class"
    API_ROUTE = "api-route"
    TEXT_CONTENT = "text-content"
    STRUCTURED_DATA = "structured-data"
    CONTENT = "content"
    PAGE = "page"
    CONFIG = "config"

    ALL = (
        COMMENT, FUNCTION, EXPORT, CLASS, API_ROUTE, TEXT_CONTENT,
        STRUCTURED_DATA, CONTENT, PAGE, CONFIG,
    )


# ---------------------------------------------------------------------------
# Metadata shapes
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class FunctionMeta:
    name: str
    params: str = ""
    is_async: bool = False
    parent_class: Optional[str] = None
    kind: str = field(default="function", init=False)


@dataclass(frozen=True)
class ClassMeta:
    name: str
    superclass: Optional[str] = None
    methods: tuple[str, ...] = ()
    kind: str = field(default="class", init=False)


@dataclass(frozen=True)
class ExportMeta:
    name: str
    value: str = ""
    is_default: bool = False
    kind: str = field(default="export", init=False)


@dataclass(frozen=True)
class RouteMeta:
    method: str
    path: str
    handler: str = ""
    kind: str = field(default="route", init=False)


@dataclass(frozen=True)
class TextMeta:
    text_type: str      # "inter-tag" | "string-literal" | "template-literal" | "attribute" | "comment"
    kind: str = field(default="text", init=False)


@dataclass(frozen=True)
class ContentMeta:
    content_type: str   # "file-content" | "content-summary" | "structured-data"
    file_name: str = ""
    size: int = 0
    kind: str = field(default="content", init=False)


@dataclass(frozen=True)
class PageMeta:
    title: str = ""
    description: str = ""
    headings: tuple[str, ...] = ()
    kind: str = field(default="page", init=False)


@dataclass(frozen=True)
class ConfigMeta:
    format: str         # "json" | "yaml" | "toml" | "ini" | "package"
    keys: tuple[str, ...] = ()
    kind: str = field(default="config", init=False)


EntryMetadata = Union[
    FunctionMeta, ClassMeta, ExportMeta, RouteMeta, TextMeta,
    ContentMeta, PageMeta, ConfigMeta,
]

_META_BY_KIND: dict[str, type] = {
    "function": FunctionMeta,
    "class": ClassMeta,
    "export": ExportMeta,
    "route": RouteMeta,
    "text": TextMeta,
    "content": ContentMeta,
    "page": PageMeta,
    "config": ConfigMeta,
}


def metadata_to_dict(meta: Optional[EntryMetadata]) -> Optional[dict]:
    if meta is None:
        return None
    data = dataclasses.asdict(meta)
    for key, value in data.items():
        if isinstance(value, tuple):
            data[key] = list(value)
    return data


def metadata_from_dict(data: Any) -> Optional[EntryMetadata]:
    """Rebuild metadata from its dict form; unknown or malformed input gives None."""
    if not isinstance(data, dict):
        return None
    cls = _META_BY_KIND.get(data.get("kind", ""))
    if cls is None:
        return None
    kwargs = {}
    for f in dataclasses.fields(cls):
        if not f.init or f.name not in data:
            continue
        value = data[f.name]
        if isinstance(value, list):
            value = tuple(str(v) for v in value)
        kwargs[f.name] = value
    try:
        return cls(**kwargs)
    except TypeError:
        return None


# ---------------------------------------------------------------------------
# Entry
# ---------------------------------------------------------------------------

def make_entry_id(file_path: str, entry_type: str, content: str,
                  ordinal: int = 0) -> str:
    """Deterministic id: digest of path/type/content plus the in-file ordinal."""
    digest = hashlib.sha256(
        f"{file_path}\x00{entry_type}\x00{content}".encode("utf-8", "replace")
    ).hexdigest()
    return f"{digest[:16]}-{ordinal}"


@dataclass(frozen=True)
class KnowledgeEntry:
    """A single indexed piece of repository knowledge."""

    id: str
    type: str
    content: str
    file_path: str
    keywords: frozenset[str] = frozenset()
    metadata: Optional[EntryMetadata] = None
    hints: dict[str, Any] = field(default_factory=dict, compare=False)
    last_updated: Optional[str] = None
    updated_by: Optional[str] = None
    change_frequency: Optional[str] = None

    def with_last_updated(self, timestamp: Optional[str], author: Optional[str] = None,
                          change_frequency: Optional[str] = None) -> "KnowledgeEntry":
        return dataclasses.replace(self, last_updated=timestamp, updated_by=author,
                                   change_frequency=change_frequency)

    @property
    def priority(self) -> Optional[str]:
        value = self.hints.get("priority")
        return value if isinstance(value, str) else None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type,
            "content": self.content,
            "file_path": self.file_path,
            "keywords": sorted(self.keywords),
            "metadata": metadata_to_dict(self.metadata),
            "hints": dict(self.hints),
            "last_updated": self.last_updated,
            "updated_by": self.updated_by,
            "change_frequency": self.change_frequency,
        }

    @classmethod
    def from_dict(cls, data: dict) -> Optional["KnowledgeEntry"]:
        """Rebuild an entry; returns None when required fields are missing."""
        if not isinstance(data, dict):
            return None
        entry_type = data.get("type")
        content = data.get("content")
        file_path = data.get("file_path")
        if not (isinstance(entry_type, str) and isinstance(content, str)
                and isinstance(file_path, str)):
            return None
        keywords = data.get("keywords") or []
        hints = data.get("hints") if isinstance(data.get("hints"), dict) else {}
        entry_id = data.get("id")
        if not isinstance(entry_id, str) or not entry_id:
            entry_id = make_entry_id(file_path, entry_type, content)
        last_updated, updated_by, frequency = (
            value if isinstance(value, str) else None
            for value in (data.get("last_updated"), data.get("updated_by"),
                          data.get("change_frequency"))
        )
        return cls(
            id=entry_id,
            type=entry_type,
            content=content,
            file_path=file_path,
            keywords=frozenset(str(k) for k in keywords if isinstance(k, str)),
            metadata=metadata_from_dict(data.get("metadata")),
            hints=hints,
            last_updated=last_updated,
            updated_by=updated_by,
            change_frequency=frequency,
        )

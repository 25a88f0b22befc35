"""
Scan cache: fingerprinted, TTL-validated persistence of one scan's result.

Records live in a string key/value medium as JSON, one key per repository::

    repo_lens_scan_cache_<owner>/<repo>

A record is dropped from the medium (not merely ignored) when it is older
than the TTL, carries a different cache version, belongs to another
repository fingerprint, or cannot be parsed.
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from .entry import KnowledgeEntry
from .explorer import ScanDiagnostics
from .kv_store import KeyValueStore

logger = logging.getLogger(__name__)

CACHE_VERSION = "1.0"
CACHE_KEY_PREFIX = "repo_lens_scan_cache"
DEFAULT_TTL_DAYS = 14
DAY_MS = 24 * 60 * 60 * 1000

CIRCULAR_MARKER = "[Circular Reference]"
NESTED_MARKER = "[Nested Object]"
MAX_NESTING_DEPTH = 8
MAX_STRING_CHARS = 100_000
TRUNCATION_SUFFIX = "...[truncated]"


def _now_ms() -> int:
    return int(time.time() * 1000)


# ---------------------------------------------------------------------------
# Safe serialization
# ---------------------------------------------------------------------------

def sanitize(value: Any, max_depth: int = MAX_NESTING_DEPTH,
             max_string: int = MAX_STRING_CHARS) -> Any:
    """
    Return a JSON-safe copy of *value*.

    Cycles are replaced by ``CIRCULAR_MARKER``, containers nested deeper than
    *max_depth* by ``NESTED_MARKER``, strings longer than *max_string* are
    truncated, and anything that is not a JSON primitive becomes its ``str``.
    """
    active: set[int] = set()

    def _walk(obj: Any, depth: int) -> Any:
        if obj is None or isinstance(obj, (bool, int, float)):
            return obj
        if isinstance(obj, str):
            if len(obj) > max_string:
                return obj[:max_string] + TRUNCATION_SUFFIX
            return obj
        if not isinstance(obj, (dict, list, tuple, set, frozenset)):
            return _walk(str(obj), depth)
        if id(obj) in active:
            return CIRCULAR_MARKER
        if depth >= max_depth:
            return NESTED_MARKER
        active.add(id(obj))
        try:
            if isinstance(obj, dict):
                return {str(k): _walk(v, depth + 1) for k, v in obj.items()}
            items = sorted(obj, key=str) if isinstance(obj, (set, frozenset)) else obj
            return [_walk(item, depth + 1) for item in items]
        finally:
            active.discard(id(obj))

    return _walk(value, 0)


# ---------------------------------------------------------------------------
# Record
# ---------------------------------------------------------------------------

@dataclass
class ScanCacheRecord:
    repository_id: str
    knowledge_snapshot: tuple[KnowledgeEntry, ...] = ()
    diagnostics: ScanDiagnostics = field(default_factory=ScanDiagnostics)
    fetch_confirmed: bool = False
    last_scan_time: int = 0
    cache_version: str = CACHE_VERSION

    def to_dict(self) -> dict:
        return {
            "repository_id": self.repository_id,
            "knowledge_snapshot": [e.to_dict() for e in self.knowledge_snapshot],
            "diagnostics": self.diagnostics.to_dict(),
            "fetch_confirmed": self.fetch_confirmed,
            "last_scan_time": self.last_scan_time,
            "cache_version": self.cache_version,
        }

    @classmethod
    def from_dict(cls, data: Any) -> "ScanCacheRecord":
        """Raises ValueError when required fields are missing or mistyped."""
        if not isinstance(data, dict):
            raise ValueError("cache record is not an object")
        repository_id = data.get("repository_id")
        last_scan_time = data.get("last_scan_time")
        snapshot = data.get("knowledge_snapshot")
        if not isinstance(repository_id, str):
            raise ValueError("cache record has no repository_id")
        if not isinstance(last_scan_time, (int, float)) or isinstance(last_scan_time, bool):
            raise ValueError("cache record has no last_scan_time")
        if not isinstance(snapshot, list):
            raise ValueError("cache record has no knowledge_snapshot")
        entries = tuple(e for e in (KnowledgeEntry.from_dict(d) for d in snapshot) if e)
        return cls(
            repository_id=repository_id,
            knowledge_snapshot=entries,
            diagnostics=ScanDiagnostics.from_dict(data.get("diagnostics")),
            fetch_confirmed=bool(data.get("fetch_confirmed", False)),
            last_scan_time=int(last_scan_time),
            cache_version=str(data.get("cache_version", "")),
        )


# ---------------------------------------------------------------------------
# Cache
# ---------------------------------------------------------------------------

class ScanCache:
    """
    Parameters
    ----------
    medium:
        Key/value medium the records are written to.
    ttl_days:
        Records older than this are stale.
    clock:
        Returns the current time in epoch milliseconds.
    version:
        Records written under another version are stale.
    """

    def __init__(self, medium: KeyValueStore, ttl_days: float = DEFAULT_TTL_DAYS,
                 clock: Optional[Callable[[], int]] = None,
                 version: str = CACHE_VERSION):
        self.medium = medium
        self.ttl_ms = int(ttl_days * DAY_MS)
        self.clock = clock or _now_ms
        self.version = version

    @staticmethod
    def key(repository_id: str) -> str:
        return f"{CACHE_KEY_PREFIX}_{repository_id.lower()}"

    def now(self) -> int:
        return self.clock()

    def new_record(self, repository_id: str, entries, diagnostics: ScanDiagnostics,
                   fetch_confirmed: bool) -> ScanCacheRecord:
        return ScanCacheRecord(
            repository_id=repository_id,
            knowledge_snapshot=tuple(entries),
            diagnostics=diagnostics,
            fetch_confirmed=fetch_confirmed,
            last_scan_time=self.now(),
            cache_version=self.version,
        )

    # ── read ──

    def _stale_reason(self, record: ScanCacheRecord, repository_id: str) -> Optional[str]:
        if self.now() - record.last_scan_time > self.ttl_ms:
            return "expired"
        if record.cache_version != self.version:
            return f"version {record.cache_version!r} != {self.version!r}"
        if record.repository_id.lower() != repository_id.lower():
            return f"fingerprint {record.repository_id!r} != {repository_id!r}"
        return None

    def get(self, repository_id: str) -> Optional[ScanCacheRecord]:
        """Return the valid record for *repository_id*, deleting it if stale."""
        key = self.key(repository_id)
        raw = self.medium.get(key)
        if not raw:
            logger.debug("[ScanCache] Miss: %s", repository_id)
            return None
        try:
            record = ScanCacheRecord.from_dict(json.loads(raw))
        except (ValueError, TypeError) as exc:
            logger.warning("[ScanCache] Discarding unreadable record for %s: %s",
                           repository_id, exc)
            self.medium.remove(key)
            return None
        reason = self._stale_reason(record, repository_id)
        if reason:
            logger.info("[ScanCache] Discarding stale record for %s (%s)", repository_id, reason)
            self.medium.remove(key)
            return None
        logger.debug("[ScanCache] Hit: %s (%d entries)",
                     repository_id, len(record.knowledge_snapshot))
        return record

    def is_stale(self, repository_id: str) -> bool:
        return self.get(repository_id) is None

    def last_scan_time(self, repository_id: str) -> Optional[int]:
        record = self.get(repository_id)
        return record.last_scan_time if record else None

    def time_until_next_scan(self, repository_id: str) -> int:
        """Milliseconds until the record expires; 0 when a scan is due now."""
        record = self.get(repository_id)
        if record is None:
            return 0
        return max(0, record.last_scan_time + self.ttl_ms - self.now())

    # ── write ──

    def put(self, repository_id: str, record: ScanCacheRecord) -> bool:
        """
        Persist *record*; returns False (never raises) when it cannot be stored.

        A payload over the medium's size ceiling is shrunk by dropping the
        largest file-content entries before giving up.
        """
        key = self.key(repository_id)
        try:
            payload = sanitize(record.to_dict())
            text = json.dumps(payload)
            if not self.medium.fits(text):
                text = self._shrink(payload)
                if text is None:
                    logger.warning("[ScanCache] Record for %s exceeds %d bytes; not cached",
                                   repository_id, self.medium.max_value_bytes)
                    return False
            stored = self.medium.set(key, text)
        except Exception as exc:
            logger.warning("[ScanCache] Could not write record for %s: %s", repository_id, exc)
            return False
        if stored:
            logger.info("[ScanCache] Cached %d entries for %s",
                        len(record.knowledge_snapshot), repository_id)
        return stored

    def _shrink(self, payload: dict) -> Optional[str]:
        entries = payload["knowledge_snapshot"]
        order = sorted(
            (i for i, e in enumerate(entries) if e.get("type") == "content"),
            key=lambda i: -len(entries[i].get("content", "")),
        )
        dropped: set[int] = set()
        while order:
            batch = max(1, len(order) // 4)
            dropped.update(order[:batch])
            order = order[batch:]
            trimmed = dict(payload)
            trimmed["knowledge_snapshot"] = [e for i, e in enumerate(entries) if i not in dropped]
            text = json.dumps(trimmed)
            if self.medium.fits(text):
                logger.info("[ScanCache] Dropped %d content entries to fit the cache", len(dropped))
                return text
        return None

    def invalidate(self, repository_id: str) -> None:
        self.medium.remove(self.key(repository_id))
        logger.info("[ScanCache] Cleared record for %s", repository_id)

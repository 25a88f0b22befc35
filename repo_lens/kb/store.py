"""
KnowledgeStore: append-only, insertion-ordered entry collection.

Holds the entries of one scan.  Overlapping directory visits can add the same
knowledge twice; entries are not deduplicated.
"""

from __future__ import annotations

import threading
from collections import Counter
from typing import Iterable

from .entry import KnowledgeEntry


class KnowledgeStore:

    def __init__(self, entries: Iterable[KnowledgeEntry] = ()):
        self._lock = threading.Lock()
        self._entries: list[KnowledgeEntry] = list(entries)

    def append(self, entry: KnowledgeEntry) -> None:
        with self._lock:
            self._entries.append(entry)

    def extend(self, entries: Iterable[KnowledgeEntry]) -> None:
        entries = list(entries)
        with self._lock:
            self._entries.extend(entries)

    def replace(self, entries: Iterable[KnowledgeEntry]) -> None:
        """Swap the whole contents in one step (cache restore, mock fallback)."""
        entries = list(entries)
        with self._lock:
            self._entries = entries

    def snapshot(self) -> tuple[KnowledgeEntry, ...]:
        with self._lock:
            return tuple(self._entries)

    def clear(self) -> None:
        with self._lock:
            self._entries = []

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __iter__(self):
        return iter(self.snapshot())

    def stats(self) -> dict:
        """
        Return store statistics.

        Returns
        -------
        dict
            ``{"total_entries": int, "by_type": {type: count},
            "processed_file_count": int}``
        """
        entries = self.snapshot()
        return {
            "total_entries": len(entries),
            "by_type": dict(Counter(e.type for e in entries)),
            "processed_file_count": len({e.file_path for e in entries}),
        }

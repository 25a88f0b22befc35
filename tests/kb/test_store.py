"""
Unit tests for repo_lens.kb.store and repo_lens.kb.entry
"""

from __future__ import annotations


def _entry(path="src/a.js", content="function a() { ... }", entry_type="function", **kw):
    from repo_lens.kb.entry import KnowledgeEntry, make_entry_id

    return KnowledgeEntry(
        id=make_entry_id(path, entry_type, content),
        type=entry_type,
        content=content,
        file_path=path,
        **kw,
    )


class TestKnowledgeStore:
    def test_append_keeps_order_and_duplicates(self):
        from repo_lens.kb.store import KnowledgeStore

        store = KnowledgeStore()
        a, b = _entry(), _entry("src/b.js", "function b() { ... }")
        store.append(a)
        store.extend([b, a])
        assert store.snapshot() == (a, b, a)
        assert len(store) == 3
        assert list(store) == [a, b, a]

    def test_replace_and_clear(self):
        from repo_lens.kb.store import KnowledgeStore

        store = KnowledgeStore([_entry()])
        replacement = [_entry("src/c.js", "function c() { ... }")]
        store.replace(replacement)
        assert store.snapshot() == tuple(replacement)
        store.clear()
        assert len(store) == 0

    def test_snapshot_is_isolated(self):
        from repo_lens.kb.store import KnowledgeStore

        store = KnowledgeStore([_entry()])
        snap = store.snapshot()
        store.append(_entry("src/b.js"))
        assert len(snap) == 1

    def test_stats(self):
        from repo_lens.kb.store import KnowledgeStore

        store = KnowledgeStore([
            _entry(),
            _entry(content="// helper", entry_type="comment"),
            _entry("src/b.js"),
        ])
        stats = store.stats()
        assert stats["total_entries"] == 3
        assert stats["by_type"] == {"function": 2, "comment": 1}
        assert stats["processed_file_count"] == 2


class TestKnowledgeEntry:
    def test_id_is_deterministic(self):
        from repo_lens.kb.entry import make_entry_id

        first = make_entry_id("a.js", "comment", "text", 2)
        assert first == make_entry_id("a.js", "comment", "text", 2)
        assert first.endswith("-2")
        assert first != make_entry_id("a.js", "comment", "text", 3)
        assert first != make_entry_id("b.js", "comment", "text", 2)

    def test_dict_round_trip_with_metadata(self):
        from repo_lens.kb.entry import ClassMeta, KnowledgeEntry

        entry = _entry(
            content="Class: Member with methods: save",
            entry_type="class",
            keywords=frozenset({"member", "save"}),
            metadata=ClassMeta("Member", None, ("save",)),
            hints={"priority": "high"},
        )
        restored = KnowledgeEntry.from_dict(entry.to_dict())
        assert restored == entry
        assert restored.metadata.methods == ("save",)
        assert restored.priority == "high"

    def test_from_dict_rejects_invalid(self):
        from repo_lens.kb.entry import KnowledgeEntry

        assert KnowledgeEntry.from_dict("nope") is None
        assert KnowledgeEntry.from_dict({"type": "comment", "content": "x"}) is None

    def test_from_dict_tolerates_unknown_metadata(self):
        from repo_lens.kb.entry import KnowledgeEntry

        restored = KnowledgeEntry.from_dict({
            "type": "comment", "content": "text", "file_path": "a.js",
            "metadata": {"kind": "mystery"}, "keywords": ["text", 3],
        })
        assert restored.metadata is None
        assert restored.keywords == frozenset({"text"})
        assert restored.id

    def test_with_last_updated(self):
        entry = _entry()
        dated = entry.with_last_updated("2024-05-01T10:00:00Z")
        assert dated.last_updated == "2024-05-01T10:00:00Z"
        assert entry.last_updated is None
        assert dated.updated_by is None

    def test_history_fields_survive_serialization(self):
        from repo_lens.kb.entry import KnowledgeEntry

        dated = _entry().with_last_updated("2024-05-01T10:00:00Z", "Ada", "high")
        restored = KnowledgeEntry.from_dict(dated.to_dict())
        assert restored.updated_by == "Ada"
        assert restored.change_frequency == "high"
        assert restored.last_updated == "2024-05-01T10:00:00Z"

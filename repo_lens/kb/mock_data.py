"""
Built-in synthetic dataset used when no real repository data is available.

Entries are flagged with ``hints["mock"] = True`` so that consumers can tell
them apart from crawled knowledge even after they are merged into a store.
"""

from __future__ import annotations

from .entry import EntryType, FunctionMeta, KnowledgeEntry, make_entry_id

MOCK_REPOSITORY = "tryghost/ghost"

_RAW = [
    (EntryType.COMMENT,
     "/** Processes subscription payments through Stripe integration */",
     "ghost/core/core/server/services/members/payment.js",
     ("subscription", "payment", "process", "stripe", "members"), None),
    (EntryType.COMMENT,
     "/** When subscription expires, member status is changed to free */",
     "ghost/core/core/server/services/members/subscriptions.js",
     ("subscription", "expires", "expiration", "member", "free"), None),
    (EntryType.FUNCTION,
     "function handleSubscriptionExpiration(memberId) { ... }",
     "ghost/core/core/server/services/members/api/index.js",
     ("subscription", "expiration", "handle", "member"),
     FunctionMeta("handleSubscriptionExpiration", "memberId")),
    (EntryType.COMMENT,
     "/** No limits on post count in Ghost - verified in post access controller */",
     "ghost/core/core/server/api/v2/content/posts.js",
     ("limits", "posts", "count", "restriction"), None),
    (EntryType.COMMENT,
     "/** Premium content restricted to paid members via visibility settings */",
     "ghost/core/core/server/api/v2/content/posts.js",
     ("premium", "content", "paid", "members", "visibility"), None),
    (EntryType.COMMENT,
     "/** Ghost subscription management handles tier upgrades and downgrades */",
     "ghost/core/core/server/services/members/subscriptions.js",
     ("subscription", "upgrade", "downgrade", "tier", "management"), None),
    (EntryType.FUNCTION,
     "function processMemberTierChange(memberId, fromTierId, toTierId) { ... }",
     "ghost/core/core/server/services/members/api/index.js",
     ("tier", "change", "process", "member"),
     FunctionMeta("processMemberTierChange", "memberId, fromTierId, toTierId")),
    (EntryType.COMMENT,
     "/** Email features require newsletter subscription status to be active */",
     "ghost/core/core/server/services/mail/index.js",
     ("email", "newsletter", "subscription", "active"), None),
]


def mock_entries() -> tuple[KnowledgeEntry, ...]:
    """Return the synthetic dataset (fresh objects on every call)."""
    return tuple(
        KnowledgeEntry(
            id=make_entry_id(path, entry_type, content, i),
            type=entry_type,
            content=content,
            file_path=path,
            keywords=frozenset(keywords),
            metadata=meta,
            hints={"mock": True},
        )
        for i, (entry_type, content, path, keywords, meta) in enumerate(_RAW)
    )


def _signature(entry: KnowledgeEntry) -> tuple[str, str, str]:
    return (entry.type, entry.file_path, entry.content)


MOCK_SIGNATURES = frozenset(_signature(e) for e in mock_entries())


def is_mock_entry(entry: KnowledgeEntry) -> bool:
    return bool(entry.hints.get("mock")) or _signature(entry) in MOCK_SIGNATURES


def mock_overlap(entries) -> float:
    """Share of *entries* that match the synthetic dataset (0.0 for none)."""
    entries = list(entries)
    if not entries:
        return 0.0
    return sum(1 for e in entries if is_mock_entry(e)) / len(entries)

"""
In-memory gateway: serves a repository described as nested dicts.

Useful for offline demos and tests::

    InMemoryGateway({
        "README.md": "# Demo",
        "src": {"app.js": "function main() {}"},
    })

Strings are files, dicts are directories.  Missing paths raise
:class:`NotFoundError`; ``failures`` maps a path to an exception instance
that is raised instead of serving it.
"""

from __future__ import annotations

from typing import Dict, List, Optional

from .base import (
    Change,
    ContentFetchGateway,
    GatewayError,
    NotFoundError,
    RepoItem,
    UnknownGatewayError,
    VersionHistoryProvider,
)


class InMemoryGateway(ContentFetchGateway):

    def __init__(self, tree: Optional[dict] = None,
                 failures: Optional[Dict[str, GatewayError]] = None):
        super().__init__()
        self.tree = tree or {}
        self.failures = dict(failures or {})
        self.calls: List[tuple[str, str]] = []

    def _resolve(self, path: str):
        node = self.tree
        for part in [p for p in path.strip("/").split("/") if p]:
            if not isinstance(node, dict) or part not in node:
                raise NotFoundError(f"Not found: {path}", path)
            node = node[part]
        return node

    def _check(self, op: str, path: str):
        self.calls.append((op, path))
        failure = self.failures.get(path.strip("/"))
        if failure is not None:
            self.failed_requests += 1
            raise failure
        try:
            node = self._resolve(path)
        except GatewayError:
            self.failed_requests += 1
            raise
        self.successful_requests += 1
        return node

    def list(self, path: str) -> List[RepoItem]:
        node = self._check("list", path)
        clean = path.strip("/")
        if isinstance(node, str):
            name = clean.rsplit("/", 1)[-1]
            return [RepoItem(name=name, path=clean, type="file")]
        items = []
        for name, child in node.items():
            child_path = f"{clean}/{name}" if clean else name
            items.append(RepoItem(
                name=name,
                path=child_path,
                type="dir" if isinstance(child, dict) else "file",
            ))
        return items

    def read(self, path: str) -> str:
        node = self._check("read", path)
        if isinstance(node, dict):
            raise UnknownGatewayError(
                f"Path {path} is a directory, not a file", path)
        return node

    @property
    def call_count(self) -> int:
        return len(self.calls)


class StaticHistoryProvider(VersionHistoryProvider):
    """History provider answering from a fixed ``{path: Change}`` mapping."""

    def __init__(self, changes: Optional[Dict[str, Change]] = None):
        self.changes = dict(changes or {})
        self.lookups: List[str] = []

    def latest_change(self, path: str) -> Optional[Change]:
        self.lookups.append(path)
        return self.changes.get(path)

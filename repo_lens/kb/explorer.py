"""
PathExplorer: budget-bounded, breadth-first crawl of a remote repository.

Crawl order:
  1. List the repository root, process its relevant files and queue its
     directories (most important first).  Paths that produced files in an
     earlier scan of this engine go to the front of the queue.
  2. Drain the work queue breadth-first.  Each listed directory has its
     relevant files read and turned into entries, and its sub-directories
     queued while the depth limit allows.
  3. When the discovered queue is empty and fewer than ``target_files``
     files have been processed, fall back to conventional layout guesses
     (``src``, ``lib``, ``services``, ...; extended for known large
     repositories).

Three budgets bound the remote call volume: the number of directory listings
per crawl (tiered by repository scale), the number of file reads per directory
and the number of file reads per crawl.  Every per-path failure is recorded in
:class:`ScanDiagnostics` and skipped; a rate-limit answer ends the crawl early
and only a missing repository is fatal.
"""

from __future__ import annotations

import logging
import os
import threading
import time
from collections import deque
from dataclasses import asdict, dataclass, field
from typing import Callable, Optional

from ..config import RepositoryRef
from ..gateway import ContentFetchGateway, GatewayError, RateLimitedError, RepoItem
from .processor import EntryBuilder, is_github_metadata_file
from .store import KnowledgeStore

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Relevance rules
# ---------------------------------------------------------------------------

SKIP_FILES: frozenset[str] = frozenset({
    "package-lock.json", "yarn.lock", "pnpm-lock.yaml", "bun.lockb",
    "composer.lock", "poetry.lock", "pipfile.lock", "cargo.lock", "gemfile.lock",
    ".gitignore", ".gitattributes", ".npmignore", ".dockerignore",
    ".env", ".env.local", ".env.example", ".env.production", ".env.development",
    "license", "license.md", "license.txt", "changelog.md", "code_of_conduct.md",
    ".ds_store", "thumbs.db",
})

IMPORTANT_FILES: frozenset[str] = frozenset({
    "package.json", "readme.md", "tsconfig.json", "vite.config.ts",
    "vite.config.js", "next.config.js", "next.config.mjs", "tailwind.config.js",
    "webpack.config.js", "rollup.config.js", "jest.config.js",
    "dockerfile", "docker-compose.yml", "docker-compose.yaml",
    "pyproject.toml", "setup.cfg",
})

RELEVANT_EXTENSIONS: frozenset[str] = frozenset({
    ".ts", ".tsx", ".mts", ".cts", ".js", ".jsx", ".mjs", ".cjs",
    ".md", ".mdx", ".json", ".yaml", ".yml", ".vue", ".svelte",
    ".css", ".scss", ".html", ".htm", ".toml", ".ini", ".conf", ".cfg",
    ".py",
})

_ARTIFACT_SUFFIXES = (".min.js", ".min.css", ".map", ".d.ts.map", ".bundle.js")

SKIP_DIRS: frozenset[str] = frozenset({
    "node_modules", ".git", "dist", "build", ".next", ".nuxt", "coverage",
    ".vscode", ".idea", "target", "out", ".cache", "tmp", "temp",
    "test", "tests", "__tests__", "spec", ".nyc_output", "__pycache__",
    "vendor", "venv", ".venv", "fixtures", "__mocks__", "snapshots",
})

IMPORTANT_DIRS: frozenset[str] = frozenset({
    "components", "pages", "services", "utils", "hooks", "lib", "api",
    "types", "store", "context", "providers", "src", "app", "routes",
    "controllers", "models", "middleware", "helpers", "adapters",
    "plugins", "extensions", "integrations", "clients", "connectors",
    "webhooks", "callbacks", "handlers", "processors", "validators",
    "business", "domain", "core", "features", "modules", "packages",
    "apps", "microservices", "graphql", "rest", "server", "docs",
})

FRAMEWORK_DIRS: frozenset[str] = frozenset({
    "layouts", "templates", "views", "screens", "repositories",
    "entities", "dto", "guards", "decorators", "filters", "pipes",
    "frontend", "admin", "client", "web", "shared", "common",
})

CONVENTIONAL_PATHS: tuple[str, ...] = (
    "src", "app", "lib", "components", "pages", "services", "utils", "hooks",
    "api", "routes", "controllers", "models", "middleware", "types",
    "store", "context", "providers", "helpers", "adapters", "plugins",
    "config", "settings", "docs", "documentation", "examples", "scripts",
    "layouts", "templates", "views", "integrations", "clients", "webhooks",
    "handlers", "core", "features", "modules", "packages", "apps",
    "server", "graphql",
    "src/components", "src/pages", "src/services", "src/lib", "src/utils",
    "src/api", "src/app", "src/routes", "src/hooks", "src/models",
)

MONOREPO_MARKERS: frozenset[str] = frozenset({
    "packages", "apps", "lerna.json", "pnpm-workspace.yaml", "nx.json",
    "turbo.json", "rush.json",
})

# Lower-cased fingerprint -> extra conventional paths for that repository.
KNOWN_LARGE_REPOSITORIES: dict[str, tuple[str, ...]] = {
    "tryghost/ghost": (
        "ghost/core/core/server/services", "ghost/core/core/server/services/members",
        "ghost/core/core/server/api", "ghost/core/core/server/models",
        "ghost/core/core/frontend", "ghost/admin/app", "ghost/admin/app/components",
        "apps/portal/src", "apps/portal/src/components", "apps/admin-x-settings/src",
        "apps/signup-form/src", "apps/comments-ui/src",
    ),
    "facebook/react": (
        "packages/react/src", "packages/react-dom/src", "packages/shared",
        "packages/react-reconciler/src",
    ),
    "vercel/next.js": (
        "packages/next/src", "packages/next/src/server", "packages/next/src/client",
        "docs",
    ),
    "microsoft/vscode": (
        "src/vs/base", "src/vs/platform", "src/vs/editor", "src/vs/workbench",
    ),
    "nodejs/node": ("lib", "lib/internal", "doc/api"),
    "angular/angular": ("packages/core/src", "packages/common/src", "packages/router/src"),
    "vuejs/core": ("packages/runtime-core/src", "packages/reactivity/src"),
    "strapi/strapi": ("packages/core", "packages/core/strapi/src"),
}

_IMPORTANCE = (
    (("src", "app", "lib"), 100),
    (("components", "pages"), 90),
    (("services", "api"), 80),
    (("config", "settings"), 70),
    (("utils", "helpers"), 60),
    (("types", "interfaces"), 40),
    (("hooks", "context"), 35),
    (("store", "state"), 30),
    (("test", "spec"), 10),
    (("docs", "documentation"), 5),
)


def is_relevant_file(path: str) -> bool:
    """Allow-list check for a file worth reading (by name and path)."""
    name = os.path.basename(path).lower()
    if name in SKIP_FILES or is_github_metadata_file(path):
        return False
    if name.endswith(_ARTIFACT_SUFFIXES):
        return False
    if name in IMPORTANT_FILES:
        return True
    return os.path.splitext(name)[1] in RELEVANT_EXTENSIONS


def should_explore_directory(name: str) -> bool:
    """True when *name* is a conventional source directory."""
    lowered = name.lower()
    if is_skipped_directory(lowered):
        return False
    return lowered in IMPORTANT_DIRS or lowered in FRAMEWORK_DIRS


def is_skipped_directory(name: str) -> bool:
    lowered = name.lower()
    return lowered in SKIP_DIRS or lowered.startswith(".")


def directory_importance(path: str) -> int:
    lowered = path.lower()
    return sum(score for needles, score in _IMPORTANCE
               if any(n in lowered for n in needles))


def sort_by_importance(paths: list[str]) -> list[str]:
    """Most important first; ties keep their listing order."""
    return sorted(paths, key=lambda p: -directory_importance(p))


# ---------------------------------------------------------------------------
# Diagnostics
# ---------------------------------------------------------------------------

class ExplorerState:
    IDLE = "idle"
    EXPLORING = "exploring"
    COMPLETE = "complete"
    ERROR = "error"


class RepositoryTier:
    STANDARD = "standard"
    MONOREPO = "monorepo"
    LARGE = "large"


@dataclass
class PathFailure:
    path: str
    kind: str
    message: str = ""


@dataclass
class ScanDiagnostics:
    """
    Record of one crawl.

    ``processed_files`` may contain duplicates when overlapping paths are
    visited; use :attr:`processed_file_count` for the distinct count.
    """

    repository_fingerprint: Optional[str] = None
    tier: str = RepositoryTier.STANDARD
    attempted_paths: list[str] = field(default_factory=list)
    successful_paths: list[str] = field(default_factory=list)
    processed_files: list[str] = field(default_factory=list)
    skipped_files: list[str] = field(default_factory=list)
    failures: list[PathFailure] = field(default_factory=list)
    explored_directories: list[str] = field(default_factory=list)
    scan_start: float = 0.0
    scan_duration: float = 0.0
    rate_limit_remaining: Optional[int] = None
    rate_limited: bool = False
    cancelled: bool = False

    @property
    def files_processed(self) -> int:
        return len(self.processed_files)

    @property
    def processed_file_count(self) -> int:
        return len(set(self.processed_files))

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data) -> "ScanDiagnostics":
        """Lenient rebuild: unknown keys are ignored, bad values become defaults."""
        diag = cls()
        if not isinstance(data, dict):
            return diag
        for name in ("attempted_paths", "successful_paths", "processed_files",
                     "skipped_files", "explored_directories"):
            value = data.get(name)
            if isinstance(value, list):
                setattr(diag, name, [str(v) for v in value])
        for item in data.get("failures") or []:
            if isinstance(item, dict) and "path" in item:
                diag.failures.append(PathFailure(
                    str(item["path"]), str(item.get("kind", "unknown")),
                    str(item.get("message", ""))))
        fingerprint = data.get("repository_fingerprint")
        diag.repository_fingerprint = fingerprint if isinstance(fingerprint, str) else None
        if isinstance(data.get("tier"), str):
            diag.tier = data["tier"]
        for name in ("scan_start", "scan_duration"):
            if isinstance(data.get(name), (int, float)):
                setattr(diag, name, float(data[name]))
        if isinstance(data.get("rate_limit_remaining"), int):
            diag.rate_limit_remaining = data["rate_limit_remaining"]
        diag.rate_limited = bool(data.get("rate_limited", False))
        diag.cancelled = bool(data.get("cancelled", False))
        return diag


# ---------------------------------------------------------------------------
# Explorer
# ---------------------------------------------------------------------------

ProgressCallback = Callable[[int], None]


class PathExplorer:
    """
    Crawl one repository through a :class:`ContentFetchGateway`.

    Parameters
    ----------
    gateway:
        Source of listings and file text.
    repository:
        Active repository, or None (``explore`` then ends in ``error``).
    builder:
        Turns file text into entries.
    path_budget / monorepo_path_budget / large_repo_path_budget:
        Maximum number of directory listings per crawl for each tier.
    max_files_per_directory:
        File reads attempted per listed directory before moving on.
    max_files:
        File reads attempted per crawl; once reached nothing more is read
        or queued.
    max_depth:
        Deepest directory level queued (root children are depth 1).
    min_extractions:
        Below this many processed files every non-skipped directory is
        queued, not just conventional ones.
    target_files:
        Conventional layout guesses are only tried below this file count.
    request_delay:
        Seconds to sleep between listings.
    successful_paths:
        Shared memory of paths that produced files in earlier crawls; updated
        in place.
    """

    def __init__(
        self,
        gateway: ContentFetchGateway,
        repository: Optional[RepositoryRef],
        builder: Optional[EntryBuilder] = None,
        *,
        path_budget: int = 60,
        monorepo_path_budget: int = 100,
        large_repo_path_budget: int = 150,
        max_files_per_directory: int = 40,
        max_files: int = 1000,
        max_depth: int = 3,
        min_extractions: int = 5,
        target_files: int = 100,
        request_delay: float = 0.0,
        progress_callback: Optional[ProgressCallback] = None,
        successful_paths: Optional[list[str]] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.time,
    ):
        self.gateway = gateway
        self.repository = repository
        self.builder = builder or EntryBuilder()
        self.budgets = {
            RepositoryTier.STANDARD: path_budget,
            RepositoryTier.MONOREPO: monorepo_path_budget,
            RepositoryTier.LARGE: large_repo_path_budget,
        }
        self.max_files_per_directory = max_files_per_directory
        self.max_files = max_files
        self.max_depth = max_depth
        self.min_extractions = min_extractions
        self.target_files = target_files
        self.request_delay = request_delay
        self.progress_callback = progress_callback
        self.successful_paths = successful_paths if successful_paths is not None else []
        self._sleep = sleep
        self._clock = clock
        self._cancel = threading.Event()

        self.state = ExplorerState.IDLE
        self.error: Optional[str] = None
        self.progress = 0
        self.diagnostics = ScanDiagnostics()
        self._budget = path_budget
        self.read_attempts = 0

    # ── control ──

    def cancel(self) -> None:
        """Stop the running crawl before its next candidate path."""
        self._cancel.set()

    def _report(self, value: int) -> None:
        value = max(self.progress, min(100, int(value)))
        self.progress = value
        if self.progress_callback is None:
            return
        try:
            self.progress_callback(value)
        except Exception as exc:
            logger.warning("[Explorer] Progress callback failed: %s", exc)

    # ── crawl ──

    def explore(self, store: KnowledgeStore) -> bool:
        """
        Run one crawl, appending entries to *store*.

        Returns
        -------
        bool
            True iff at least one file was processed.
        """
        self._cancel.clear()
        self.progress = 0
        self.error = None
        self.read_attempts = 0
        self.diagnostics = diag = ScanDiagnostics(scan_start=self._clock())

        if self.repository is None:
            self.state = ExplorerState.ERROR
            self.error = "No repository configured"
            logger.warning("[Explorer] No repository configured for path exploration")
            return False

        self.state = ExplorerState.EXPLORING
        fingerprint = self.repository.fingerprint
        diag.repository_fingerprint = fingerprint
        logger.info("[Explorer] Exploring %s", fingerprint)
        self._report(0)

        visited: set[str] = set()
        queue: deque[tuple[str, int]] = deque()

        root_items = self._list("")
        visited.add("")
        diag.tier = self._detect_tier(fingerprint, root_items or [])
        self._budget = self.budgets[diag.tier]
        if root_items:
            self._record_listing("", root_items)
            self._process_directory("", root_items, 0, queue, store)
            # importance ordering applies to the root level only
            ordered = sort_by_importance([p for p, _ in queue])
            queue = deque((p, 1) for p in ordered)
        self._report(5)

        for path in reversed(self.successful_paths):
            if path and path not in visited:
                queue.appendleft((path, path.count("/") + 1))

        guesses = deque(self._conventional_paths(fingerprint))

        while not self._cancel.is_set():
            if diag.rate_limited:
                logger.warning("[Explorer] Rate limited; stopping crawl early")
                break
            if len(diag.attempted_paths) >= self._budget:
                logger.info("[Explorer] Path budget (%d) reached", self._budget)
                break
            if self._file_limit_reached():
                logger.info("[Explorer] File limit (%d) reached", self.max_files)
                break
            if queue:
                path, depth = queue.popleft()
            elif guesses and diag.files_processed < self.target_files:
                path = guesses.popleft()
                depth = path.count("/") + 1
            else:
                break
            if path in visited:
                continue
            visited.add(path)

            if self.request_delay > 0:
                self._sleep(self.request_delay)
            items = self._list(path)
            if items:
                self._record_listing(path, items)
                before = diag.files_processed
                self._process_directory(path, items, depth, queue, store)
                if diag.files_processed > before and path not in self.successful_paths:
                    self.successful_paths.append(path)
            self._report(5 + 90 * len(diag.attempted_paths) / max(1, self._budget))

        if self._cancel.is_set():
            diag.cancelled = True
            logger.info("[Explorer] Crawl cancelled")

        diag.rate_limit_remaining = self.gateway.rate_limit_remaining
        diag.scan_duration = self._clock() - diag.scan_start
        self.state = ExplorerState.COMPLETE
        self._report(100)
        logger.info(
            "[Explorer] Crawl of %s complete: %d files from %d/%d paths, %d failures, %.1fs",
            fingerprint, diag.processed_file_count, len(diag.successful_paths),
            len(diag.attempted_paths), len(diag.failures), diag.scan_duration,
        )
        return diag.files_processed > 0

    # ── helpers ──

    def _detect_tier(self, fingerprint: str, root_items: list[RepoItem]) -> str:
        if fingerprint.lower() in KNOWN_LARGE_REPOSITORIES:
            return RepositoryTier.LARGE
        names = {item.name.lower() for item in root_items}
        if names & MONOREPO_MARKERS:
            return RepositoryTier.MONOREPO
        return RepositoryTier.STANDARD

    def _conventional_paths(self, fingerprint: str) -> list[str]:
        extended = KNOWN_LARGE_REPOSITORIES.get(fingerprint.lower(), ())
        seen: set[str] = set()
        paths = []
        for path in (*extended, *CONVENTIONAL_PATHS):
            if path not in seen:
                seen.add(path)
                paths.append(path)
        return paths

    def _file_limit_reached(self) -> bool:
        return self.read_attempts >= self.max_files

    def _list(self, path: str) -> Optional[list[RepoItem]]:
        self.diagnostics.attempted_paths.append(path)
        try:
            return self.gateway.list(path)
        except GatewayError as exc:
            self._record_failure(path, exc)
            return None

    def _record_listing(self, path: str, items: list[RepoItem]) -> None:
        self.diagnostics.successful_paths.append(path)
        self.diagnostics.explored_directories.append(path)
        logger.debug("[Explorer] %s: %d items", path or "<root>", len(items))

    def _record_failure(self, path: str, exc: GatewayError) -> None:
        self.diagnostics.failures.append(PathFailure(path, exc.kind, str(exc)))
        if isinstance(exc, RateLimitedError):
            self.diagnostics.rate_limited = True
        logger.debug("[Explorer] %s failed (%s): %s", path or "<root>", exc.kind, exc)

    def _process_directory(self, path: str, items: list[RepoItem], depth: int,
                           queue: deque, store: KnowledgeStore) -> None:
        diag = self.diagnostics
        processed_here = 0
        for item in items:
            if self._cancel.is_set() or diag.rate_limited:
                return
            if item.is_dir:
                child_depth = depth + 1
                if (child_depth > self.max_depth or is_skipped_directory(item.name)
                        or self._file_limit_reached()):
                    continue
                if (should_explore_directory(item.name)
                        or diag.files_processed < self.min_extractions):
                    queue.append((item.path, child_depth))
                continue
            if not item.is_file:
                continue
            if not is_relevant_file(item.path):
                diag.skipped_files.append(item.path)
                continue
            if processed_here >= self.max_files_per_directory:
                logger.debug("[Explorer] Directory file limit (%d) reached for %s",
                             self.max_files_per_directory, path or "<root>")
                diag.skipped_files.append(item.path)
                continue
            if self._file_limit_reached():
                diag.skipped_files.append(item.path)
                continue
            processed_here += 1
            self._process_file(item.path, store)

    def _process_file(self, path: str, store: KnowledgeStore) -> bool:
        self.read_attempts += 1
        try:
            content = self.gateway.read(path)
        except GatewayError as exc:
            self._record_failure(path, exc)
            return False
        try:
            entries = self.builder.build(path, content)
        except Exception as exc:
            logger.warning("[Explorer] Could not build entries for %s: %s", path, exc)
            self.diagnostics.failures.append(PathFailure(path, "extraction", str(exc)))
            return False
        store.extend(entries)
        self.diagnostics.processed_files.append(path)
        return True

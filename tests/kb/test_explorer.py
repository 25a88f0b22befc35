"""
Unit tests for repo_lens.kb.explorer (PathExplorer over an in-memory gateway)
"""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

PAYMENT_JS = """\
/**
 * Processes subscription payments through Stripe integration
 */
function processPayment(memberId) {
  return charge(memberId);
}
"""


def _tree():
    return {
        "README.md": "# Demo\n\nA demo repository for payments.\n",
        "package.json": '{"name": "demo", "description": "Demo app"}',
        "yarn.lock": "# lockfile",
        "src": {
            "index.js": "// Application entry point wiring\nfunction main() {}\n",
            "services": {"payment.js": PAYMENT_JS},
        },
        "node_modules": {"left-pad": {"index.js": "module.exports = pad;"}},
        "assets": {"logo.png": "binary"},
    }


def _explorer(gateway, repo="acme/shop", **kwargs):
    from repo_lens.config import parse_repository
    from repo_lens.kb.explorer import PathExplorer

    kwargs.setdefault("target_files", 0)
    return PathExplorer(gateway, parse_repository(repo) if repo else None, **kwargs)


class TestRelevanceRules:
    @pytest.mark.parametrize("path,expected", [
        ("src/app.ts", True),
        ("Dockerfile", True),
        ("docs/guide.md", True),
        ("package-lock.json", False),
        ("dist/app.min.js", False),
        ("assets/logo.png", False),
        (".github/workflows/ci.yml", False),
    ])
    def test_is_relevant_file(self, path, expected):
        from repo_lens.kb.explorer import is_relevant_file

        assert is_relevant_file(path) is expected

    def test_should_explore_directory(self):
        from repo_lens.kb.explorer import should_explore_directory

        assert should_explore_directory("src")
        assert should_explore_directory("Services")
        assert should_explore_directory("layouts")
        assert not should_explore_directory("node_modules")
        assert not should_explore_directory(".git")
        assert not should_explore_directory("random")

    def test_sort_by_importance(self):
        from repo_lens.kb.explorer import sort_by_importance

        assert sort_by_importance(["docs", "src", "random", "services"]) == [
            "src", "services", "docs", "random",
        ]


class TestPathExplorer:
    def test_crawl_processes_relevant_files(self):
        from repo_lens.gateway import InMemoryGateway
        from repo_lens.kb.explorer import ExplorerState
        from repo_lens.kb.store import KnowledgeStore

        explorer = _explorer(InMemoryGateway(_tree()))
        store = KnowledgeStore()

        assert explorer.explore(store) is True
        diag = explorer.diagnostics
        assert explorer.state == ExplorerState.COMPLETE
        assert diag.processed_files == [
            "README.md", "package.json", "src/index.js", "src/services/payment.js",
        ]
        assert diag.attempted_paths == ["", "src", "assets", "src/services"]
        assert diag.successful_paths == ["", "src", "assets", "src/services"]
        assert diag.skipped_files == ["yarn.lock", "assets/logo.png"]
        assert "node_modules" not in diag.attempted_paths
        assert diag.repository_fingerprint == "acme/shop"
        assert diag.failures == []
        assert {e.file_path for e in store} == set(diag.processed_files)
        assert explorer.progress == 100

    def test_remembers_paths_that_produced_files(self):
        from repo_lens.gateway import InMemoryGateway
        from repo_lens.kb.store import KnowledgeStore

        memory = []
        explorer = _explorer(InMemoryGateway(_tree()), successful_paths=memory)
        explorer.explore(KnowledgeStore())
        assert memory == ["src", "src/services"]

    def test_remembered_paths_are_tried_first(self):
        from repo_lens.gateway import InMemoryGateway
        from repo_lens.kb.store import KnowledgeStore

        explorer = _explorer(InMemoryGateway(_tree()), successful_paths=["src/services"])
        explorer.explore(KnowledgeStore())
        assert explorer.diagnostics.attempted_paths == ["", "src/services", "src", "assets"]

    def test_every_path_not_found(self):
        from repo_lens.gateway import InMemoryGateway, NotFoundError
        from repo_lens.kb.explorer import ExplorerState
        from repo_lens.kb.store import KnowledgeStore

        gateway = InMemoryGateway({}, failures={"": NotFoundError("Not found", "")})
        explorer = _explorer(gateway, target_files=100)
        store = KnowledgeStore()

        assert explorer.explore(store) is False
        diag = explorer.diagnostics
        assert explorer.state == ExplorerState.COMPLETE
        assert diag.processed_file_count == 0
        assert diag.successful_paths == []
        assert len(diag.attempted_paths) > 1
        assert {f.kind for f in diag.failures} == {"not_found"}
        assert len(store) == 0

    def test_conventional_guesses_when_queue_empty(self):
        from repo_lens.gateway import InMemoryGateway
        from repo_lens.kb.store import KnowledgeStore

        gateway = InMemoryGateway({
            "src": {},
            "lib": {"util.js": "// Shared helpers for the API layer\n"},
        })
        explorer = _explorer(gateway, target_files=100, path_budget=5)
        explorer.explore(KnowledgeStore())
        diag = explorer.diagnostics
        assert "lib/util.js" in diag.processed_files
        assert len(diag.attempted_paths) == 5
        assert "app" in diag.attempted_paths

    def test_path_budget_bounds_listings(self):
        from repo_lens.gateway import InMemoryGateway
        from repo_lens.kb.store import KnowledgeStore

        explorer = _explorer(InMemoryGateway(_tree()), path_budget=2)
        explorer.explore(KnowledgeStore())
        assert explorer.diagnostics.attempted_paths == ["", "src"]

    def test_files_per_directory_limit(self):
        from repo_lens.gateway import InMemoryGateway
        from repo_lens.kb.store import KnowledgeStore

        explorer = _explorer(InMemoryGateway(_tree()), max_files_per_directory=1)
        explorer.explore(KnowledgeStore())
        diag = explorer.diagnostics
        assert "README.md" in diag.processed_files
        assert "package.json" not in diag.processed_files
        assert "package.json" in diag.skipped_files

    def test_failed_reads_count_toward_directory_limit(self):
        from repo_lens.gateway import InMemoryGateway, UnknownGatewayError
        from repo_lens.kb.store import KnowledgeStore

        names = [f"handler{i}.js" for i in range(50)]
        gateway = InMemoryGateway(
            {"src": {name: "function handle() {}" for name in names}},
            failures={f"src/{name}": UnknownGatewayError("HTTP 500", f"src/{name}")
                      for name in names},
        )
        explorer = _explorer(gateway, max_files_per_directory=5)
        assert explorer.explore(KnowledgeStore()) is False

        reads = [path for op, path in gateway.calls if op == "read"]
        assert len(reads) == 5
        assert explorer.read_attempts == 5
        assert len(explorer.diagnostics.skipped_files) == 45

    def test_crawl_file_limit(self):
        from repo_lens.gateway import InMemoryGateway
        from repo_lens.kb.store import KnowledgeStore

        tree = {
            "src": {f"a{i}.js": "function a() {}" for i in range(4)},
            "lib": {f"b{i}.js": "function b() {}" for i in range(4)},
            "services": {"c.js": "function c() {}"},
        }
        gateway = InMemoryGateway(tree)
        explorer = _explorer(gateway, max_files=6)
        explorer.explore(KnowledgeStore())

        reads = [path for op, path in gateway.calls if op == "read"]
        assert len(reads) == 6
        assert explorer.diagnostics.files_processed == 6
        assert "services" not in explorer.diagnostics.attempted_paths

    def test_rate_limit_stops_crawl(self):
        from repo_lens.gateway import InMemoryGateway, RateLimitedError
        from repo_lens.kb.store import KnowledgeStore

        names = [f"handler{i}.js" for i in range(10)]
        gateway = InMemoryGateway(
            {"src": {name: "function handle() {}" for name in names},
             "lib": {"util.js": "function util() {}"}},
            failures={f"src/{name}": RateLimitedError("HTTP 429", f"src/{name}")
                      for name in names},
        )
        explorer = _explorer(gateway)
        explorer.explore(KnowledgeStore())

        diag = explorer.diagnostics
        assert diag.rate_limited is True
        assert [op for op, _ in gateway.calls].count("read") == 1
        assert "lib" not in diag.attempted_paths

    def test_depth_limit(self):
        from repo_lens.gateway import InMemoryGateway
        from repo_lens.kb.store import KnowledgeStore

        explorer = _explorer(InMemoryGateway(_tree()), max_depth=1)
        explorer.explore(KnowledgeStore())
        assert "src/services" not in explorer.diagnostics.attempted_paths

    def test_read_failure_is_recorded_and_skipped(self):
        from repo_lens.gateway import ForbiddenError, InMemoryGateway
        from repo_lens.kb.store import KnowledgeStore

        gateway = InMemoryGateway(_tree(), failures={
            "src/index.js": ForbiddenError("Forbidden", "src/index.js"),
        })
        explorer = _explorer(gateway)
        assert explorer.explore(KnowledgeStore()) is True
        diag = explorer.diagnostics
        assert [(f.path, f.kind) for f in diag.failures] == [("src/index.js", "forbidden")]
        assert "src/index.js" not in diag.processed_files
        assert "src/services/payment.js" in diag.processed_files

    def test_builder_failure_is_isolated(self):
        from repo_lens.gateway import InMemoryGateway
        from repo_lens.kb.store import KnowledgeStore

        builder = MagicMock()
        builder.build.side_effect = RuntimeError("parser exploded")
        explorer = _explorer(InMemoryGateway(_tree()), builder=builder)
        assert explorer.explore(KnowledgeStore()) is False
        diag = explorer.diagnostics
        assert diag.processed_files == []
        assert {f.kind for f in diag.failures} == {"extraction"}

    def test_no_repository(self):
        from repo_lens.gateway import InMemoryGateway
        from repo_lens.kb.explorer import ExplorerState
        from repo_lens.kb.store import KnowledgeStore

        gateway = InMemoryGateway(_tree())
        explorer = _explorer(gateway, repo=None)
        assert explorer.explore(KnowledgeStore()) is False
        assert explorer.state == ExplorerState.ERROR
        assert explorer.error
        assert gateway.call_count == 0

    def test_tiers(self):
        from repo_lens.gateway import InMemoryGateway
        from repo_lens.kb.explorer import RepositoryTier
        from repo_lens.kb.store import KnowledgeStore

        large = _explorer(InMemoryGateway({}), repo="TryGhost/Ghost")
        large.explore(KnowledgeStore())
        assert large.diagnostics.tier == RepositoryTier.LARGE

        mono = _explorer(InMemoryGateway({"packages": {}, "lerna.json": "{}"}))
        mono.explore(KnowledgeStore())
        assert mono.diagnostics.tier == RepositoryTier.MONOREPO

        plain = _explorer(InMemoryGateway(_tree()))
        plain.explore(KnowledgeStore())
        assert plain.diagnostics.tier == RepositoryTier.STANDARD

    def test_progress_is_monotonic(self):
        from repo_lens.gateway import InMemoryGateway
        from repo_lens.kb.store import KnowledgeStore

        seen = []
        explorer = _explorer(InMemoryGateway(_tree()), progress_callback=seen.append)
        explorer.explore(KnowledgeStore())
        assert seen[0] == 0
        assert seen[-1] == 100
        assert seen == sorted(seen)

    def test_progress_callback_errors_do_not_stop_crawl(self):
        from repo_lens.gateway import InMemoryGateway
        from repo_lens.kb.store import KnowledgeStore

        def _broken(value):
            raise ValueError("display gone")

        explorer = _explorer(InMemoryGateway(_tree()), progress_callback=_broken)
        assert explorer.explore(KnowledgeStore()) is True
        assert explorer.diagnostics.processed_file_count == 4

    def test_cancel_stops_before_next_path(self):
        from repo_lens.gateway import InMemoryGateway
        from repo_lens.kb.explorer import ExplorerState
        from repo_lens.kb.store import KnowledgeStore

        explorer = _explorer(InMemoryGateway(_tree()))

        def _cancel_after_root(value):
            if value >= 5:
                explorer.cancel()

        explorer.progress_callback = _cancel_after_root
        assert explorer.explore(KnowledgeStore()) is True
        diag = explorer.diagnostics
        assert diag.cancelled is True
        assert diag.attempted_paths == [""]
        assert explorer.state == ExplorerState.COMPLETE

    def test_request_delay_and_rate_limit(self):
        from repo_lens.gateway import InMemoryGateway
        from repo_lens.kb.store import KnowledgeStore

        gateway = InMemoryGateway(_tree())
        gateway.rate_limit_remaining = 42
        sleep = MagicMock()
        explorer = _explorer(gateway, request_delay=0.25, sleep=sleep)
        explorer.explore(KnowledgeStore())
        assert sleep.call_count == 3
        sleep.assert_called_with(0.25)
        assert explorer.diagnostics.rate_limit_remaining == 42


class TestScanDiagnostics:
    def test_round_trip(self):
        from repo_lens.kb.explorer import PathFailure, ScanDiagnostics

        diag = ScanDiagnostics(
            repository_fingerprint="acme/shop",
            attempted_paths=["", "src"],
            successful_paths=["", "src"],
            processed_files=["a.js", "a.js", "b.js"],
            failures=[PathFailure("lib", "not_found", "Not found")],
            rate_limit_remaining=10,
        )
        restored = ScanDiagnostics.from_dict(diag.to_dict())
        assert restored == diag
        assert restored.files_processed == 3
        assert restored.processed_file_count == 2

    def test_from_dict_is_lenient(self):
        from repo_lens.kb.explorer import ScanDiagnostics

        assert ScanDiagnostics.from_dict(None) == ScanDiagnostics()
        diag = ScanDiagnostics.from_dict({"attempted_paths": "bad", "failures": [1, {"x": 2}],
                                          "rate_limit_remaining": "many"})
        assert diag.attempted_paths == []
        assert diag.failures == []
        assert diag.rate_limit_remaining is None

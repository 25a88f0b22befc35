"""
KnowledgeEngine: the per-process context object and public API.

Owns the store, the scan cache, the orchestrator state and the version
history cache; nothing in ``repo_lens`` keeps module-level mutable state.
Build one engine per process (or per test)::

    engine = KnowledgeEngine.from_config(Config.load())
    engine.initialize()
    for entry in engine.search("How are subscription payments processed?"):
        print(entry.file_path, entry.content)
"""

from __future__ import annotations

import dataclasses
import logging
import threading
import time
from typing import Callable, Optional, Union

from ..config import Config, RepositoryRef, parse_repository
from ..gateway import (
    Change,
    ContentFetchGateway,
    GatewayError,
    GitHubGateway,
    GitHubHistoryProvider,
    VersionHistoryProvider,
)
from ..llm import LLMClient, OpenAIClient
from .answer import Answer, AnswerGenerator
from .entry import KnowledgeEntry
from .explorer import PathExplorer, ProgressCallback, ScanDiagnostics
from .kv_store import KeyValueStore, MemoryKeyValueStore, SQLiteKeyValueStore
from .orchestrator import InitializationState, Orchestrator
from .processor import EntryBuilder
from .scan_cache import ScanCache
from .searcher import RetrievalEngine, SearchHit
from .store import KnowledgeStore

logger = logging.getLogger(__name__)

GatewayFactory = Callable[[RepositoryRef], ContentFetchGateway]


class KnowledgeEngine:
    """
    Parameters
    ----------
    config:
        Settings; defaults to ``Config()`` (environment + built-in defaults).
    repository:
        Active repository; overrides ``config.REPOSITORY``.
    gateway_factory:
        ``repository -> ContentFetchGateway``; defaults to a GitHubGateway.
    history_provider:
        Source of ``last_updated`` timestamps; defaults to the GitHub commits
        API for the active repository.
    medium:
        Scan cache medium; defaults to an in-memory store.
    llm:
        Optional answer-synthesis client.
    cache_clock:
        Epoch-millisecond clock for the scan cache.
    sleep:
        Used for the explorer's inter-request delay.
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        *,
        repository: Union[RepositoryRef, str, None] = None,
        gateway_factory: Optional[GatewayFactory] = None,
        history_provider: Optional[VersionHistoryProvider] = None,
        medium: Optional[KeyValueStore] = None,
        llm: Optional[LLMClient] = None,
        cache_clock: Optional[Callable[[], int]] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.config = config or Config()
        if repository is None:
            repository = self.config.repository()
        self._repository = (parse_repository(repository)
                            if isinstance(repository, str) else repository)
        self.gateway_factory = gateway_factory or self._github_gateway
        self._injected_history = history_provider
        self._history_provider: Optional[VersionHistoryProvider] = history_provider
        self._history_cache: dict[str, Optional[Change]] = {}
        self._history_lock = threading.Lock()
        self._sleep = sleep

        cfg = self.config
        self.store = KnowledgeStore()
        self.cache = ScanCache(
            medium or MemoryKeyValueStore(cfg.CACHE_MAX_VALUE_BYTES),
            ttl_days=cfg.CACHE_TTL_DAYS,
            clock=cache_clock,
        )
        self.builder = EntryBuilder(max_content_chars=cfg.MAX_CONTENT_CHARS)
        self.retrieval = RetrievalEngine(
            top_k=cfg.SEARCH_TOP_K,
            min_score=cfg.SEARCH_MIN_SCORE,
            max_per_file=cfg.SEARCH_MAX_PER_FILE,
        )
        self.orchestrator = Orchestrator(
            self.store,
            self.cache,
            repository_provider=lambda: self._repository,
            explorer_factory=self._make_explorer,
            min_real_files=cfg.MIN_REAL_FILES,
            mock_overlap_threshold=cfg.MOCK_OVERLAP_THRESHOLD,
        )
        self.answers = AnswerGenerator(self.rank_with_history, llm, self.is_using_mock_data)

    @classmethod
    def from_config(cls, config: Config, **kwargs) -> "KnowledgeEngine":
        """Engine with an on-disk cache and, when a key is set, an LLM client."""
        kwargs.setdefault("medium", SQLiteKeyValueStore(
            config.CACHE_DB, max_value_bytes=config.CACHE_MAX_VALUE_BYTES))
        if config.OPENAI_API_KEY:
            kwargs.setdefault("llm", OpenAIClient(
                base_url=config.OPENAI_BASE_URL,
                model=config.OPENAI_MODEL,
                api_key=config.OPENAI_API_KEY,
                max_retries=max(1, config.MAX_RETRIES),
                retry_delay=config.RETRY_DELAY,
            ))
        return cls(config, **kwargs)

    # ------------------------------------------------------------------
    # Wiring
    # ------------------------------------------------------------------

    def _github_gateway(self, repository: RepositoryRef) -> ContentFetchGateway:
        cfg = self.config
        return GitHubGateway(
            repository,
            token=cfg.GITHUB_TOKEN,
            api_url=cfg.GITHUB_API_URL,
            ref=cfg.GITHUB_REF,
            timeout=cfg.REQUEST_TIMEOUT,
            max_retries=cfg.MAX_RETRIES,
            retry_delay=cfg.RETRY_DELAY,
        )

    def _make_explorer(self, repository: RepositoryRef,
                       successful_paths: list[str]) -> PathExplorer:
        cfg = self.config
        return PathExplorer(
            self.gateway_factory(repository),
            repository,
            self.builder,
            path_budget=cfg.PATH_BUDGET,
            monorepo_path_budget=cfg.MONOREPO_PATH_BUDGET,
            large_repo_path_budget=cfg.LARGE_REPO_PATH_BUDGET,
            max_files_per_directory=cfg.MAX_FILES_PER_DIRECTORY,
            max_files=cfg.MAX_FILES,
            max_depth=cfg.MAX_DEPTH,
            min_extractions=cfg.MIN_EXTRACTIONS,
            target_files=cfg.TARGET_FILES,
            request_delay=cfg.REQUEST_DELAY,
            successful_paths=successful_paths,
            sleep=self._sleep,
        )

    def _history(self) -> Optional[VersionHistoryProvider]:
        if self._history_provider is None and self._repository is not None:
            cfg = self.config
            self._history_provider = GitHubHistoryProvider(
                self._repository,
                token=cfg.GITHUB_TOKEN,
                api_url=cfg.GITHUB_API_URL,
                ref=cfg.GITHUB_REF,
                timeout=cfg.REQUEST_TIMEOUT,
            )
        return self._history_provider

    # ------------------------------------------------------------------
    # Repository
    # ------------------------------------------------------------------

    @property
    def repository(self) -> Optional[RepositoryRef]:
        return self._repository

    def set_repository(self, repository: Union[RepositoryRef, str, None]) -> None:
        """Switch the active repository; the next ``initialize`` re-crawls."""
        if isinstance(repository, str):
            repository = parse_repository(repository)
        self._repository = repository
        with self._history_lock:
            self._history_cache.clear()
            self._history_provider = self._injected_history
        logger.info("[Engine] Active repository: %s", repository or "<none>")

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def initialize(self, force_refresh: bool = False) -> InitializationState:
        return self.orchestrator.initialize(force_refresh)

    def state(self) -> InitializationState:
        return self.orchestrator.snapshot_state()

    def set_progress_callback(self, callback: Optional[ProgressCallback]) -> None:
        self.orchestrator.progress_callback = callback

    def cancel(self) -> None:
        self.orchestrator.cancel()

    def clear(self) -> None:
        """Empty the store and drop the cached scan of the active repository."""
        self.store.clear()
        if self._repository is not None:
            self.cache.invalidate(self._repository.fingerprint.lower())
        self.orchestrator.reset()
        with self._history_lock:
            self._history_cache.clear()

    def _ensure_initialized(self) -> None:
        if not self.orchestrator.state.initialized:
            self.initialize()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def rank(self, query: str) -> list[SearchHit]:
        self._ensure_initialized()
        return self.retrieval.rank(query, self.store)

    def search(self, query: str) -> list[KnowledgeEntry]:
        return [hit.entry for hit in self.rank(query)]

    def rank_with_history(self, query: str) -> list[SearchHit]:
        hits = self.rank(query)
        return [dataclasses.replace(h, entry=self._with_history(h.entry)) for h in hits]

    def search_with_history(self, query: str) -> list[KnowledgeEntry]:
        """
        Search, then date each entry from the version history provider:
        ``last_updated``, ``updated_by`` and ``change_frequency``.
        """
        return [hit.entry for hit in self.rank_with_history(query)]

    def _with_history(self, entry: KnowledgeEntry) -> KnowledgeEntry:
        path = entry.file_path
        with self._history_lock:
            if path in self._history_cache:
                change = self._history_cache[path]
            else:
                change = self._lookup_change(path)
                self._history_cache[path] = change
        if change is None:
            return entry
        return entry.with_last_updated(change.timestamp, change.author, change.frequency)

    def _lookup_change(self, path: str) -> Optional[Change]:
        provider = self._history()
        if provider is None:
            return None
        try:
            return provider.latest_change(path)
        except GatewayError as exc:
            logger.debug("[Engine] No history for %s: %s", path, exc)
            return None

    def answer(self, question: str) -> Optional[Answer]:
        return self.answers.answer(question)

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def stats(self) -> dict:
        """``{"total_entries", "by_type", "processed_file_count"}``."""
        stats = self.store.stats()
        stats["processed_file_count"] = self.orchestrator.diagnostics.processed_file_count
        return stats

    def diagnostics(self) -> ScanDiagnostics:
        return self.orchestrator.diagnostics

    def is_using_mock_data(self) -> bool:
        return self.orchestrator.state.using_mock_data

"""
Orchestrator: decides where the knowledge in the store comes from.

Sources, from least to most trusted:

* **mock**: the built-in synthetic dataset; used when no repository is
  configured or a crawl yields nothing usable and no cached scan exists;
* **crawl**: a fresh PathExplorer run, accepted only when it is verifiably
  real (see :meth:`Orchestrator.is_real_result`);
* **cache**: a previously accepted crawl restored from the ScanCache.

Synthetic data is never reported as real, and a transient crawl failure
never discards a cached real scan.
"""

from __future__ import annotations

import dataclasses
import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional

from ..config import RepositoryRef
from .explorer import PathExplorer, ProgressCallback, ScanDiagnostics
from .mock_data import mock_entries, mock_overlap
from .scan_cache import ScanCache, ScanCacheRecord
from .store import KnowledgeStore

logger = logging.getLogger(__name__)

DEFAULT_MIN_REAL_FILES = 1
DEFAULT_MOCK_OVERLAP_THRESHOLD = 0.9


class InitSource:
    NONE = "none"
    MOCK = "mock"
    CRAWL = "crawl"
    CACHE = "cache"


@dataclass
class InitializationState:
    in_progress: bool = False
    initialized: bool = False
    using_mock_data: bool = False
    fetch_confirmed: bool = False
    last_init_time: Optional[float] = None
    error: Optional[str] = None
    last_repository_fingerprint: Optional[str] = None
    source: str = InitSource.NONE


ExplorerFactory = Callable[[RepositoryRef, list], PathExplorer]


class Orchestrator:
    """
    Parameters
    ----------
    store:
        Engine-owned store; its contents are swapped in one step once the
        source of this run is decided.
    cache:
        Scan cache keyed by repository fingerprint.
    repository_provider:
        Returns the active repository (or None) at call time.
    explorer_factory:
        ``(repository, successful_paths) -> PathExplorer``.
    min_real_files / mock_overlap_threshold:
        Thresholds of the real-data check.
    """

    def __init__(
        self,
        store: KnowledgeStore,
        cache: ScanCache,
        repository_provider: Callable[[], Optional[RepositoryRef]],
        explorer_factory: ExplorerFactory,
        min_real_files: int = DEFAULT_MIN_REAL_FILES,
        mock_overlap_threshold: float = DEFAULT_MOCK_OVERLAP_THRESHOLD,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.cache = cache
        self.repository_provider = repository_provider
        self.explorer_factory = explorer_factory
        self.min_real_files = min_real_files
        self.mock_overlap_threshold = mock_overlap_threshold
        self.progress_callback: Optional[ProgressCallback] = None
        self._clock = clock

        self.state = InitializationState()
        self.diagnostics = ScanDiagnostics()
        self.successful_paths: list[str] = []
        self.explorer: Optional[PathExplorer] = None
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def snapshot_state(self) -> InitializationState:
        with self._lock:
            return dataclasses.replace(self.state)

    def cancel(self) -> None:
        explorer = self.explorer
        if explorer is not None:
            explorer.cancel()

    def reset(self) -> None:
        """Forget state, diagnostics and remembered paths (store untouched)."""
        with self._lock:
            self.state = InitializationState()
            self.diagnostics = ScanDiagnostics()
            self.successful_paths.clear()

    def initialize(self, force_refresh: bool = False) -> InitializationState:
        """
        Populate the store for the active repository.

        A call made while another is running returns immediately with the
        current state.
        """
        with self._lock:
            if self.state.in_progress:
                logger.info("[Orchestrator] Initialization already in progress; skipping")
                return dataclasses.replace(self.state)
            self.state.in_progress = True
            self.state.error = None

        try:
            self._initialize(force_refresh)
        except Exception as exc:
            logger.exception("[Orchestrator] Initialization failed")
            self.state.error = str(exc)
            self._recover()
        finally:
            with self._lock:
                self.state.in_progress = False
                self.state.initialized = True
                self.state.last_init_time = self._clock()
        return self.snapshot_state()

    def is_real_result(self, diagnostics: ScanDiagnostics, fetch_confirmed: bool,
                       entries) -> bool:
        """
        Real only if enough files were processed, the gateway confirmed at
        least one round-trip, and the entries are not mostly synthetic.
        """
        if diagnostics.processed_file_count < self.min_real_files:
            return False
        if not fetch_confirmed:
            return False
        return mock_overlap(entries) < self.mock_overlap_threshold

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _initialize(self, force_refresh: bool) -> None:
        repository = self.repository_provider()
        if repository is None:
            logger.info("[Orchestrator] No repository configured; using synthetic data")
            self.state.last_repository_fingerprint = None
            self.diagnostics = ScanDiagnostics()
            self._use_mock()
            return

        fingerprint = repository.fingerprint.lower()
        previous = self.state.last_repository_fingerprint
        if previous and previous != fingerprint:
            logger.info("[Orchestrator] Repository changed %s -> %s; forcing refresh",
                        previous, fingerprint)
            self.cache.invalidate(previous)
            self.successful_paths.clear()
            force_refresh = True
        self.state.last_repository_fingerprint = fingerprint

        if not force_refresh:
            record = self.cache.get(fingerprint)
            if record is not None:
                logger.info("[Orchestrator] Using cached scan for %s (%d entries)",
                            fingerprint, len(record.knowledge_snapshot))
                self._restore(record)
                return

        self._crawl(repository, fingerprint)

    def _crawl(self, repository: RepositoryRef, fingerprint: str) -> None:
        explorer = self.explorer_factory(repository, self.successful_paths)
        if self.progress_callback is not None:
            explorer.progress_callback = self.progress_callback
        self.explorer = explorer
        explorer.gateway.reset_counters()

        scratch = KnowledgeStore()
        try:
            explorer.explore(scratch)
        except Exception as exc:
            logger.exception("[Orchestrator] Crawl of %s failed", fingerprint)
            self.state.error = str(exc)
        finally:
            self.explorer = None

        diagnostics = explorer.diagnostics
        self.diagnostics = diagnostics
        entries = scratch.snapshot()
        fetch_confirmed = explorer.gateway.successful_requests > 0

        if self.is_real_result(diagnostics, fetch_confirmed, entries):
            self.store.replace(entries)
            self._set_source(InitSource.CRAWL, using_mock=False, fetch_confirmed=True)
            record = self.cache.new_record(fingerprint, entries, diagnostics, True)
            self.cache.put(fingerprint, record)
            logger.info("[Orchestrator] Indexed %d entries from %d files of %s",
                        len(entries), diagnostics.processed_file_count, fingerprint)
            return

        cached = self.cache.get(fingerprint)
        if cached is not None and cached.knowledge_snapshot:
            logger.warning("[Orchestrator] Crawl of %s yielded no usable data; "
                           "keeping cached scan", fingerprint)
            self._restore(cached, keep_diagnostics=True)
            return

        logger.warning("[Orchestrator] Crawl of %s yielded no usable data; "
                       "falling back to synthetic data", fingerprint)
        self.store.replace(list(entries) + list(mock_entries()))
        self._set_source(InitSource.MOCK, using_mock=True, fetch_confirmed=fetch_confirmed)

    def _restore(self, record: ScanCacheRecord, keep_diagnostics: bool = False) -> None:
        self.store.replace(record.knowledge_snapshot)
        if not keep_diagnostics:
            self.diagnostics = record.diagnostics
        if not self.successful_paths:
            self.successful_paths.extend(
                p for p in record.diagnostics.successful_paths if p)
        self._set_source(InitSource.CACHE, using_mock=False,
                         fetch_confirmed=record.fetch_confirmed)

    def _recover(self) -> None:
        """
        Leave the store usable after an unexpected failure.

        The store may still hold a previous repository's entries, so it is
        always rebuilt: from a valid cached scan of the active fingerprint
        when there is one, otherwise from synthetic data.
        """
        fingerprint = self.state.last_repository_fingerprint
        record = self.cache.get(fingerprint) if fingerprint else None
        if record is not None and record.knowledge_snapshot:
            logger.warning("[Orchestrator] Restoring cached scan of %s after failure",
                           fingerprint)
            self._restore(record)
            return
        self.diagnostics = ScanDiagnostics(repository_fingerprint=fingerprint)
        self._use_mock()

    def _use_mock(self) -> None:
        self.store.replace(mock_entries())
        self._set_source(InitSource.MOCK, using_mock=True, fetch_confirmed=False)

    def _set_source(self, source: str, using_mock: bool, fetch_confirmed: bool) -> None:
        self.state.source = source
        self.state.using_mock_data = using_mock
        self.state.fetch_confirmed = fetch_confirmed

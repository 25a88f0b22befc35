"""
`repo-lens` command line interface.

Commands
--------
repo-lens scan [--force]                 -- crawl (or reuse the cached scan)
repo-lens search "<query>" [--top-k N]   -- ranked knowledge entries
repo-lens ask "<question>"               -- answer with references
repo-lens status                         -- cache and last-scan summary
repo-lens clear                          -- drop the cached scan

Global options: ``--repo owner/repo``, ``--config PATH``, ``--verbose``.
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Optional

from .cli_display import (
    ScanProgressBar,
    format_duration_ms,
    format_epoch_ms,
    print_answer,
    print_entries,
    setup_logger,
)
from .config import Config, ConfigError
from .kb.engine import KnowledgeEngine

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

def _describe_state(engine: KnowledgeEngine) -> None:
    state = engine.state()
    stats = engine.stats()
    source = "synthetic data" if state.using_mock_data else f"real data ({state.source})"
    print(f"  Repository : {engine.repository or '<none>'}")
    print(f"  Source     : {source}")
    print(f"  Entries    : {stats['total_entries']}")
    print(f"  Files      : {stats['processed_file_count']}")
    if state.error:
        print(f"  Error      : {state.error}")


def _cmd_scan(engine: KnowledgeEngine, args: argparse.Namespace) -> int:
    bar = ScanProgressBar(desc=f"Scanning {engine.repository or 'demo data'}")
    engine.set_progress_callback(bar)
    try:
        engine.initialize(force_refresh=args.force)
    except KeyboardInterrupt:
        engine.cancel()
        print("\nScan cancelled.", file=sys.stderr)
        return 130
    finally:
        bar.close()
        engine.set_progress_callback(None)

    diag = engine.diagnostics()
    print("\nScan complete:")
    _describe_state(engine)
    if diag.attempted_paths:
        print(f"  Paths      : {len(diag.successful_paths)}/{len(diag.attempted_paths)} listed")
        print(f"  Failures   : {len(diag.failures)}")
        if diag.rate_limit_remaining is not None:
            print(f"  Rate limit : {diag.rate_limit_remaining} requests remaining")
    return 0


def _cmd_search(engine: KnowledgeEngine, args: argparse.Namespace) -> int:
    if args.top_k:
        engine.retrieval.top_k = args.top_k
    entries = engine.search_with_history(args.query)
    if engine.is_using_mock_data():
        print("(searching synthetic demo data)")
    print_entries(entries, args.query)
    return 0


def _cmd_ask(engine: KnowledgeEngine, args: argparse.Namespace) -> int:
    answer = engine.answer(args.question)
    if answer is None:
        print("No relevant information found.")
        return 1
    print_answer(answer)
    return 0


def _cmd_status(engine: KnowledgeEngine, args: argparse.Namespace) -> int:
    repo = engine.repository
    if repo is None:
        print("No repository configured (set --repo or REPO_LENS_REPOSITORY).")
        return 0
    fingerprint = repo.fingerprint.lower()
    print(f"  Repository : {repo}")
    print(f"  Last scan  : {format_epoch_ms(engine.cache.last_scan_time(fingerprint))}")
    print(f"  Next scan  : {format_duration_ms(engine.cache.time_until_next_scan(fingerprint))}")
    return 0


def _cmd_clear(engine: KnowledgeEngine, args: argparse.Namespace) -> int:
    engine.clear()
    print(f"Cleared cached scan for {engine.repository or '<none>'}.")
    return 0


_COMMANDS = {
    "scan": _cmd_scan,
    "search": _cmd_search,
    "ask": _cmd_ask,
    "status": _cmd_status,
    "clear": _cmd_clear,
}


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------

def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="repo-lens",
        description="Extract, index and query knowledge from a remote code repository",
    )
    parser.add_argument("--repo", help="Repository as owner/repo or GitHub URL")
    parser.add_argument("--config", help="Path to a .repo_lens.yaml file")
    parser.add_argument("--verbose", "-v", action="store_true",
                        help="Echo log output to stderr")

    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")
    subparsers.required = True

    scan_p = subparsers.add_parser("scan", help="Crawl the repository (or reuse the cache)")
    scan_p.add_argument("--force", action="store_true",
                        help="Ignore the cached scan and crawl again")

    search_p = subparsers.add_parser("search", help="Search the extracted knowledge")
    search_p.add_argument("query")
    search_p.add_argument("--top-k", type=int, default=0, help="Number of results")

    ask_p = subparsers.add_parser("ask", help="Answer a question about the repository")
    ask_p.add_argument("question")

    subparsers.add_parser("status", help="Show cache status")
    subparsers.add_parser("clear", help="Drop the cached scan")
    return parser


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def main(argv: Optional[list[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    try:
        config = Config.load(args.config)
        setup_logger(config.LOG_DIR, verbose=args.verbose)
        engine = KnowledgeEngine.from_config(config, repository=args.repo)
    except ConfigError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 2

    logger.debug("[CLI] Running %s for %s", args.command, engine.repository)
    return _COMMANDS[args.command](engine, args)


if __name__ == "__main__":
    sys.exit(main())

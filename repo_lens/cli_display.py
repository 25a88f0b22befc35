"""
Terminal output helpers for the ``repo-lens`` CLI: file logging, the scan
progress bar and result formatting.
"""

import logging
import os
import sys
from datetime import datetime, timezone
from typing import Optional

from tqdm import tqdm


def setup_logger(log_dir: str = ".repo_lens/logs", verbose: bool = False) -> logging.Logger:
    """Creates a file logger. All verbose output goes here.

    With *verbose* the same records are also echoed to stderr.
    """
    os.makedirs(log_dir, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = os.path.join(log_dir, f"repo_lens_{timestamp}.log")

    logger = logging.getLogger("repo_lens")
    logger.setLevel(logging.DEBUG)

    # File handler captures everything
    fh = logging.FileHandler(log_file, encoding="utf-8")
    fh.setLevel(logging.DEBUG)
    fh.setFormatter(logging.Formatter(
        "%(asctime)s [%(levelname)s] %(name)s: %(message)s", datefmt="%H:%M:%S"
    ))
    logger.addHandler(fh)

    if verbose:
        ch = logging.StreamHandler(sys.stderr)
        ch.setLevel(logging.INFO)
        ch.setFormatter(logging.Formatter("%(levelname)s  %(name)s  %(message)s"))
        logger.addHandler(ch)

    return logger


class ScanProgressBar:
    """tqdm bar driven by the explorer's 0-100 progress callback."""

    def __init__(self, desc: str = "Scanning"):
        self._bar = tqdm(total=100, unit="%", desc=desc,
                         bar_format="{desc}: {percentage:3.0f}%|{bar}| {elapsed}")
        self._last = 0

    def __call__(self, progress: int) -> None:
        if progress > self._last:
            self._bar.update(progress - self._last)
            self._last = progress

    def close(self) -> None:
        if self._last < 100:
            self._bar.update(100 - self._last)
            self._last = 100
        self._bar.close()


def format_duration_ms(ms: int) -> str:
    """Human-readable ``N days, M hours`` for a millisecond interval."""
    if ms <= 0:
        return "Scan needed"
    days, rem = divmod(ms, 24 * 60 * 60 * 1000)
    hours = rem // (60 * 60 * 1000)
    if days > 0:
        return f"{days} day{'s' if days != 1 else ''}, {hours} hour{'s' if hours != 1 else ''}"
    return f"{hours} hour{'s' if hours != 1 else ''}"


def format_epoch_ms(value: Optional[int]) -> str:
    if not value:
        return "never"
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc).strftime("%Y-%m-%d %H:%M UTC")


def format_last_updated(timestamp: str, author: Optional[str] = None,
                        frequency: Optional[str] = None) -> str:
    """``Last updated: 2024-05-01 by Ada (change frequency: low)``"""
    text = f"Last updated: {timestamp.split('T')[0]}"
    if author:
        text += f" by {author}"
    if frequency:
        text += f" (change frequency: {frequency})"
    return text


def print_entries(entries, query: str) -> None:
    if not entries:
        print(f"  (no results for: {query})")
        return
    print(f"\nResults for {query!r}  [{len(entries)} result(s)]")
    print("-" * 60)
    for i, entry in enumerate(entries, 1):
        snippet = " ".join(entry.content.split())
        if len(snippet) > 160:
            snippet = snippet[:160] + "..."
        print(f"{i:>2}. [{entry.type}] {entry.file_path}")
        print(f"    {snippet}")
        if entry.last_updated:
            print("    " + format_last_updated(entry.last_updated, entry.updated_by,
                                            entry.change_frequency))


def print_answer(answer) -> None:
    print()
    print(answer.text)
    print()
    label = " (synthetic data)" if answer.used_mock_data else ""
    print(f"Confidence: {answer.confidence:.0%}{label}")
    if answer.references:
        print("References:")
        for ref in answer.references:
            suffix = (f"  [{format_last_updated(ref.last_updated, ref.updated_by)}]"
                      if ref.last_updated else "")
            print(f"  - {ref.file_path}{suffix}")

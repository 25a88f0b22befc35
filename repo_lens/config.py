"""
Configuration: loads settings from .repo_lens.yaml, environment variables,
and built-in defaults (in that priority order: CLI args > env > YAML > defaults).
"""

from __future__ import annotations

import os
from dataclasses import dataclass

import yaml


_DEFAULTS = {
    "repository": "",
    "github_token": "",
    "github_api_url": "https://api.github.com",
    "github_ref": "",
    "request_timeout": 10.0,
    "max_retries": 2,
    "retry_delay": 1.0,
    "request_delay": 0.0,
    "cache_db": ".repo_lens/cache.db",
    "cache_ttl_days": 14,
    "cache_max_value_bytes": 4_000_000,
    "path_budget": 60,
    "monorepo_path_budget": 100,
    "large_repo_path_budget": 150,
    "max_files_per_directory": 40,
    "max_files": 1000,
    "max_depth": 3,
    "min_extractions": 5,
    "target_files": 100,
    "max_content_chars": 2000,
    "search_top_k": 20,
    "search_min_score": 0.5,
    "search_max_per_file": 3,
    "min_real_files": 1,
    "mock_overlap_threshold": 0.9,
    "openai_api_key": "",
    "openai_base_url": "https://api.openai.com/v1",
    "openai_model": "gpt-4o-mini",
    "log_dir": ".repo_lens/logs",
}

# Config file search locations
_CONFIG_FILENAMES = [".repo_lens.yaml", ".repo_lens.yml"]


class ConfigError(ValueError):
    """Raised when a configuration value cannot be interpreted."""


@dataclass(frozen=True)
class RepositoryRef:
    """An ``owner/repo`` pair identifying a remote repository."""
    owner: str
    repo: str

    @property
    def fingerprint(self) -> str:
        return f"{self.owner}/{self.repo}"

    def __str__(self) -> str:
        return self.fingerprint


def parse_repository(value: str) -> RepositoryRef:
    """Parse ``owner/repo`` (optionally a full GitHub URL) into a RepositoryRef."""
    text = (value or "").strip()
    for prefix in ("https://github.com/", "http://github.com/", "github.com/"):
        if text.startswith(prefix):
            text = text[len(prefix):]
            break
    if text.endswith(".git"):
        text = text[:-4]
    parts = [p for p in text.strip("/").split("/") if p]
    if len(parts) != 2:
        raise ConfigError(
            f"Repository must look like 'owner/repo', got {value!r}")
    return RepositoryRef(owner=parts[0], repo=parts[1])


def _find_config_file(explicit_path: str | None = None) -> str | None:
    """Find the config file. Checks explicit path, CWD, then user home."""
    if explicit_path:
        if os.path.isfile(explicit_path):
            return explicit_path
        return None

    search_dirs = [os.getcwd(), os.path.expanduser("~")]
    for d in search_dirs:
        for name in _CONFIG_FILENAMES:
            path = os.path.join(d, name)
            if os.path.isfile(path):
                return path
    return None


def _load_yaml(path: str) -> dict:
    """Load YAML file, returns empty dict on failure."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
        return data if isinstance(data, dict) else {}
    except (OSError, yaml.YAMLError):
        return {}


class Config:
    """Application configuration.

    Settings are resolved in priority order:
    1. CLI arguments (handled by caller)
    2. Environment variables
    3. .repo_lens.yaml config file
    4. Built-in defaults

    The ``crawl`` / ``search`` / ``openai`` sections of the YAML file are
    flattened into the top level, so ``crawl: {path_budget: 80}`` and
    ``path_budget: 80`` mean the same thing.
    """

    def __init__(self, yaml_data: dict | None = None):
        yd = dict(yaml_data or {})
        for section in ("crawl", "search", "cache", "github"):
            if isinstance(yd.get(section), dict):
                for key, val in yd[section].items():
                    yd.setdefault(str(key), val)

        # Helper: env var > yaml > default
        def _get(env_key: str, yaml_key: str, cast=str):
            default = _DEFAULTS[yaml_key]
            env_val = os.getenv(env_key)
            if env_val is not None:
                try:
                    return cast(env_val)
                except ValueError as exc:
                    raise ConfigError(f"{env_key}: {exc}") from exc
            yaml_val = yd.get(yaml_key)
            if yaml_val is not None:
                try:
                    return cast(yaml_val)
                except (TypeError, ValueError) as exc:
                    raise ConfigError(f"{yaml_key}: {exc}") from exc
            return default

        self.REPOSITORY = _get("REPO_LENS_REPOSITORY", "repository")
        self.GITHUB_TOKEN = _get("GITHUB_TOKEN", "github_token")
        self.GITHUB_API_URL = _get("GITHUB_API_URL", "github_api_url")
        self.GITHUB_REF = _get("REPO_LENS_REF", "github_ref")

        self.REQUEST_TIMEOUT = _get("REPO_LENS_REQUEST_TIMEOUT",
                                    "request_timeout", cast=float)
        self.MAX_RETRIES = _get("REPO_LENS_MAX_RETRIES", "max_retries", cast=int)
        self.RETRY_DELAY = _get("REPO_LENS_RETRY_DELAY", "retry_delay", cast=float)
        self.REQUEST_DELAY = _get("REPO_LENS_REQUEST_DELAY", "request_delay",
                                  cast=float)

        # Scan cache
        self.CACHE_DB = _get("REPO_LENS_CACHE_DB", "cache_db")
        self.CACHE_TTL_DAYS = _get("REPO_LENS_CACHE_TTL_DAYS", "cache_ttl_days",
                                   cast=float)
        self.CACHE_MAX_VALUE_BYTES = _get("REPO_LENS_CACHE_MAX_VALUE_BYTES",
                                          "cache_max_value_bytes", cast=int)

        # Crawl budgets
        self.PATH_BUDGET = _get("REPO_LENS_PATH_BUDGET", "path_budget", cast=int)
        self.MONOREPO_PATH_BUDGET = _get("REPO_LENS_MONOREPO_PATH_BUDGET",
                                         "monorepo_path_budget", cast=int)
        self.LARGE_REPO_PATH_BUDGET = _get("REPO_LENS_LARGE_REPO_PATH_BUDGET",
                                           "large_repo_path_budget", cast=int)
        self.MAX_FILES_PER_DIRECTORY = _get("REPO_LENS_MAX_FILES_PER_DIRECTORY",
                                            "max_files_per_directory", cast=int)
        self.MAX_FILES = _get("REPO_LENS_MAX_FILES", "max_files", cast=int)
        self.MAX_DEPTH = _get("REPO_LENS_MAX_DEPTH", "max_depth", cast=int)
        self.MIN_EXTRACTIONS = _get("REPO_LENS_MIN_EXTRACTIONS",
                                    "min_extractions", cast=int)
        self.TARGET_FILES = _get("REPO_LENS_TARGET_FILES", "target_files", cast=int)
        self.MAX_CONTENT_CHARS = _get("REPO_LENS_MAX_CONTENT_CHARS",
                                      "max_content_chars", cast=int)

        # Retrieval
        self.SEARCH_TOP_K = _get("REPO_LENS_SEARCH_TOP_K", "search_top_k", cast=int)
        self.SEARCH_MIN_SCORE = _get("REPO_LENS_SEARCH_MIN_SCORE",
                                     "search_min_score", cast=float)
        self.SEARCH_MAX_PER_FILE = _get("REPO_LENS_SEARCH_MAX_PER_FILE",
                                        "search_max_per_file", cast=int)

        # Real-vs-mock classification thresholds
        self.MIN_REAL_FILES = _get("REPO_LENS_MIN_REAL_FILES", "min_real_files",
                                   cast=int)
        self.MOCK_OVERLAP_THRESHOLD = _get("REPO_LENS_MOCK_OVERLAP_THRESHOLD",
                                           "mock_overlap_threshold", cast=float)

        # OpenAI-compatible answer synthesis (optional)
        openai_section = yd.get("openai", {}) if isinstance(yd.get("openai"), dict) else {}
        self.OPENAI_API_KEY = os.getenv("OPENAI_API_KEY") or openai_section.get(
            "api_key", _DEFAULTS["openai_api_key"])
        self.OPENAI_BASE_URL = os.getenv("OPENAI_BASE_URL") or openai_section.get(
            "base_url", _DEFAULTS["openai_base_url"])
        self.OPENAI_MODEL = os.getenv("OPENAI_MODEL") or openai_section.get(
            "model", _DEFAULTS["openai_model"])

        self.LOG_DIR = _get("REPO_LENS_LOG_DIR", "log_dir")

    def repository(self) -> RepositoryRef | None:
        """Return the configured repository, or None when none is set."""
        if not self.REPOSITORY:
            return None
        return parse_repository(self.REPOSITORY)

    @classmethod
    def load(cls, config_path: str | None = None) -> "Config":
        """Load config from YAML file (if found) + env vars + defaults."""
        path = _find_config_file(config_path)
        yaml_data = _load_yaml(path) if path else {}
        return cls(yaml_data)

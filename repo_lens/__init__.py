"""
repo_lens: extract, index and query knowledge from a remote code repository.

Public API for library usage::

    from repo_lens import KnowledgeEngine

    engine = KnowledgeEngine(repository="tryghost/ghost")
    engine.initialize()
    results = engine.search("How are subscription payments processed?")
"""

from .config import Config, ConfigError, RepositoryRef, parse_repository
from .kb.engine import KnowledgeEngine

__all__ = ["Config", "ConfigError", "KnowledgeEngine", "RepositoryRef", "parse_repository"]

"""
Content gateways: read-only access to a remote repository.

``list(path)`` / ``read(path)`` may fail with any :class:`GatewayError`
subclass; callers recover per path.
"""

from .base import (
    AuthRequiredError,
    Change,
    ContentFetchGateway,
    ForbiddenError,
    GatewayError,
    NetworkError,
    NotFoundError,
    RateLimitedError,
    RepoItem,
    UnknownGatewayError,
    VersionHistoryProvider,
    change_frequency,
)
from .github import GitHubGateway, GitHubHistoryProvider
from .memory import InMemoryGateway, StaticHistoryProvider

__all__ = [
    "AuthRequiredError",
    "Change",
    "ContentFetchGateway",
    "ForbiddenError",
    "GatewayError",
    "GitHubGateway",
    "GitHubHistoryProvider",
    "InMemoryGateway",
    "NetworkError",
    "NotFoundError",
    "RateLimitedError",
    "RepoItem",
    "StaticHistoryProvider",
    "UnknownGatewayError",
    "VersionHistoryProvider",
    "change_frequency",
]

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional


class GatewayError(Exception):
    """Base class for all content-fetch failures.

    ``kind`` is a short, stable label used when aggregating failures into
    scan diagnostics.
    """

    kind = "unknown"

    def __init__(self, message: str, path: str = ""):
        super().__init__(message)
        self.path = path


class NotFoundError(GatewayError):
    kind = "not_found"


class AuthRequiredError(GatewayError):
    kind = "auth_required"


class ForbiddenError(GatewayError):
    kind = "forbidden"


class RateLimitedError(GatewayError):
    kind = "rate_limited"

    def __init__(self, message: str, path: str = "",
                 retry_after: Optional[float] = None):
        super().__init__(message, path)
        self.retry_after = retry_after


class NetworkError(GatewayError):
    kind = "network"


class UnknownGatewayError(GatewayError):
    kind = "unknown"


@dataclass(frozen=True)
class RepoItem:
    """One entry of a directory listing."""
    name: str
    path: str
    type: str   # "file" | "dir" | "symlink" | "submodule"

    @property
    def is_file(self) -> bool:
        return self.type == "file"

    @property
    def is_dir(self) -> bool:
        return self.type == "dir"


def change_frequency(commit_count: int) -> str:
    """Bucket a path's recent commit count into ``high`` / ``medium`` / ``low``."""
    if commit_count > 10:
        return "high"
    if commit_count > 5:
        return "medium"
    return "low"


@dataclass(frozen=True)
class Change:
    """Most recent change recorded for a path.

    ``commit_count`` is the number of recent commits seen touching the
    path, capped by the lookup window.
    """
    timestamp: str
    author: str
    author_email: Optional[str] = None
    commit_count: int = 1

    @property
    def frequency(self) -> str:
        return change_frequency(self.commit_count)


class ContentFetchGateway(ABC):
    """Read-only view of one remote repository.

    Implementations count successful round-trips so the orchestrator can
    confirm that real data was actually fetched.
    """

    def __init__(self):
        self.successful_requests = 0
        self.failed_requests = 0
        self.rate_limit_remaining: Optional[int] = None

    @abstractmethod
    def list(self, path: str) -> List[RepoItem]:
        """List *path*. A file path yields a single-item list."""

    @abstractmethod
    def read(self, path: str) -> str:
        """Return the decoded text of the file at *path*."""

    def reset_counters(self) -> None:
        self.successful_requests = 0
        self.failed_requests = 0


class VersionHistoryProvider(ABC):

    @abstractmethod
    def latest_change(self, path: str) -> Optional[Change]:
        """Return the most recent change for *path*, or None if unknown."""

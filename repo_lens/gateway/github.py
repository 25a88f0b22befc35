"""
GitHub gateway: reads a repository through the GitHub REST "contents" API.

Every HTTP failure is classified into a :class:`GatewayError` subclass so
callers can record it and move on.  Connection errors and timeouts are
retried with jittered exponential backoff; 4xx answers are never retried.
"""

from __future__ import annotations

import base64
import binascii
import logging
import random
import time
from typing import List, Optional
from urllib.parse import quote

import requests

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
)
from ..config import RepositoryRef

logger = logging.getLogger(__name__)

_USER_AGENT = "repo-lens"


def github_headers(token: str = "") -> dict[str, str]:
    """Build GitHub API headers, including token if available."""
    headers = {
        "Accept": "application/vnd.github.v3+json",
        "User-Agent": _USER_AGENT,
    }
    if token:
        headers["Authorization"] = f"token {token}"
    return headers


def _retry_after_seconds(response: requests.Response) -> Optional[float]:
    """Seconds to wait before retrying, from Retry-After or X-RateLimit-Reset."""
    value = response.headers.get("Retry-After")
    if value:
        try:
            return float(value)
        except ValueError:
            pass
    reset = response.headers.get("X-RateLimit-Reset")
    if reset:
        try:
            return max(0.0, float(reset) - time.time())
        except ValueError:
            pass
    return None


def classify_response(response: requests.Response, path: str) -> GatewayError:
    """Map a non-2xx response onto the gateway error taxonomy."""
    status = response.status_code
    message = f"HTTP {status} for {path or '/'}"
    if status == 404:
        return NotFoundError(message, path)
    if status == 401:
        return AuthRequiredError(message, path)
    if status == 429 or (
        status == 403 and response.headers.get("X-RateLimit-Remaining") == "0"
    ):
        return RateLimitedError(message, path,
                                retry_after=_retry_after_seconds(response))
    if status == 403:
        return ForbiddenError(message, path)
    return UnknownGatewayError(message, path)


class _GitHubSession:
    """Shared request/retry plumbing for the GitHub gateway and history provider."""

    def __init__(self, token: str = "", api_url: str = "https://api.github.com",
                 timeout: float = 10.0, max_retries: int = 2,
                 retry_delay: float = 1.0,
                 session: Optional[requests.Session] = None):
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self.max_retries = max(0, max_retries)
        self.retry_delay = retry_delay
        self.session = session or requests.Session()
        self.session.headers.update(github_headers(token))
        self.rate_limit_remaining: Optional[int] = None

    def get_json(self, url: str, path: str, params: Optional[dict] = None):
        last_error: GatewayError | None = None
        for attempt in range(1, self.max_retries + 2):
            try:
                response = self.session.get(url, params=params,
                                            timeout=self.timeout)
            except (requests.ConnectionError, requests.Timeout) as exc:
                last_error = NetworkError(
                    f"Network error fetching {path or '/'}: {exc}", path)
            except requests.RequestException as exc:
                raise UnknownGatewayError(
                    f"Request failed for {path or '/'}: {exc}", path) from exc
            else:
                self._track_rate_limit(response)
                if response.ok:
                    try:
                        return response.json()
                    except ValueError as exc:
                        raise UnknownGatewayError(
                            f"Invalid JSON for {path or '/'}", path) from exc
                if response.status_code >= 500:
                    last_error = UnknownGatewayError(
                        f"HTTP {response.status_code} for {path or '/'}", path)
                else:
                    raise classify_response(response, path)

            if attempt <= self.max_retries:
                wait = self.retry_delay * (2 ** (attempt - 1))
                jitter = wait * 0.1 * random.random()
                logger.debug("[GitHub] %s (attempt %d/%d), retrying in %.1fs",
                             last_error, attempt, self.max_retries + 1,
                             wait + jitter)
                time.sleep(wait + jitter)

        raise last_error or UnknownGatewayError(
            f"Request failed for {path or '/'}", path)

    def _track_rate_limit(self, response: requests.Response) -> None:
        remaining = response.headers.get("X-RateLimit-Remaining")
        if remaining is None:
            return
        try:
            self.rate_limit_remaining = int(remaining)
        except ValueError:
            pass


class GitHubGateway(ContentFetchGateway):
    """Content gateway for one GitHub repository.

    Parameters
    ----------
    repository:
        Repository to read.
    token:
        Optional personal access token; unauthenticated access works for
        public repositories at a much lower rate limit.
    ref:
        Optional branch, tag or commit; defaults to the repository's default
        branch.
    """

    def __init__(self, repository: RepositoryRef, token: str = "",
                 api_url: str = "https://api.github.com", ref: str = "",
                 timeout: float = 10.0, max_retries: int = 2,
                 retry_delay: float = 1.0,
                 session: Optional[requests.Session] = None):
        super().__init__()
        self.repository = repository
        self.ref = ref
        self._http = _GitHubSession(token=token, api_url=api_url,
                                    timeout=timeout, max_retries=max_retries,
                                    retry_delay=retry_delay, session=session)

    def _contents_url(self, path: str) -> str:
        base = (f"{self._http.api_url}/repos/{self.repository.owner}/"
                f"{self.repository.repo}/contents")
        clean = path.strip("/")
        return f"{base}/{quote(clean)}" if clean else base

    def _fetch(self, path: str):
        params = {"ref": self.ref} if self.ref else None
        try:
            data = self._http.get_json(self._contents_url(path), path, params)
        except GatewayError:
            self.failed_requests += 1
            raise
        finally:
            self.rate_limit_remaining = self._http.rate_limit_remaining
        self.successful_requests += 1
        return data

    def list(self, path: str) -> List[RepoItem]:
        data = self._fetch(path)
        raw_items = data if isinstance(data, list) else [data]
        items: List[RepoItem] = []
        for raw in raw_items:
            if not isinstance(raw, dict):
                continue
            name = raw.get("name")
            item_path = raw.get("path")
            item_type = raw.get("type")
            if not (isinstance(name, str) and isinstance(item_path, str)
                    and isinstance(item_type, str)):
                continue
            items.append(RepoItem(name=name, path=item_path, type=item_type))
        return items

    def read(self, path: str) -> str:
        data = self._fetch(path)
        if isinstance(data, list):
            raise UnknownGatewayError(
                f"Path {path} is a directory, not a file", path)
        content = data.get("content") if isinstance(data, dict) else None
        if not content:
            raise UnknownGatewayError(f"No content found for file {path}", path)
        if data.get("encoding", "base64") != "base64":
            return str(content)
        try:
            raw = base64.b64decode("".join(content.split()))
        except (binascii.Error, ValueError) as exc:
            raise UnknownGatewayError(
                f"Failed to decode content for {path}: {exc}", path) from exc
        return raw.decode("utf-8", errors="replace")


class GitHubHistoryProvider(VersionHistoryProvider):
    """Looks up the latest commit touching a path via the commits API.

    One page of up to ``HISTORY_WINDOW`` commits is fetched so the change
    frequency can be bucketed without paging through the full history.
    """

    HISTORY_WINDOW = 11

    def __init__(self, repository: RepositoryRef, token: str = "",
                 api_url: str = "https://api.github.com", ref: str = "",
                 timeout: float = 10.0,
                 session: Optional[requests.Session] = None):
        self.repository = repository
        self.ref = ref
        self._http = _GitHubSession(token=token, api_url=api_url,
                                    timeout=timeout, max_retries=0,
                                    session=session)

    def latest_change(self, path: str) -> Optional[Change]:
        url = (f"{self._http.api_url}/repos/{self.repository.owner}/"
               f"{self.repository.repo}/commits")
        params = {"path": path, "per_page": self.HISTORY_WINDOW}
        if self.ref:
            params["sha"] = self.ref
        try:
            data = self._http.get_json(url, path, params)
        except GatewayError as exc:
            logger.debug("[GitHub] History lookup failed for %s: %s", path, exc)
            return None
        if not isinstance(data, list) or not data:
            return None
        author = (data[0].get("commit") or {}).get("author") or {}
        timestamp = author.get("date")
        if not timestamp:
            return None
        return Change(
            timestamp=timestamp,
            author=author.get("name") or "Unknown",
            author_email=author.get("email"),
            commit_count=len(data),
        )

from __future__ import annotations

import threading
import time
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import quote

import requests

from . import metrics
from .errors import RateLimitError, TrackerError

DEFAULT_API_URL = "https://api.github.com"
USER_AGENT = "alert-issue-receiver/0.3.0"
HTTP_ERROR_STATUS = 400
HTTP_NOT_FOUND = 404
DEFAULT_TIMEOUT = 15.0
SEARCH_PAGE_SIZE = 100


class GitHubAPIError(TrackerError):
    """Raised when the GitHub REST API returns an error."""


@dataclass
class RateLimitState:
    limit: int
    remaining: int
    reset_at: float


def _rate_resource(path: str) -> str:
    return "search" if "/search/" in path else "core"


@dataclass
class GitHubRestClient:
    """Lightweight REST client for the issue operations the receiver needs.

    ``org`` is the default owner for repository names given without one.
    Every request is bounded by ``timeout`` seconds. Rate-limit headers are
    recorded per API resource; once a resource is exhausted, calls against it
    fail with ``RateLimitError`` until the reset time without touching the
    network.
    """

    token: str
    org: str
    base_url: str = DEFAULT_API_URL
    timeout: float = DEFAULT_TIMEOUT
    session: requests.Session | None = None
    _session: requests.Session = field(init=False, repr=False)
    _rates: dict[str, RateLimitState] = field(init=False, repr=False, default_factory=dict)
    _rate_lock: threading.Lock = field(init=False, repr=False, default_factory=threading.Lock)

    def __post_init__(self) -> None:  # pragma: no cover - simple wiring
        self._session = self.session or requests.Session()
        self._session.headers.setdefault("Authorization", f"Bearer {self.token}")
        self._session.headers.setdefault("Accept", "application/vnd.github+json")
        self._session.headers.setdefault("User-Agent", USER_AGENT)

    # ---- rate limit bookkeeping --------------------------------------
    def _check_rate_limit(self, resource: str) -> None:
        with self._rate_lock:
            state = self._rates.get(resource)
        if state is None or state.remaining > 0:
            return
        if state.reset_at > time.time():
            raise RateLimitError(
                f"GitHub API rate limit for {resource} exhausted until {int(state.reset_at)}",
                reset_at=state.reset_at,
            )

    def _record_rate_limit(self, resource: str, response: requests.Response) -> RateLimitState | None:
        headers = getattr(response, "headers", None) or {}
        try:
            limit = int(headers["X-RateLimit-Limit"])
            remaining = int(headers["X-RateLimit-Remaining"])
            reset_at = float(headers["X-RateLimit-Reset"])
        except (KeyError, TypeError, ValueError):
            return None
        resource = headers.get("X-RateLimit-Resource", resource)
        state = RateLimitState(limit=limit, remaining=remaining, reset_at=reset_at)
        with self._rate_lock:
            self._rates[resource] = state
        metrics.RATE_LIMIT.labels(resource).set(limit)
        metrics.RATE_REMAINING.labels(resource).set(remaining)
        metrics.RATE_RESET.labels(resource).set(reset_at)
        return state

    def rate_limit(self, resource: str = "core") -> RateLimitState | None:
        with self._rate_lock:
            return self._rates.get(resource)

    # ---- REST helpers -------------------------------------------------
    def _url(self, path: str) -> str:
        if path.startswith("http"):
            return path
        return f"{self.base_url.rstrip('/')}/{path.lstrip('/')}"

    def _send(
        self,
        operation: str,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json_body: Any | None = None,
        allow_not_found: bool = False,
    ) -> requests.Response:
        url = self._url(path)
        resource = _rate_resource(url)
        self._check_rate_limit(resource)
        metrics.TRACKER_OPERATIONS.labels(operation).inc()
        try:
            response = self._session.request(
                method,
                url,
                params=params,
                json=json_body,
                headers=self._session.headers,
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise GitHubAPIError(f"GitHub API {method} {url} failed: {exc}") from exc
        state = self._record_rate_limit(resource, response)
        status = response.status_code
        if status == HTTP_NOT_FOUND and allow_not_found:
            return response
        if status >= HTTP_ERROR_STATUS:
            if status in (403, 429) and state is not None and state.remaining == 0:
                raise RateLimitError(
                    f"GitHub API {method} {url} rejected: rate limit exceeded",
                    reset_at=state.reset_at,
                    status=status,
                )
            raise GitHubAPIError(
                f"GitHub API {method} {url} failed with {status}: {_error_message(response)}",
                status=status,
                response_text=response.text,
            )
        return response

    def _request(self, operation: str, method: str, path: str, **kw: Any) -> Any:
        response = self._send(operation, method, path, **kw)
        if response.text:
            try:
                return response.json()
            except ValueError:  # pragma: no cover
                return response.text
        return None

    def repo_path(self, repo: str) -> str:
        """``owner/name`` for ``repo``; bare names belong to ``org``."""
        return repo if "/" in repo else f"{self.org}/{repo}"

    # ---- Issue operations --------------------------------------------
    def search_issues(self, query: str) -> list[dict[str, Any]]:
        """Run an issue search and follow ``Link: rel=next`` until exhausted."""
        results: list[dict[str, Any]] = []
        url: str = "/search/issues"
        params: dict[str, Any] | None = {"q": query, "per_page": SEARCH_PAGE_SIZE}
        while True:
            response = self._send("search_issues", "GET", url, params=params)
            try:
                data = response.json() if response.text else {}
            except ValueError as exc:
                raise GitHubAPIError(f"GitHub API search returned invalid JSON: {exc}") from exc
            items = data.get("items") if isinstance(data, dict) else None
            for entry in items or []:
                if isinstance(entry, dict):
                    results.append(entry)
            next_url = (getattr(response, "links", None) or {}).get("next", {}).get("url")
            if not next_url:
                break
            # The continuation URL already carries the query string.
            url, params = next_url, None
        return results

    def create_issue(
        self,
        *,
        repo: str,
        title: str,
        body: str,
        labels: Iterable[str] | None = None,
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {"title": title, "body": body}
        if labels:
            payload["labels"] = list(labels)
        data = self._request(
            "create_issue", "POST", f"/repos/{self.repo_path(repo)}/issues", json_body=payload
        )
        if not isinstance(data, dict):
            raise GitHubAPIError("GitHub API create issue returned no issue")
        return data

    def add_labels(self, *, repo: str, number: int, labels: Iterable[str]) -> None:
        self._request(
            "add_labels",
            "POST",
            f"/repos/{self.repo_path(repo)}/issues/{number}/labels",
            json_body={"labels": list(labels)},
        )

    def remove_label(self, *, repo: str, number: int, label: str) -> bool:
        """Remove ``label``; returns False when the issue did not carry it."""
        response = self._send(
            "remove_label",
            "DELETE",
            f"/repos/{self.repo_path(repo)}/issues/{number}/labels/{quote(label, safe='')}",
            allow_not_found=True,
        )
        return response.status_code != HTTP_NOT_FOUND

    def close_issue(self, *, repo: str, number: int) -> dict[str, Any]:
        data = self._request(
            "close_issue",
            "PATCH",
            f"/repos/{self.repo_path(repo)}/issues/{number}",
            json_body={"state": "closed"},
        )
        return data if isinstance(data, dict) else {}

    def create_project_card(self, *, column_id: int, issue_id: int) -> dict[str, Any]:
        data = self._request(
            "create_project_card",
            "POST",
            f"/projects/columns/{column_id}/cards",
            json_body={"content_id": issue_id, "content_type": "Issue"},
        )
        return data if isinstance(data, dict) else {}


def _error_message(response: requests.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return (response.text or "")[:200]
    if isinstance(data, dict) and isinstance(data.get("message"), str):
        return data["message"]
    return (response.text or "")[:200]


__all__ = [
    "DEFAULT_API_URL",
    "DEFAULT_TIMEOUT",
    "GitHubAPIError",
    "GitHubRestClient",
    "RateLimitState",
]

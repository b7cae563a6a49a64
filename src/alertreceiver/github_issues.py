"""GitHub-backed issue tracker.

Adapts ``GitHubRestClient`` to the ``IssueTracker`` capability:

 - open alert issues are discovered with the search API, scoped to the
   organisation and the alert label, so the list only ever holds issues this
   receiver created (or that a person tagged with the alert label)
 - new issues always carry the alert label plus any extra labels
 - issues returned by the search API are partial records; their repository
   is derived from ``repository_url`` (``.../repos/<owner>/<repo>``)
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import replace
from typing import Any
from urllib.parse import urlparse

from .errors import TrackerError
from .github_rest import GitHubRestClient
from .logging import get_logger
from .models import TrackedIssue

DEFAULT_ALERT_LABEL = "alert:boom:"

_REPO_PATH_PARTS = 4  # "", "repos", owner, repo


def repository_from_url(repository_url: str | None) -> str:
    """Return ``owner/repo`` from an API repository URL, or "" when invalid."""
    if not repository_url:
        return ""
    parts = urlparse(repository_url).path.rstrip("/").split("/")
    # GitHub Enterprise serves the API below /api/v3
    if len(parts) > _REPO_PATH_PARTS and "repos" in parts:
        parts = [""] + parts[parts.index("repos"):]
    if len(parts) != _REPO_PATH_PARTS or parts[1] != "repos" or not parts[2] or not parts[3]:
        return ""
    return f"{parts[2]}/{parts[3]}"


def issue_from_api(entry: dict[str, Any]) -> TrackedIssue:
    labels: set[str] = set()
    for lbl in entry.get("labels") or []:
        if isinstance(lbl, dict):
            name = lbl.get("name")
            if isinstance(name, str):
                labels.add(name)
        elif isinstance(lbl, str):
            labels.add(lbl)
    number = entry.get("number")
    issue_id = entry.get("id")
    return TrackedIssue(
        number=number if isinstance(number, int) else 0,
        title=str(entry.get("title") or ""),
        body=str(entry.get("body") or ""),
        labels=frozenset(labels),
        is_open=entry.get("state", "open") == "open",
        repository=repository_from_url(entry.get("repository_url")),
        html_url=str(entry.get("html_url") or ""),
        issue_id=issue_id if isinstance(issue_id, int) else None,
    )


class GitHubIssueTracker:
    """Issue operations against GitHub for one organisation."""

    def __init__(self, client: GitHubRestClient, alert_label: str = DEFAULT_ALERT_LABEL) -> None:
        self.client = client
        self.alert_label = alert_label
        self.logger = get_logger()

    @property
    def search_query(self) -> str:
        return f'is:issue in:title is:open org:{self.client.org} label:"{self.alert_label}"'

    def list_open_issues(self) -> list[TrackedIssue]:
        # Closed issues only ever grow in number; restricting to open keeps
        # the scan proportional to active alerts.
        with self.logger.timed_operation("list_open_issues", org=self.client.org):
            entries = self.client.search_issues(self.search_query)
        return [issue_from_api(entry) for entry in entries]

    def create_issue(
        self, repo: str, title: str, body: str, extra_labels: Sequence[str] = ()
    ) -> TrackedIssue:
        labels = [self.alert_label]
        labels.extend(lbl for lbl in extra_labels if lbl and lbl not in labels)
        data = self.client.create_issue(repo=repo, title=title, body=body, labels=labels)
        issue = issue_from_api(data)
        if not issue.repository:
            issue = replace(issue, repository=self.client.repo_path(repo))
        return issue

    def label_issue(self, issue: TrackedIssue, label: str, add: bool) -> None:
        if not label:
            return
        repo = self._repository(issue)
        if add:
            self.client.add_labels(repo=repo, number=issue.number, labels=[label])
        elif not self.client.remove_label(repo=repo, number=issue.number, label=label):
            self.logger.debug("label already absent", label=label, issue_number=issue.number)

    def close_issue(self, issue: TrackedIssue) -> TrackedIssue:
        data = self.client.close_issue(repo=self._repository(issue), number=issue.number)
        return issue_from_api(data) if data else issue

    def assign_issue_to_project(self, issue: TrackedIssue, column_id: int) -> None:
        if issue.issue_id is None:
            raise TrackerError(f"issue #{issue.number} has no id; cannot add it to a project")
        self.client.create_project_card(column_id=column_id, issue_id=issue.issue_id)

    @staticmethod
    def _repository(issue: TrackedIssue) -> str:
        if not issue.repository:
            raise TrackerError(f"issue #{issue.number} has invalid repository_url value")
        return issue.repository


__all__ = [
    "DEFAULT_ALERT_LABEL",
    "GitHubIssueTracker",
    "issue_from_api",
    "repository_from_url",
]

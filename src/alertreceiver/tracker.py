"""Issue-tracker capability consumed by the reconciliation engine.

Backends: ``github_issues.GitHubIssueTracker`` (live GitHub) and
``local.InMemoryTracker`` (local/demo operation). The engine depends only on
this protocol.

All methods raise ``errors.TrackerError`` on failure. Labelling is idempotent
by contract: adding a label already present succeeds and removing a label
that is not present is not an error.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

from .models import TrackedIssue


class IssueLister(Protocol):
    def list_open_issues(self) -> list[TrackedIssue]: ...


class IssueTracker(IssueLister, Protocol):
    def create_issue(
        self, repo: str, title: str, body: str, extra_labels: Sequence[str] = ()
    ) -> TrackedIssue: ...

    def label_issue(self, issue: TrackedIssue, label: str, add: bool) -> None: ...

    def close_issue(self, issue: TrackedIssue) -> TrackedIssue: ...

    def assign_issue_to_project(self, issue: TrackedIssue, column_id: int) -> None: ...


__all__ = ["IssueLister", "IssueTracker"]

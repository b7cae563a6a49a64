"""In-memory issue tracker for local and demo operation (``--enable-inmemory``).

Issues are keyed by title, so creating a second issue with the same title
replaces the first. Closing removes the issue from the store.
"""

from __future__ import annotations

import threading
from collections.abc import Sequence
from dataclasses import replace

from .errors import TrackerError
from .models import TrackedIssue

_FNV32_OFFSET = 0x811C9DC5
_FNV32_PRIME = 0x01000193


def generate_id(text: str) -> int:
    """FNV-1a (32 bit) hash of ``text``, used as a stable fake issue id."""
    h = _FNV32_OFFSET
    for byte in text.encode("utf-8"):
        h ^= byte
        h = (h * _FNV32_PRIME) & 0xFFFFFFFF
    return h


class InMemoryTracker:
    def __init__(self) -> None:
        self._issues: dict[str, TrackedIssue] = {}
        self._projects: dict[int, list[int]] = {}
        self._next_number = 1
        self._lock = threading.Lock()

    def list_open_issues(self) -> list[TrackedIssue]:
        with self._lock:
            return list(self._issues.values())

    def create_issue(
        self, repo: str, title: str, body: str, extra_labels: Sequence[str] = ()
    ) -> TrackedIssue:
        with self._lock:
            issue = TrackedIssue(
                number=self._next_number,
                title=title,
                body=body,
                labels=frozenset(lbl for lbl in extra_labels if lbl),
                repository=repo,
                issue_id=generate_id(title),
            )
            self._next_number += 1
            self._issues.pop(title, None)
            self._issues[title] = issue
            return issue

    def label_issue(self, issue: TrackedIssue, label: str, add: bool) -> None:
        if not label:
            return
        with self._lock:
            current = self._issues.get(issue.title)
            if current is None:
                raise TrackerError(f"unknown issue: {issue.title}")
            labels = current.labels | {label} if add else current.labels - {label}
            self._issues[issue.title] = replace(current, labels=labels)

    def close_issue(self, issue: TrackedIssue) -> TrackedIssue:
        with self._lock:
            current = self._issues.pop(issue.title, None)
        if current is None:
            raise TrackerError(f"unknown issue: {issue.title}")
        return replace(current, is_open=False)

    def assign_issue_to_project(self, issue: TrackedIssue, column_id: int) -> None:
        with self._lock:
            self._projects.setdefault(column_id, []).append(issue.number)

    def project_column(self, column_id: int) -> list[int]:
        with self._lock:
            return list(self._projects.get(column_id, []))


__all__ = ["InMemoryTracker", "generate_id"]

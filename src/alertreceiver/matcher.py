"""Find the open issue that corresponds to a rendered title.

The rendered title is the only correlation key: the tracker's search results
reliably carry titles, and nothing else about a notification is persisted.
Matching is exact (byte-for-byte, case-sensitive); no fuzzy matching.
"""

from __future__ import annotations

from collections.abc import Iterable

from .models import TrackedIssue


def find_match(title: str, open_issues: Iterable[TrackedIssue]) -> TrackedIssue | None:
    """Return the first issue, in tracker order, whose title equals ``title``."""
    for issue in open_issues:
        if issue.title == title:
            return issue
    return None


__all__ = ["find_match"]

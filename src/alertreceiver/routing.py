"""Where a new issue goes and what extras its alert asks for."""

from __future__ import annotations

from collections.abc import Mapping

from .logging import get_logger
from .models import GithubInfo, Notification

REPO_LABEL = "repo"
LABELS_ANNOTATION = "github-labels"
PROJECT_COLUMN_ANNOTATION = "github-project-column-id"


def resolve_repo(notification: Notification, default_repo: str) -> str:
    """Use the alert group's ``repo`` label when set, else ``default_repo``."""
    repo = notification.common_labels.get(REPO_LABEL, "")
    return repo or default_repo


def parse_github_info(annotations: Mapping[str, str] | None) -> GithubInfo:
    """Read the ``github-labels`` and ``github-project-column-id`` annotations.

    Labels are comma separated; blanks are dropped. A missing or non-integer
    column id means the issue is not assigned to a project.
    """
    info = GithubInfo()
    if not annotations:
        return info
    raw_labels = annotations.get(LABELS_ANNOTATION, "")
    info.labels = [part.strip() for part in raw_labels.split(",") if part.strip()]

    raw_column = annotations.get(PROJECT_COLUMN_ANNOTATION, "").strip()
    if raw_column:
        try:
            column = int(raw_column)
        except ValueError:
            get_logger().warning(
                "invalid project column id in annotations; issue will not be assigned to a project",
                column_id=raw_column,
            )
        else:
            info.project_column_id = column if column > 0 else None
    return info


__all__ = ["parse_github_info", "resolve_repo"]

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class AlertStatus(str, Enum):
    FIRING = "firing"
    RESOLVED = "resolved"

    def __str__(self) -> str:
        return self.value


class LabelSet(dict[str, str]):
    """Label or annotation map.

    Missing keys read as an empty string, so a template asking for a label the
    alert does not carry renders nothing instead of failing. Missing fields of
    the notification itself still fail (see ``templates``).
    """

    def __missing__(self, key: str) -> str:
        return ""


@dataclass(frozen=True)
class AlertEntry:
    status: str
    labels: LabelSet = field(default_factory=LabelSet)
    annotations: LabelSet = field(default_factory=LabelSet)
    starts_at: str = ""
    ends_at: str | None = None
    generator_url: str = ""
    fingerprint: str = ""


@dataclass(frozen=True)
class Notification:
    """One alert-group status update from Alertmanager.

    Built by ``decoder.decode_notification`` for a single request and
    discarded afterwards.
    """

    status: AlertStatus
    group_key: str
    external_url: str = ""
    receiver: str = ""
    version: str = ""
    group_labels: LabelSet = field(default_factory=LabelSet)
    common_labels: LabelSet = field(default_factory=LabelSet)
    common_annotations: LabelSet = field(default_factory=LabelSet)
    alerts: tuple[AlertEntry, ...] = ()
    truncated_alerts: int = 0

    @property
    def alert_name(self) -> str:
        return self.group_labels.get("alertname", "")

    @property
    def identifier(self) -> str:
        """Opaque id derived from the group key, embedded in issue bodies."""
        return "0x" + self.group_key.encode("utf-8").hex()

    @property
    def data(self) -> Notification:
        # Templates written against the webhook envelope use ``data.status``.
        return self


@dataclass(frozen=True)
class TrackedIssue:
    number: int
    title: str
    body: str = ""
    labels: frozenset[str] = frozenset()
    is_open: bool = True
    repository: str = ""  # owner/repo
    html_url: str = ""
    issue_id: int | None = None


@dataclass
class GithubInfo:
    """Extras requested by alert annotations for newly created issues."""

    labels: list[str] = field(default_factory=list)
    project_column_id: int | None = None


# ---- Reconciliation decisions ------------------------------------------


@dataclass(frozen=True)
class CreateIssue:
    repo: str
    title: str
    body: str
    labels: tuple[str, ...] = ()
    project_column_id: int | None = None


@dataclass(frozen=True)
class RemoveLabel:
    issue: TrackedIssue
    label: str


@dataclass(frozen=True)
class ApplyLabel:
    issue: TrackedIssue
    label: str


@dataclass(frozen=True)
class CloseIssue:
    issue: TrackedIssue


@dataclass(frozen=True)
class NoOp:
    reason: str = ""


Decision = CreateIssue | RemoveLabel | ApplyLabel | CloseIssue | NoOp


__all__ = [
    "AlertEntry",
    "AlertStatus",
    "ApplyLabel",
    "CloseIssue",
    "CreateIssue",
    "Decision",
    "GithubInfo",
    "LabelSet",
    "NoOp",
    "Notification",
    "RemoveLabel",
    "TrackedIssue",
]

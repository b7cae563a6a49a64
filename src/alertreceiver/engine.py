"""Reconciliation engine.

For every notification the engine compares the notification status with the
live list of open alert issues and issues the minimal tracker calls:

    status    match   decisions
    --------  ------  --------------------------------------------------
    firing    no      CreateIssue (+ best-effort project assignment)
    firing    yes     RemoveLabel(resolved label)   (no title/body update)
    resolved  yes     ApplyLabel(resolved label), CloseIssue if auto-close
    resolved  no      NoOp

Nothing is cached between requests: each reconciliation performs its own
list call. Alertmanager re-sends resolved notifications until its resolve
timeout elapses, so repeated resolves for an already closed issue are
expected and land in the NoOp row.

Failures of list/render/create/label/close propagate to the caller; nothing
is retried or compensated.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from opentelemetry import trace

from . import metrics
from .errors import TrackerError, classify_error
from .logging import get_logger
from .matcher import find_match
from .models import (
    AlertStatus,
    ApplyLabel,
    CloseIssue,
    CreateIssue,
    Decision,
    NoOp,
    Notification,
    RemoveLabel,
    TrackedIssue,
)
from .routing import parse_github_info, resolve_repo
from .templates import TemplateRenderer
from .tracker import IssueTracker

DEFAULT_RESOLVED_LABEL = "alert:resolved"

_tracer = trace.get_tracer(__name__)


@dataclass(frozen=True)
class EngineSettings:
    default_repo: str
    auto_close: bool = False
    resolved_label: str = DEFAULT_RESOLVED_LABEL
    extra_labels: tuple[str, ...] = field(default_factory=tuple)


class ReconciliationEngine:
    def __init__(
        self,
        tracker: IssueTracker,
        settings: EngineSettings,
        renderer: TemplateRenderer | None = None,
    ) -> None:
        self.tracker = tracker
        self.settings = settings
        self.renderer = renderer or TemplateRenderer()
        self.logger = get_logger()

    # ---- decisions ----------------------------------------------------
    def plan(
        self,
        notification: Notification,
        title: str,
        match: TrackedIssue | None,
    ) -> list[Decision]:
        """Decide the tracker operations for ``notification``.

        The body is rendered only when a new issue is needed.
        """
        label = self.settings.resolved_label
        if notification.status is AlertStatus.FIRING:
            if match is not None:
                return [RemoveLabel(issue=match, label=label)]
            first_annotations = notification.alerts[0].annotations if notification.alerts else None
            info = parse_github_info(first_annotations)
            labels = list(self.settings.extra_labels)
            labels.extend(lbl for lbl in info.labels if lbl not in labels)
            return [
                CreateIssue(
                    repo=resolve_repo(notification, self.settings.default_repo),
                    title=title,
                    body=self.renderer.render_body(notification),
                    labels=tuple(labels),
                    project_column_id=info.project_column_id,
                )
            ]
        if match is None:
            return [NoOp(reason="resolved alert has no open issue")]
        decisions: list[Decision] = [ApplyLabel(issue=match, label=label)]
        if self.settings.auto_close:
            decisions.append(CloseIssue(issue=match))
        return decisions

    # ---- execution ----------------------------------------------------
    def reconcile(self, notification: Notification) -> list[Decision]:
        """List open issues, decide, and apply the decisions in order."""
        with _tracer.start_as_current_span("alertreceiver.reconcile") as span:
            span.set_attribute("alertreceiver.group_key", notification.group_key)
            span.set_attribute("alertreceiver.status", notification.status.value)

            open_issues = self.tracker.list_open_issues()
            title = self.renderer.render_title(notification)
            match = find_match(title, open_issues)
            if match is not None:
                self.logger.info(
                    "found matching issue", title=title, issue_number=match.number,
                    group_key=notification.group_key,
                )

            metrics.RECEIVED_ALERTS.labels(notification.alert_name, notification.status.value).inc()

            decisions = self.plan(notification, title, match)
            for decision in decisions:
                self._apply(decision, notification)
            span.set_attribute("alertreceiver.decisions", len(decisions))
            self.logger.log_operation(
                "reconcile",
                group_key=notification.group_key,
                status=notification.status.value,
                decisions=[type(d).__name__ for d in decisions],
            )
            return decisions

    def _apply(self, decision: Decision, notification: Notification) -> None:
        group_key = notification.group_key
        if isinstance(decision, CreateIssue):
            issue = self.tracker.create_issue(
                decision.repo, decision.title, decision.body, list(decision.labels)
            )
            metrics.CREATED_ISSUES.labels(notification.alert_name).inc()
            self.logger.log_issue_action(
                "created", decision.title, issue.number, repo=decision.repo, group_key=group_key
            )
            if decision.project_column_id:
                self._assign_to_project(issue, decision.project_column_id, group_key)
        elif isinstance(decision, RemoveLabel):
            self.tracker.label_issue(decision.issue, decision.label, False)
            self.logger.log_issue_action(
                "refired", decision.issue.title, decision.issue.number, group_key=group_key
            )
        elif isinstance(decision, ApplyLabel):
            self.tracker.label_issue(decision.issue, decision.label, True)
            self.logger.log_issue_action(
                "resolved", decision.issue.title, decision.issue.number, group_key=group_key
            )
        elif isinstance(decision, CloseIssue):
            self.tracker.close_issue(decision.issue)
            self.logger.log_issue_action(
                "closed", decision.issue.title, decision.issue.number, group_key=group_key
            )
        elif isinstance(decision, NoOp):
            self.logger.debug(decision.reason, group_key=group_key)

    def _assign_to_project(self, issue: TrackedIssue, column_id: int, group_key: str) -> None:
        # Project assignment never fails the request.
        try:
            self.tracker.assign_issue_to_project(issue, column_id)
        except TrackerError as exc:
            info = classify_error(exc)
            self.logger.log_error(
                "failed to assign issue to project",
                error=info.message,
                category=info.category,
                issue_number=issue.number,
                column_id=column_id,
                group_key=group_key,
            )


__all__ = ["DEFAULT_RESOLVED_LABEL", "EngineSettings", "ReconciliationEngine"]

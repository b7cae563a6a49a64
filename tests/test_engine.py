from __future__ import annotations

from collections.abc import Sequence
from typing import Any

import pytest
from prometheus_client import REGISTRY

from alertreceiver.decoder import decode_notification
from alertreceiver.engine import EngineSettings, ReconciliationEngine
from alertreceiver.errors import TemplateError, TrackerError
from alertreceiver.models import (
    ApplyLabel,
    CloseIssue,
    CreateIssue,
    NoOp,
    RemoveLabel,
    TrackedIssue,
)
from alertreceiver.templates import TemplateRenderer, TemplateSet


class RecordingTracker:
    """Tracker double that records every call in order."""

    def __init__(self, issues: list[TrackedIssue] | None = None, fail_on: str | None = None):
        self.issues = list(issues or [])
        self.calls: list[tuple[str, Any]] = []
        self.fail_on = fail_on

    def _maybe_fail(self, name: str) -> None:
        if self.fail_on == name:
            raise TrackerError(f"{name} failed", status=502)

    def list_open_issues(self) -> list[TrackedIssue]:
        self.calls.append(("list", None))
        self._maybe_fail("list")
        return list(self.issues)

    def create_issue(
        self, repo: str, title: str, body: str, extra_labels: Sequence[str] = ()
    ) -> TrackedIssue:
        self.calls.append(("create", (repo, title, body, tuple(extra_labels))))
        self._maybe_fail("create")
        issue = TrackedIssue(number=len(self.issues) + 1, title=title, body=body, repository=repo)
        self.issues.append(issue)
        return issue

    def label_issue(self, issue: TrackedIssue, label: str, add: bool) -> None:
        self.calls.append(("label", (issue.number, label, add)))
        self._maybe_fail("label")

    def close_issue(self, issue: TrackedIssue) -> TrackedIssue:
        self.calls.append(("close", issue.number))
        self._maybe_fail("close")
        return issue

    def assign_issue_to_project(self, issue: TrackedIssue, column_id: int) -> None:
        self.calls.append(("project", (issue.number, column_id)))
        self._maybe_fail("project")

    def writes(self) -> list[tuple[str, Any]]:
        return [call for call in self.calls if call[0] != "list"]


def _engine(tracker: RecordingTracker, **settings: Any) -> ReconciliationEngine:
    return ReconciliationEngine(tracker, EngineSettings(default_repo="alerts", **settings))


def _sample(name: str, labels: dict[str, str]) -> float:
    return REGISTRY.get_sample_value(name, labels) or 0.0


def test_firing_without_match_creates_issue(firing_payload):
    tracker = RecordingTracker()
    n = decode_notification(firing_payload)

    decisions = _engine(tracker).reconcile(n)

    assert len(decisions) == 1
    assert isinstance(decisions[0], CreateIssue)
    assert tracker.calls[0] == ("list", None)
    name, (repo, title, body, labels) = tracker.calls[1]
    assert name == "create"
    assert repo == "alerts"
    assert title == "DiskRunningFull"
    assert body.startswith(f"<!-- ID: {n.identifier} -->\n")
    assert labels == ()
    assert len(tracker.writes()) == 1


def test_firing_with_match_removes_resolved_label(firing_payload):
    issue = TrackedIssue(number=7, title="DiskRunningFull", repository="acme/alerts")
    tracker = RecordingTracker([issue])

    decisions = _engine(tracker).reconcile(decode_notification(firing_payload))

    assert decisions == [RemoveLabel(issue=issue, label="alert:resolved")]
    assert tracker.writes() == [("label", (7, "alert:resolved", False))]


def test_resolved_with_match_applies_label(resolved_payload):
    issue = TrackedIssue(number=7, title="DiskRunningFull", repository="acme/alerts")
    tracker = RecordingTracker([issue])

    decisions = _engine(tracker).reconcile(decode_notification(resolved_payload))

    assert decisions == [ApplyLabel(issue=issue, label="alert:resolved")]
    assert tracker.writes() == [("label", (7, "alert:resolved", True))]


def test_resolved_with_auto_close_labels_then_closes(resolved_payload):
    issue = TrackedIssue(number=7, title="DiskRunningFull", repository="acme/alerts")
    tracker = RecordingTracker([issue])

    decisions = _engine(tracker, auto_close=True).reconcile(decode_notification(resolved_payload))

    assert decisions == [ApplyLabel(issue=issue, label="alert:resolved"), CloseIssue(issue=issue)]
    assert tracker.writes() == [("label", (7, "alert:resolved", True)), ("close", 7)]


def test_resolved_without_match_is_noop(resolved_payload):
    tracker = RecordingTracker([TrackedIssue(number=1, title="SomethingElse")])

    decisions = _engine(tracker, auto_close=True).reconcile(decode_notification(resolved_payload))

    assert len(decisions) == 1
    assert isinstance(decisions[0], NoOp)
    assert tracker.writes() == []


def test_custom_resolved_label(firing_payload):
    issue = TrackedIssue(number=3, title="DiskRunningFull", repository="acme/alerts")
    tracker = RecordingTracker([issue])

    _engine(tracker, resolved_label="fixed").reconcile(decode_notification(firing_payload))

    assert tracker.writes() == [("label", (3, "fixed", False))]


def test_repo_label_routes_new_issue(payload_factory):
    payload = payload_factory("firing")
    payload["commonLabels"]["repo"] = "storage"
    tracker = RecordingTracker()

    _engine(tracker).reconcile(decode_notification(payload))

    assert tracker.calls[1][1][0] == "storage"


def test_extra_and_annotation_labels_are_merged(firing_payload):
    firing_payload["alerts"][0]["annotations"]["github-labels"] = "team:storage, extra"
    tracker = RecordingTracker()

    _engine(tracker, extra_labels=("extra",)).reconcile(decode_notification(firing_payload))

    assert tracker.calls[1][1][3] == ("extra", "team:storage")


def test_project_column_annotation_assigns_issue(firing_payload):
    firing_payload["alerts"][0]["annotations"]["github-project-column-id"] = "99"
    tracker = RecordingTracker()

    decisions = _engine(tracker).reconcile(decode_notification(firing_payload))

    assert decisions[0].project_column_id == 99
    assert tracker.writes()[-1] == ("project", (1, 99))


def test_project_assignment_failure_does_not_fail_request(firing_payload):
    firing_payload["alerts"][0]["annotations"]["github-project-column-id"] = "99"
    tracker = RecordingTracker(fail_on="project")

    decisions = _engine(tracker).reconcile(decode_notification(firing_payload))

    assert isinstance(decisions[0], CreateIssue)
    assert [c[0] for c in tracker.writes()] == ["create", "project"]


def test_title_template_failure_makes_no_writes(firing_payload):
    tracker = RecordingTracker()
    renderer = TemplateRenderer(TemplateSet(title_template="{{ Foo }}"))
    engine = ReconciliationEngine(tracker, EngineSettings(default_repo="alerts"), renderer)

    with pytest.raises(TemplateError):
        engine.reconcile(decode_notification(firing_payload))

    assert tracker.writes() == []


def test_body_template_failure_makes_no_writes(firing_payload):
    tracker = RecordingTracker()
    renderer = TemplateRenderer(TemplateSet(body_template="{{ alerts[5].status }}"))
    engine = ReconciliationEngine(tracker, EngineSettings(default_repo="alerts"), renderer)

    with pytest.raises(TemplateError):
        engine.reconcile(decode_notification(firing_payload))

    assert tracker.writes() == []


@pytest.mark.parametrize("operation", ["list", "create"])
def test_tracker_failures_propagate(firing_payload, operation):
    tracker = RecordingTracker(fail_on=operation)
    with pytest.raises(TrackerError):
        _engine(tracker).reconcile(decode_notification(firing_payload))


def test_label_failure_propagates_and_skips_close(resolved_payload):
    issue = TrackedIssue(number=7, title="DiskRunningFull", repository="acme/alerts")
    tracker = RecordingTracker([issue], fail_on="label")

    with pytest.raises(TrackerError):
        _engine(tracker, auto_close=True).reconcile(decode_notification(resolved_payload))

    assert tracker.writes() == [("label", (7, "alert:resolved", True))]


def test_match_uses_first_issue_with_title(firing_payload):
    first = TrackedIssue(number=1, title="DiskRunningFull", repository="acme/a")
    second = TrackedIssue(number=2, title="DiskRunningFull", repository="acme/b")
    tracker = RecordingTracker([first, second])

    _engine(tracker).reconcile(decode_notification(firing_payload))

    assert tracker.writes() == [("label", (1, "alert:resolved", False))]


def test_counters_track_received_and_created(payload_factory):
    payload = payload_factory("firing", groupLabels={"alertname": "CounterCheck"})
    labels = {"alertname": "CounterCheck", "status": "firing"}
    received_before = _sample("githubreceiver_alerts_total", labels)
    created_before = _sample("githubreceiver_created_issues_total", {"alertname": "CounterCheck"})
    tracker = RecordingTracker()
    engine = _engine(tracker)

    engine.reconcile(decode_notification(payload))
    engine.reconcile(decode_notification(payload))

    assert _sample("githubreceiver_alerts_total", labels) == received_before + 2
    # The second firing matched the issue created by the first.
    assert (
        _sample("githubreceiver_created_issues_total", {"alertname": "CounterCheck"})
        == created_before + 1
    )


def test_plan_is_pure(firing_payload):
    tracker = RecordingTracker()
    engine = _engine(tracker)
    n = decode_notification(firing_payload)

    decisions = engine.plan(n, "DiskRunningFull", None)

    assert isinstance(decisions[0], CreateIssue)
    assert tracker.calls == []


def test_firing_with_no_alerts_still_creates_issue(payload_factory):
    tracker = RecordingTracker()
    n = decode_notification(payload_factory("firing", alerts=[]))

    decisions = _engine(tracker, extra_labels=("x",)).reconcile(n)

    assert isinstance(decisions[0], CreateIssue)
    assert decisions[0].project_column_id is None
    assert tracker.writes() == [
        (
            "create",
            (
                "alerts",
                "DiskRunningFull",
                f"<!-- ID: {n.identifier} -->\nAlertmanager URL: http://alertmanager:9093\n",
                ("x",),
            ),
        )
    ]


def test_close_failure_propagates_after_label(resolved_payload):
    issue = TrackedIssue(number=7, title="DiskRunningFull", repository="acme/alerts")
    tracker = RecordingTracker([issue], fail_on="close")

    with pytest.raises(TrackerError):
        _engine(tracker, auto_close=True).reconcile(decode_notification(resolved_payload))

    assert tracker.writes() == [("label", (7, "alert:resolved", True)), ("close", 7)]

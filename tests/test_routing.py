from __future__ import annotations

from alertreceiver.decoder import decode_notification
from alertreceiver.models import LabelSet
from alertreceiver.routing import parse_github_info, resolve_repo


def test_resolve_repo_defaults(firing_payload):
    n = decode_notification(firing_payload)
    assert resolve_repo(n, "alerts") == "alerts"


def test_resolve_repo_uses_common_repo_label(firing_payload):
    firing_payload["commonLabels"]["repo"] = "storage"
    n = decode_notification(firing_payload)
    assert resolve_repo(n, "alerts") == "storage"


def test_resolve_repo_ignores_empty_label(firing_payload):
    firing_payload["commonLabels"]["repo"] = ""
    n = decode_notification(firing_payload)
    assert resolve_repo(n, "alerts") == "alerts"


def test_parse_github_info_labels_and_column():
    info = parse_github_info(
        LabelSet({"github-labels": " team:storage, ,sev:1 ", "github-project-column-id": "42"})
    )
    assert info.labels == ["team:storage", "sev:1"]
    assert info.project_column_id == 42


def test_parse_github_info_without_annotations():
    info = parse_github_info(None)
    assert info.labels == []
    assert info.project_column_id is None


def test_parse_github_info_invalid_column_is_ignored():
    assert parse_github_info({"github-project-column-id": "abc"}).project_column_id is None
    assert parse_github_info({"github-project-column-id": "0"}).project_column_id is None
    assert parse_github_info({"github-project-column-id": "-3"}).project_column_id is None

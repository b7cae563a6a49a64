from __future__ import annotations

import json

import pytest

from alertreceiver.decoder import decode_notification
from alertreceiver.errors import DecodeError
from alertreceiver.models import AlertStatus


def test_decode_full_payload(firing_payload):
    n = decode_notification(json.dumps(firing_payload).encode())

    assert n.status is AlertStatus.FIRING
    assert n.group_key == '{}:{alertname="DiskRunningFull"}'
    assert n.external_url == "http://alertmanager:9093"
    assert n.receiver == "github"
    assert n.version == "4"
    assert n.group_labels["alertname"] == "DiskRunningFull"
    assert n.common_labels["severity"] == "page"
    assert len(n.alerts) == 1
    alert = n.alerts[0]
    assert alert.labels["instance"] == "host-1"
    assert alert.annotations["summary"] == "disk is full"
    assert alert.starts_at == "2024-01-01T00:00:00Z"
    assert alert.generator_url == "http://prometheus:9090/graph"
    assert alert.fingerprint == "abc123"


def test_decode_accepts_mapping_and_text(resolved_payload):
    assert decode_notification(resolved_payload).status is AlertStatus.RESOLVED
    assert decode_notification(json.dumps(resolved_payload)).status is AlertStatus.RESOLVED


def test_unknown_keys_are_ignored(firing_payload):
    firing_payload["somethingNew"] = {"nested": True}
    assert decode_notification(firing_payload).alert_name == "DiskRunningFull"


def test_missing_optional_sections_default_empty():
    n = decode_notification(b'{"status": "firing", "groupKey": "k"}')
    assert n.alerts == ()
    assert n.group_labels == {}
    assert n.group_labels["alertname"] == ""
    assert n.truncated_alerts == 0


def test_identifier_is_hex_of_group_key():
    n = decode_notification({"status": "firing", "groupKey": "abc"})
    assert n.identifier == "0x616263"


@pytest.mark.parametrize(
    "raw",
    [
        b"not json",
        b"[1, 2]",
        b'"firing"',
        b"{}",
        b'{"status": "pending"}',
        b'{"status": 1}',
        b'{"status": "firing", "alerts": {}}',
        b'{"status": "firing", "groupLabels": {"a": 1}}',
        b'{"status": "firing", "groupKey": 7}',
        b'{"status": "firing", "truncatedAlerts": "3"}',
        b'{"status": "firing", "alerts": ["x"]}',
        b"\xff\xfe",
    ],
)
def test_malformed_payloads_raise_decode_error(raw):
    with pytest.raises(DecodeError):
        decode_notification(raw)


def test_deeply_nested_json_is_a_decode_error():
    depth = 100_000
    with pytest.raises(DecodeError):
        decode_notification("[" * depth + "]" * depth)

"""Decode Alertmanager webhook payloads into ``Notification`` values.

Payload shape (webhook version 4)::

    {
      "version": "4",
      "groupKey": "{}:{alertname=\\"DiskRunningFull\\"}",
      "truncatedAlerts": 0,
      "status": "firing",
      "receiver": "github",
      "groupLabels": {"alertname": "DiskRunningFull"},
      "commonLabels": {...},
      "commonAnnotations": {...},
      "externalURL": "http://alertmanager:9093",
      "alerts": [
        {"status": "firing", "labels": {...}, "annotations": {...},
         "startsAt": "...", "endsAt": "...", "generatorURL": "...",
         "fingerprint": "..."}
      ]
    }

Unknown keys are ignored; known keys with the wrong type are rejected.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any

from .errors import DecodeError
from .models import AlertEntry, AlertStatus, LabelSet, Notification


def _label_set(raw: Any, where: str) -> LabelSet:
    if raw is None:
        return LabelSet()
    if not isinstance(raw, Mapping):
        raise DecodeError(f"{where} must be an object, got {type(raw).__name__}")
    out = LabelSet()
    for key, value in raw.items():
        if not isinstance(key, str) or not isinstance(value, str):
            raise DecodeError(f"{where} must map strings to strings (key {key!r})")
        out[key] = value
    return out


def _string(raw: Any, where: str, default: str = "") -> str:
    if raw is None:
        return default
    if not isinstance(raw, str):
        raise DecodeError(f"{where} must be a string, got {type(raw).__name__}")
    return raw


def _status(raw: Any) -> AlertStatus:
    if not isinstance(raw, str):
        raise DecodeError("status is required")
    try:
        return AlertStatus(raw)
    except ValueError as exc:
        raise DecodeError(f"unsupported status {raw!r}") from exc


def _alert(raw: Any, index: int) -> AlertEntry:
    if not isinstance(raw, Mapping):
        raise DecodeError(f"alerts[{index}] must be an object")
    where = f"alerts[{index}]"
    ends_at = raw.get("endsAt")
    return AlertEntry(
        status=_string(raw.get("status"), f"{where}.status"),
        labels=_label_set(raw.get("labels"), f"{where}.labels"),
        annotations=_label_set(raw.get("annotations"), f"{where}.annotations"),
        starts_at=_string(raw.get("startsAt"), f"{where}.startsAt"),
        ends_at=_string(ends_at, f"{where}.endsAt") if ends_at is not None else None,
        generator_url=_string(raw.get("generatorURL"), f"{where}.generatorURL"),
        fingerprint=_string(raw.get("fingerprint"), f"{where}.fingerprint"),
    )


def notification_from_dict(payload: Mapping[str, Any]) -> Notification:
    raw_alerts = payload.get("alerts")
    if raw_alerts is None:
        raw_alerts = []
    if not isinstance(raw_alerts, list):
        raise DecodeError("alerts must be a list")
    truncated = payload.get("truncatedAlerts", 0)
    if truncated is None:
        truncated = 0
    if isinstance(truncated, bool) or not isinstance(truncated, int):
        raise DecodeError("truncatedAlerts must be an integer")
    return Notification(
        status=_status(payload.get("status")),
        group_key=_string(payload.get("groupKey"), "groupKey"),
        external_url=_string(payload.get("externalURL"), "externalURL"),
        receiver=_string(payload.get("receiver"), "receiver"),
        version=_string(payload.get("version"), "version"),
        group_labels=_label_set(payload.get("groupLabels"), "groupLabels"),
        common_labels=_label_set(payload.get("commonLabels"), "commonLabels"),
        common_annotations=_label_set(payload.get("commonAnnotations"), "commonAnnotations"),
        alerts=tuple(_alert(a, i) for i, a in enumerate(raw_alerts)),
        truncated_alerts=truncated,
    )


def decode_notification(raw: bytes | str | Mapping[str, Any]) -> Notification:
    """Decode a webhook body (or an already parsed mapping).

    Raises ``DecodeError`` for invalid JSON or a payload that does not have the
    notification shape.
    """
    if isinstance(raw, Mapping):
        return notification_from_dict(raw)
    try:
        payload = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError, RecursionError) as exc:
        raise DecodeError(f"invalid JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise DecodeError("notification must be a JSON object")
    return notification_from_dict(payload)


__all__ = ["decode_notification", "notification_from_dict"]

"""Pytest configuration for alert-issue-receiver tests.

Ensures the in-repo `src` directory is on `sys.path` so the package can be
imported without an editable install (`pip install -e .`).
"""

from __future__ import annotations

import sys
import time
from pathlib import Path
from typing import Any

import pytest

_TEST_START_TIMES: dict[str, float] = {}
_TEST_DURATIONS: list[tuple[str, float]] = []

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))


def make_payload(status: str = "firing", **overrides: Any) -> dict[str, Any]:
    """A minimal Alertmanager webhook body for ``DiskRunningFull``."""
    payload: dict[str, Any] = {
        "version": "4",
        "groupKey": '{}:{alertname="DiskRunningFull"}',
        "truncatedAlerts": 0,
        "status": status,
        "receiver": "github",
        "groupLabels": {"alertname": "DiskRunningFull"},
        "commonLabels": {"alertname": "DiskRunningFull", "severity": "page"},
        "commonAnnotations": {},
        "externalURL": "http://alertmanager:9093",
        "alerts": [
            {
                "status": status,
                "labels": {"alertname": "DiskRunningFull", "instance": "host-1"},
                "annotations": {"summary": "disk is full"},
                "startsAt": "2024-01-01T00:00:00Z",
                "endsAt": "0001-01-01T00:00:00Z",
                "generatorURL": "http://prometheus:9090/graph",
                "fingerprint": "abc123",
            }
        ],
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def firing_payload() -> dict[str, Any]:
    return make_payload("firing")


@pytest.fixture
def resolved_payload() -> dict[str, Any]:
    return make_payload("resolved")


# --- Timing utilities to help identify slow/stalling tests ---


def pytest_runtest_setup(item):  # type: ignore
    _TEST_START_TIMES[item.nodeid] = time.perf_counter()


def pytest_runtest_teardown(item):  # type: ignore
    start = _TEST_START_TIMES.pop(item.nodeid, None)
    if start is not None:
        _TEST_DURATIONS.append((item.nodeid, time.perf_counter() - start))


def pytest_sessionfinish(session, exitstatus):  # type: ignore
    if not _TEST_DURATIONS:
        return
    slow = sorted(_TEST_DURATIONS, key=lambda x: x[1], reverse=True)[:10]
    print("\n=== Slowest Tests (top 10) ===")
    for nodeid, secs in slow:
        print(f"{secs:0.3f}s  {nodeid}")


@pytest.fixture
def payload_factory():
    return make_payload

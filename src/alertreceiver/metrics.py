"""Prometheus collectors shared by the receiver.

prometheus_client metrics are safe under concurrent increments, which is the
only state the receiver shares across in-flight requests.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

RECEIVED_ALERTS = Counter(
    "githubreceiver_alerts_total",
    "Number of incoming alerts from AlertManager.",
    ["alertname", "status"],
)

# Only firing notifications create issues, so status is not a label here.
CREATED_ISSUES = Counter(
    "githubreceiver_created_issues_total",
    "Number of firing issues for which an alert has been created.",
    ["alertname"],
)

RECEIVER_DURATION = Histogram(
    "githubreceiver_duration_seconds",
    "A histogram of request latencies to the receiver handler.",
    ["code"],
)

TRACKER_OPERATIONS = Counter(
    "githubreceiver_tracker_operations_total",
    "Number of calls made to the issue tracker API.",
    ["operation"],
)

RATE_LIMIT = Gauge(
    "githubreceiver_rate_limit",
    "Maximum number of tracker API requests allowed per hour.",
    ["api"],
)

RATE_REMAINING = Gauge(
    "githubreceiver_rate_remaining",
    "Number of tracker API requests remaining in the current window.",
    ["api"],
)

RATE_RESET = Gauge(
    "githubreceiver_rate_reset_timestamp_seconds",
    "Unix time at which the current rate limit window resets.",
    ["api"],
)


__all__ = [
    "CREATED_ISSUES",
    "RATE_LIMIT",
    "RATE_REMAINING",
    "RATE_RESET",
    "RECEIVED_ALERTS",
    "RECEIVER_DURATION",
    "TRACKER_OPERATIONS",
]

"""alert-issue-receiver - track Alertmanager alerts as GitHub issues.

High-level public API:

from alertreceiver import (
    EngineSettings, InMemoryTracker, ReconciliationEngine, create_app, decode_notification,
)

engine = ReconciliationEngine(InMemoryTracker(), EngineSettings(default_repo="alerts"))
engine.reconcile(decode_notification(payload_bytes))

``create_app(engine)`` wraps an engine in the Flask webhook application; the
``alert-issue-receiver`` console script wires everything from flags,
environment and an optional YAML file.
"""

from __future__ import annotations

from .config import ReceiverConfig, load_config
from .decoder import decode_notification
from .engine import EngineSettings, ReconciliationEngine
from .errors import ConfigError, DecodeError, TemplateError, TrackerError
from .local import InMemoryTracker
from .models import AlertEntry, AlertStatus, Notification, TrackedIssue
from .server import create_app
from .templates import TemplateRenderer, TemplateSet

__version__ = "0.3.0"

__all__ = [
    "AlertEntry",
    "AlertStatus",
    "ConfigError",
    "DecodeError",
    "EngineSettings",
    "InMemoryTracker",
    "Notification",
    "ReceiverConfig",
    "ReconciliationEngine",
    "TemplateError",
    "TemplateRenderer",
    "TemplateSet",
    "TrackedIssue",
    "TrackerError",
    "create_app",
    "decode_notification",
    "load_config",
    "__version__",
]

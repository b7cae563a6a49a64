"""Error taxonomy & redaction.

Every per-request failure of the receiver is one of the classes below so the
HTTP adapter can map it to a status code without inspecting messages:

- ``DecodeError``   -> malformed webhook payload (400)
- ``TemplateError`` -> title/body template failed to render (500)
- ``TrackerError``  -> any issue-tracker call failed, rate limits included (500)
- ``ConfigError``   -> invalid configuration or template at startup (fatal)

Error text may carry request URLs or tokens from the tracker client, so
anything that is logged goes through ``redact`` first and nothing is ever
echoed back to the webhook caller.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

_SENSITIVE_PATTERNS: list[re.Pattern[str]] = [
    re.compile(r"ghp_[A-Za-z0-9]{20,40}"),  # GitHub classic tokens
    re.compile(r"gh[ous]_[A-Za-z0-9]{20,40}"),  # OAuth / app tokens
    re.compile(r"github_pat_\w{20,}"),  # GitHub fine-grained tokens
    re.compile(r"(?i)(authorization:\s*(?:bearer|token)\s+)\S+"),
]

_REDACTION_PLACEHOLDER = "<redacted>"


class ReceiverError(RuntimeError):
    """Base class for all receiver failures."""


class DecodeError(ReceiverError):
    """The webhook payload is not a valid Alertmanager notification."""


class TemplateError(ReceiverError):
    """A title or body template could not be rendered for a notification."""


class ConfigError(ReceiverError):
    """Configuration is incomplete or a template does not compile."""


class TrackerError(ReceiverError):
    """Raised when an issue-tracker operation fails."""

    def __init__(
        self,
        message: str,
        *,
        status: int | None = None,
        response_text: str | None = None,
    ):
        super().__init__(message)
        self.status = status
        self.response_text = response_text


class RateLimitError(TrackerError):
    """The tracker rejected (or would reject) a call because of rate limits."""

    def __init__(self, message: str, *, reset_at: float | None = None, status: int | None = None):
        super().__init__(message, status=status)
        self.reset_at = reset_at


@dataclass
class ErrorInfo:
    category: str
    message: str
    original_type: str
    transient: bool = False
    details: dict[str, Any] | None = None


def redact(text: str) -> str:
    """Redact sensitive tokens in arbitrary text."""
    if not text:
        return text
    redacted = text
    for pat in _SENSITIVE_PATTERNS:
        if pat.groups:
            redacted = pat.sub(lambda m: m.group(1) + _REDACTION_PLACEHOLDER, redacted)
        else:
            redacted = pat.sub(_REDACTION_PLACEHOLDER, redacted)
    return redacted


def classify_error(exc: BaseException) -> ErrorInfo:
    """Best-effort classification of an exception for logging.

    - ``RateLimitError`` or rate-limit wording -> 'github.rate_limit', transient
    - decode / template / config errors -> their own category
    - network-y keywords -> 'network', transient
    - fallback -> 'generic'
    """
    msg = str(exc) if exc else ""
    low = msg.lower()
    name = exc.__class__.__name__

    if isinstance(exc, RateLimitError) or "rate limit" in low or "secondary rate" in low:
        return ErrorInfo("github.rate_limit", redact(msg), name, transient=True)
    if isinstance(exc, DecodeError):
        return ErrorInfo("decode", redact(msg), name)
    if isinstance(exc, TemplateError):
        return ErrorInfo("template", redact(msg), name)
    if isinstance(exc, ConfigError):
        return ErrorInfo("config", redact(msg), name)
    if any(k in low for k in ("timeout", "timed out", "connection reset", "temporarily unavailable")):
        return ErrorInfo("network", redact(msg), name, transient=True)
    if isinstance(exc, TrackerError):
        status = exc.status
        transient = status is not None and status >= 500  # noqa: PLR2004
        return ErrorInfo("github", redact(msg), name, transient=transient, details={"status": status})
    return ErrorInfo("generic", redact(msg), name)


__all__ = [
    "ConfigError",
    "DecodeError",
    "ErrorInfo",
    "RateLimitError",
    "ReceiverError",
    "TemplateError",
    "TrackerError",
    "classify_error",
    "redact",
]

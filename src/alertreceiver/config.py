from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, cast

import yaml

from .engine import DEFAULT_RESOLVED_LABEL, EngineSettings
from .errors import ConfigError
from .github_issues import DEFAULT_ALERT_LABEL
from .github_rest import DEFAULT_API_URL, DEFAULT_TIMEOUT
from .templates import TemplateSet

DEFAULT_LISTEN_ADDRESS = ":9393"

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off", ""}


@dataclass
class ReceiverConfig:
    org: str = ""
    repo: str = ""
    token: str | None = None
    token_file: str | None = None
    alert_label: str = DEFAULT_ALERT_LABEL
    resolved_label: str = DEFAULT_RESOLVED_LABEL
    extra_labels: list[str] = field(default_factory=list)
    auto_close: bool = False
    in_memory: bool = False
    title_template_files: list[str] = field(default_factory=list)
    body_template_files: list[str] = field(default_factory=list)
    listen_address: str = DEFAULT_LISTEN_ADDRESS
    api_url: str = DEFAULT_API_URL
    request_timeout: float = DEFAULT_TIMEOUT
    # Logging configuration
    logging_json: bool = False
    logging_level: str = "INFO"
    # Tracing configuration (None disables exporter setup)
    telemetry_exporter: str | None = None
    telemetry_endpoint: str | None = None

    def resolved_token(self) -> str | None:
        """Token from ``token_file`` when given (takes precedence), else ``token``."""
        if self.token_file:
            try:
                value = Path(self.token_file).read_text(encoding="utf-8").strip()
            except OSError as exc:
                raise ConfigError(f"cannot read token file {self.token_file}: {exc}") from exc
            return value or None
        token = (self.token or "").strip()
        return token or None

    def validate(self) -> None:
        missing = [name for name in ("org", "repo") if not getattr(self, name)]
        if missing:
            raise ConfigError(f"missing required setting(s): {', '.join(missing)}")
        if not self.in_memory and not self.resolved_token():
            raise ConfigError("an auth token (authtoken or authtoken_file) is required")
        if self.request_timeout <= 0:
            raise ConfigError("request_timeout must be positive")

    def engine_settings(self) -> EngineSettings:
        return EngineSettings(
            default_repo=self.repo,
            auto_close=self.auto_close,
            resolved_label=self.resolved_label,
            extra_labels=tuple(self.extra_labels),
        )

    def template_set(self) -> TemplateSet:
        return TemplateSet.from_files(self.title_template_files, self.body_template_files)


def _resolve_env_var(value: Any) -> Any:
    """Resolve environment variable if value starts with $."""
    if isinstance(value, str) and value.startswith("$"):
        return os.getenv(value[1:], value)  # Fallback to original if not found
    return value


def _as_bool(value: Any, name: str) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise ConfigError(f"{name}: expected a boolean, got {value!r}")


def _as_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    return [str(v) for v in value]


def load_config(path: str | Path) -> ReceiverConfig:
    """Load a YAML configuration file.

    Layout::

        github:   {org, repo, authtoken, authtoken_file, api_url, timeout}
        receiver: {alert_label, resolved_label, extra_labels, auto_close, in_memory}
        templates: {title_files, body_files}
        server:   {listen_address}
        logging:  {json_enabled, level}
        telemetry: {exporter, endpoint}
    """
    p = Path(path)
    if not p.exists():
        raise ConfigError(f"Configuration file not found: {p}")
    try:
        raw = cast(dict[str, Any], yaml.safe_load(p.read_text(encoding="utf-8")) or {})
    except yaml.YAMLError as exc:
        raise ConfigError(f"invalid YAML in {p}: {exc}") from exc
    if not isinstance(raw, dict):
        raise ConfigError(f"{p}: top level must be a mapping")
    gh = cast(dict[str, Any], raw.get("github", {}) or {})
    receiver = cast(dict[str, Any], raw.get("receiver", {}) or {})
    tmpl = cast(dict[str, Any], raw.get("templates", {}) or {})
    server = cast(dict[str, Any], raw.get("server", {}) or {})
    logging_config = cast(dict[str, Any], raw.get("logging", {}) or {})
    telemetry = cast(dict[str, Any], raw.get("telemetry", {}) or {})

    def _relative(files: list[str]) -> list[str]:
        return [str(p.parent / f) if not Path(f).is_absolute() else f for f in files]

    try:
        timeout = float(gh.get("timeout", DEFAULT_TIMEOUT))
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"github.timeout: {exc}") from exc

    return ReceiverConfig(
        org=str(_resolve_env_var(gh.get("org")) or ""),
        repo=str(_resolve_env_var(gh.get("repo")) or ""),
        token=_resolve_env_var(gh.get("authtoken")),
        token_file=_resolve_env_var(gh.get("authtoken_file")),
        api_url=str(gh.get("api_url") or DEFAULT_API_URL),
        request_timeout=timeout,
        alert_label=str(receiver.get("alert_label", DEFAULT_ALERT_LABEL)),
        resolved_label=str(receiver.get("resolved_label", DEFAULT_RESOLVED_LABEL)),
        extra_labels=_as_list(receiver.get("extra_labels")),
        auto_close=_as_bool(receiver.get("auto_close", False), "receiver.auto_close"),
        in_memory=_as_bool(receiver.get("in_memory", False), "receiver.in_memory"),
        title_template_files=_relative(_as_list(tmpl.get("title_files"))),
        body_template_files=_relative(_as_list(tmpl.get("body_files"))),
        listen_address=str(server.get("listen_address", DEFAULT_LISTEN_ADDRESS)),
        logging_json=_as_bool(logging_config.get("json_enabled", False), "logging.json_enabled"),
        logging_level=str(logging_config.get("level", "INFO")),
        telemetry_exporter=telemetry.get("exporter"),
        telemetry_endpoint=telemetry.get("endpoint"),
    )


# Environment variable -> config field. Names follow the command-line flags
# (upper-cased, punctuation replaced by "_").
ENV_FIELDS: dict[str, str] = {
    "AUTHTOKEN": "token",
    "AUTHTOKEN_FILE": "token_file",
    "AUTHTOKENFILE": "token_file",
    "ORG": "org",
    "REPO": "repo",
    "ALERTLABEL": "alert_label",
    "RESOLVED_LABEL": "resolved_label",
    "LABEL": "extra_labels",
    "ENABLE_AUTO_CLOSE": "auto_close",
    "ENABLE_INMEMORY": "in_memory",
    "TITLE_TEMPLATE_FILES": "title_template_files",
    "BODY_TEMPLATE_FILES": "body_template_files",
    "WEBHOOK_LISTEN_ADDRESS": "listen_address",
    "GITHUB_API_URL": "api_url",
    "REQUEST_TIMEOUT": "request_timeout",
    "LOG_JSON": "logging_json",
    "LOG_LEVEL": "logging_level",
}


def apply_overrides(cfg: ReceiverConfig, values: Mapping[str, Any]) -> ReceiverConfig:
    """Set every field named in ``values`` whose value is not None."""
    known = {f.name for f in fields(cfg)}
    for name, value in values.items():
        if value is None:
            continue
        if name not in known:
            raise ConfigError(f"unknown setting {name!r}")
        current = getattr(cfg, name)
        if isinstance(current, bool):
            value = _as_bool(value, name)
        elif isinstance(current, list):
            value = _as_list(value)
        elif isinstance(current, float):
            try:
                value = float(value)
            except (TypeError, ValueError) as exc:
                raise ConfigError(f"{name}: {exc}") from exc
        setattr(cfg, name, value)
    return cfg


def apply_env(cfg: ReceiverConfig, environ: Mapping[str, str] | None = None) -> ReceiverConfig:
    env = os.environ if environ is None else environ
    return apply_overrides(cfg, {fname: env[var] for var, fname in ENV_FIELDS.items() if var in env})


__all__ = [
    "DEFAULT_LISTEN_ADDRESS",
    "ENV_FIELDS",
    "ConfigError",
    "ReceiverConfig",
    "apply_env",
    "apply_overrides",
    "load_config",
]

"""alert-issue-receiver CLI.

Subcommands:
  serve   -> run the Alertmanager webhook receiver
  render  -> render issue title/body for a notification JSON file (template preview)
  list    -> print the open alert issues the receiver would match against

Settings come from (lowest to highest precedence) an optional YAML file
(``--config``), environment variables named after the flags (``ORG``,
``REPO``, ``AUTHTOKEN``, ``ENABLE_AUTO_CLOSE`` ...; a ``.env`` file is loaded
first when present) and the command-line flags.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from .config import ReceiverConfig, apply_env, apply_overrides, load_config
from .decoder import decode_notification
from .engine import ReconciliationEngine
from .errors import ConfigError, DecodeError, ReceiverError, TemplateError
from .github_issues import GitHubIssueTracker
from .github_rest import GitHubRestClient
from .local import InMemoryTracker
from .logging import configure_logging, get_logger
from .observability import configure_telemetry
from .server import create_app, serve, split_listen_address
from .templates import TemplateRenderer
from .tracker import IssueTracker

USAGE_EPILOG = """\
example:
  alert-issue-receiver serve --org <name> --repo <repo> --authtoken <token>
"""


def _common_options() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--config", help="YAML configuration file")
    common.add_argument("--authtoken", dest="token", help="OAuth2 token for access to the GitHub API")
    common.add_argument(
        "--authtoken-file",
        "--authtokenFile",
        dest="token_file",
        help="File containing the GitHub token; takes precedence over --authtoken",
    )
    common.add_argument("--org", help="GitHub user or organization owning the repositories")
    common.add_argument(
        "--repo", help="Default repository for new issues when alerts carry no 'repo' label"
    )
    common.add_argument(
        "--alertlabel",
        dest="alert_label",
        help="Label applied to all alert issues; also used to find existing ones",
    )
    common.add_argument(
        "--resolved-label", dest="resolved_label", help="Label applied when an alert resolves"
    )
    common.add_argument(
        "--label",
        dest="extra_labels",
        action="append",
        help="Extra label added to new issues (repeatable)",
    )
    common.add_argument(
        "--enable-auto-close",
        dest="auto_close",
        action="store_true",
        default=None,
        help="Close open issues once their alert resolves",
    )
    common.add_argument(
        "--enable-inmemory",
        dest="in_memory",
        action="store_true",
        default=None,
        help="Keep issues in memory instead of using the GitHub API",
    )
    common.add_argument(
        "--title-template-files",
        dest="title_template_files",
        action="append",
        help="Title template file(s); the first one is the entry point",
    )
    common.add_argument(
        "--body-template-files",
        dest="body_template_files",
        action="append",
        help="Body template file(s); the first one is the entry point",
    )
    common.add_argument("--github-api-url", dest="api_url", help="GitHub (Enterprise) API base URL")
    common.add_argument("--log-json", dest="logging_json", action="store_true", default=None)
    common.add_argument("--log-level", dest="logging_level")
    common.add_argument(
        "--no-dotenv", action="store_true", help="Do not load a .env file from the working directory"
    )
    return common


_FLAG_FIELDS = (
    "token",
    "token_file",
    "org",
    "repo",
    "alert_label",
    "resolved_label",
    "extra_labels",
    "auto_close",
    "in_memory",
    "title_template_files",
    "body_template_files",
    "api_url",
    "logging_json",
    "logging_level",
    "listen_address",
)


def _build_parser() -> argparse.ArgumentParser:
    common = _common_options()
    parser = argparse.ArgumentParser(
        prog="alert-issue-receiver",
        description="Receive Alertmanager notifications and track them as GitHub issues.",
        epilog=USAGE_EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    sub = parser.add_subparsers(dest="cmd", required=True)

    ps = sub.add_parser("serve", parents=[common], help="Run the webhook receiver")
    ps.add_argument(
        "--webhook.listen-address",
        dest="listen_address",
        help="Listen address for Alertmanager webhook messages (default :9393)",
    )

    pr = sub.add_parser("render", parents=[common], help="Render issue title/body for a notification")
    pr.add_argument("payload", help="Notification JSON file ('-' for stdin)")

    sub.add_parser("list", parents=[common], help="List open alert issues")
    return parser


def prepare_config(args: argparse.Namespace) -> ReceiverConfig:
    if not getattr(args, "no_dotenv", False):
        load_dotenv(override=False)
    cfg = load_config(args.config) if getattr(args, "config", None) else ReceiverConfig()
    apply_env(cfg)
    apply_overrides(cfg, {name: getattr(args, name, None) for name in _FLAG_FIELDS})
    return cfg


def build_tracker(cfg: ReceiverConfig) -> IssueTracker:
    if cfg.in_memory:
        return InMemoryTracker()
    token = cfg.resolved_token()
    if not token:
        raise ConfigError("an auth token (authtoken or authtoken_file) is required")
    client = GitHubRestClient(
        token=token, org=cfg.org, base_url=cfg.api_url, timeout=cfg.request_timeout
    )
    return GitHubIssueTracker(client, alert_label=cfg.alert_label)


def build_engine(cfg: ReceiverConfig, tracker: IssueTracker) -> ReconciliationEngine:
    renderer = TemplateRenderer(cfg.template_set())
    return ReconciliationEngine(tracker, cfg.engine_settings(), renderer)


def _cmd_serve(cfg: ReceiverConfig) -> int:
    cfg.validate()
    if cfg.telemetry_exporter:
        configure_telemetry(
            service_name="alert-issue-receiver",
            exporter=cfg.telemetry_exporter,
            endpoint=cfg.telemetry_endpoint,
        )
    try:
        split_listen_address(cfg.listen_address)
    except ValueError as exc:
        raise ConfigError(str(exc)) from exc
    tracker = build_tracker(cfg)
    engine = build_engine(cfg, tracker)
    serve(create_app(engine), cfg.listen_address)
    return 0


def _read_payload(source: str) -> str:
    if source == "-":
        return sys.stdin.read()
    return Path(source).read_text(encoding="utf-8")


def _cmd_render(cfg: ReceiverConfig, args: argparse.Namespace) -> int:
    renderer = TemplateRenderer(cfg.template_set())
    try:
        notification = decode_notification(_read_payload(args.payload))
        title = renderer.render_title(notification)
        body = renderer.render_body(notification)
    except (OSError, DecodeError, TemplateError) as exc:
        print(f"[render] {exc}", file=sys.stderr)
        return 1
    print(f"title: {title}")
    print("body:")
    print(body)
    return 0


def _cmd_list(cfg: ReceiverConfig) -> int:
    cfg.validate()
    tracker = build_tracker(cfg)
    for issue in tracker.list_open_issues():
        print(f"#{issue.number} {issue.title} {issue.html_url}".rstrip())
    return 0


def _run(args: argparse.Namespace) -> int:
    cfg = prepare_config(args)
    configure_logging(json_logging=cfg.logging_json, level=cfg.logging_level)
    handlers: dict[str, Any] = {
        "serve": lambda: _cmd_serve(cfg),
        "render": lambda: _cmd_render(cfg, args),
        "list": lambda: _cmd_list(cfg),
    }
    return int(handlers[args.cmd]())


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    try:
        return _run(args)
    except ConfigError as exc:
        print(f"[config] {exc}", file=sys.stderr)
        parser.print_usage(sys.stderr)
        return 1
    except ReceiverError as exc:
        get_logger().log_error(f"{args.cmd} failed", error=str(exc))
        return 1


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())

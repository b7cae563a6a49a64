"""HTTP surface of the receiver (Flask).

Routes
------
POST /v1/receiver  Alertmanager webhook. 200 (empty) on success, 400 on a
                   malformed payload, 500 on any reconciliation failure.
GET  /             HTML list of open alert issues.
GET  /metrics      Prometheus exposition.

Error details are logged (redacted, with the group key) and never returned to
the caller; the tracker client's error text can carry request context that
does not belong in a webhook response.
"""

from __future__ import annotations

import time

from flask import Flask, Response, render_template_string, request
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from . import metrics
from .decoder import decode_notification
from .engine import ReconciliationEngine
from .errors import DecodeError, ReceiverError, classify_error
from .logging import get_logger
from .tracker import IssueLister

LIST_TEMPLATE = """\
<html><body>
<h2>Open Issues</h2>
<table>
{% for issue in issues %}
  <tr><td><a href="{{ issue.html_url }}">{{ issue.title }}</a></td></tr>
{% endfor %}
</table>
<br/>
Receiver metrics: <a href="/metrics">/metrics</a>
</body></html>
"""

_ALL_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]
_MAX_LOGGED_BODY = 2048


def create_app(engine: ReconciliationEngine, lister: IssueLister | None = None) -> Flask:
    """Build the Flask application around a configured engine.

    ``lister`` feeds the index page and defaults to the engine's tracker.
    """
    app = Flask(__name__)
    logger = get_logger()
    issue_lister: IssueLister = lister or engine.tracker

    @app.route("/v1/receiver", methods=["POST"], provide_automatic_options=False)
    def receive_alert() -> tuple[str, int]:
        start = time.perf_counter()
        code = _handle_notification(request.get_data())
        metrics.RECEIVER_DURATION.labels(str(code)).observe(time.perf_counter() - start)
        return "", code

    def _handle_notification(raw: bytes) -> int:
        try:
            notification = decode_notification(raw)
        except DecodeError as exc:
            logger.warning(
                f"Failed to parse webhook message from {request.remote_addr}: {exc}",
                payload=raw[:_MAX_LOGGED_BODY].decode("utf-8", "replace"),
            )
            return 400

        group_key = notification.group_key
        logger.info(f"Handling alert: {notification.identifier}", group_key=group_key)
        try:
            engine.reconcile(notification)
        except ReceiverError as exc:
            info = classify_error(exc)
            logger.log_error(
                f"Failed to handle alert: {notification.identifier}",
                error=info.message,
                category=info.category,
                transient=info.transient,
                group_key=group_key,
            )
            return 500
        logger.info(f"Completed alert: {notification.identifier}", group_key=group_key)
        return 200

    @app.route("/", methods=["GET"], provide_automatic_options=False)
    def list_issues() -> tuple[str, int]:
        # GET routes also answer HEAD.
        if request.method != "GET":
            return "Wrong method\n", 405
        try:
            issues = issue_lister.list_open_issues()
        except ReceiverError as exc:
            logger.log_error("Failed to list open issues", error=str(exc))
            return "", 500
        return render_template_string(LIST_TEMPLATE, issues=issues), 200

    @app.route("/metrics", methods=["GET"], provide_automatic_options=False)
    def metrics_endpoint() -> Response:
        return Response(generate_latest(), content_type=CONTENT_TYPE_LATEST)

    @app.errorhandler(500)
    def internal_error(exc: Exception) -> tuple[str, int]:
        original = getattr(exc, "original_exception", None) or exc
        logger.log_error("Unhandled error", error=str(original))
        return "", 500

    @app.route("/<path:unknown>", methods=_ALL_METHODS)
    def wrong_method(unknown: str) -> tuple[str, int]:
        return "Wrong method\n", 405

    return app


def split_listen_address(address: str) -> tuple[str, int]:
    """``host:port`` (host optional, as in ``:9393``) -> (host, port)."""
    host, sep, port = address.rpartition(":")
    if not sep:
        host, port = "", address
    try:
        port_number = int(port)
    except ValueError as exc:
        raise ValueError(f"invalid listen address {address!r}") from exc
    return host.strip("[]") or "0.0.0.0", port_number  # nosec B104 - listen on all interfaces by default


def serve(app: Flask, listen_address: str) -> None:  # pragma: no cover - blocking
    host, port = split_listen_address(listen_address)
    get_logger().info("serving webhook receiver", listen_address=f"{host}:{port}")
    app.run(host=host, port=port, threaded=True)


__all__ = ["LIST_TEMPLATE", "create_app", "serve", "split_listen_address"]

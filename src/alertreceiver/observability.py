"""Lightweight helpers for configuring OpenTelemetry exporters."""

from __future__ import annotations

import importlib
from functools import lru_cache
from typing import Any, Final

from .logging import get_logger

_telemetry_configured: Final[dict[str, bool]] = {"configured": False}


@lru_cache(maxsize=1)
def _load_opentelemetry_sdk() -> dict[str, Any] | None:
    try:  # pragma: no cover - the SDK and exporters are optional extras
        trace_module = importlib.import_module("opentelemetry.trace")
        resources_module = importlib.import_module("opentelemetry.sdk.resources")
        trace_sdk_module = importlib.import_module("opentelemetry.sdk.trace")
        export_module = importlib.import_module("opentelemetry.sdk.trace.export")
    except ImportError:
        return None

    return {
        "trace": trace_module,
        "TracerProvider": trace_sdk_module.TracerProvider,
        "Resource": resources_module.Resource,
        "BatchSpanProcessor": export_module.BatchSpanProcessor,
        "ConsoleSpanExporter": export_module.ConsoleSpanExporter,
    }


def _otlp_exporter(endpoint: str | None) -> Any:
    module = importlib.import_module("opentelemetry.exporter.otlp.proto.http.trace_exporter")
    exporter_cls = module.OTLPSpanExporter
    return exporter_cls(endpoint=endpoint) if endpoint else exporter_cls()


def configure_telemetry(
    *,
    service_name: str,
    exporter: str = "console",
    endpoint: str | None = None,
) -> bool:
    """Install an SDK tracer provider once per process.

    Returns False when the OpenTelemetry SDK is not installed; spans then go to
    the API's default no-op provider.
    """
    if _telemetry_configured["configured"]:
        return True

    runtime = _load_opentelemetry_sdk()
    if runtime is None:
        get_logger().debug("OpenTelemetry SDK not installed; spans are not exported")
        return False

    resource = runtime["Resource"].create({"service.name": service_name})
    provider = runtime["TracerProvider"](resource=resource)

    if exporter.lower() == "otlp":
        span_exporter = _otlp_exporter(endpoint)
    else:
        span_exporter = runtime["ConsoleSpanExporter"]()

    provider.add_span_processor(runtime["BatchSpanProcessor"](span_exporter))
    runtime["trace"].set_tracer_provider(provider)
    _telemetry_configured["configured"] = True
    return True


__all__ = ["configure_telemetry"]

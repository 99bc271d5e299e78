"""Observability helpers for logging and tracing.

Environment knobs:

- LOG_LEVEL (default: INFO) - root logger level
- ENABLE_CONSOLE_TRACING (default: 0) - emit OTel spans to console
- OTEL_TRACES_SAMPLER_RATIO (default: 1.0) - trace sampling ratio (0.0-1.0)
- OTEL_EXCLUDED_URLS - comma-separated URL patterns to exclude from tracing
"""

from __future__ import annotations

import logging
import os

from opentelemetry import trace
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from opentelemetry.sdk.trace.sampling import ParentBased, TraceIdRatioBased
from pythonjsonlogger import jsonlogger

from .config import settings


def _parse_bool(value: str | bool | None, default: bool) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return default
    return str(value).strip().lower() in ("1", "true", "yes", "on")


def setup_logging() -> None:
    """Configure structured JSON logging."""
    handler = logging.StreamHandler()
    handler.setFormatter(jsonlogger.JsonFormatter("%(levelname)s %(name)s %(message)s"))
    root = logging.getLogger()
    root.handlers = [handler]
    level_name = (os.getenv("LOG_LEVEL") or settings.LOG_LEVEL or "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)
    root.setLevel(level)
    # Google client libraries are chatty at INFO
    logging.getLogger("googleapiclient.discovery_cache").setLevel(logging.ERROR)
    access_logger = logging.getLogger("uvicorn.access")
    if _parse_bool(os.getenv("DISABLE_ACCESS_LOG"), level >= logging.WARNING):
        access_logger.handlers = []
        access_logger.propagate = False
        access_logger.disabled = True
    else:
        access_logger.setLevel(level)


def _sampler_ratio() -> float:
    try:
        ratio = float(os.getenv("OTEL_TRACES_SAMPLER_RATIO", "1.0"))
    except ValueError:
        return 1.0
    return min(max(ratio, 0.0), 1.0)


def setup_tracer(app) -> None:
    """Attach an OpenTelemetry tracer to the FastAPI app."""
    provider = TracerProvider(
        resource=Resource(attributes={"service.name": "contentflow-calendar-sync"}),
        sampler=ParentBased(TraceIdRatioBased(_sampler_ratio())),
    )
    if _parse_bool(os.getenv("ENABLE_CONSOLE_TRACING"), False):
        provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))
    trace.set_tracer_provider(provider)

    excluded = [s.strip() for s in os.getenv("OTEL_EXCLUDED_URLS", "").split(",") if s.strip()]
    excluded.append("/healthz")
    FastAPIInstrumentor.instrument_app(app, excluded_urls=",".join(dict.fromkeys(excluded)))

"""Logging and tracing setup for the supportdesk API."""

from __future__ import annotations

import logging
from logging.config import dictConfig

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from supportdesk.core.config import Settings

_provider: TracerProvider | None = None

# Libraries that are chatty at INFO
_QUIET_LOGGERS = ("sqlalchemy.engine", "asyncpg", "httpx")


def parse_otlp_headers(raw: str | None) -> dict[str, str]:
    """Parse ``key=value,key2=value2`` into a header mapping."""

    headers: dict[str, str] = {}
    for item in (raw or "").split(","):
        key, separator, value = item.partition("=")
        if separator and key.strip():
            headers[key.strip()] = value.strip()
    return headers


def configure_logging(settings: Settings) -> logging.Logger:
    """Install a single stream handler on the root logger and return the app logger."""

    level = logging.getLevelName(settings.log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {"default": {"format": settings.log_format}},
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "default",
                    "level": level,
                }
            },
            "loggers": {
                "supportdesk": {"level": level},
                **{name: {"level": max(level, logging.WARNING)} for name in _QUIET_LOGGERS},
            },
            "root": {"handlers": ["console"], "level": level},
        }
    )
    return logging.getLogger("supportdesk")


def init_tracer(settings: Settings) -> TracerProvider | None:
    """Export spans over OTLP/HTTP when tracing is enabled; otherwise do nothing."""

    global _provider

    if _provider is not None or not settings.otel_enabled:
        return None

    exporter = OTLPSpanExporter(
        endpoint=settings.otel_exporter_otlp_endpoint,
        headers=parse_otlp_headers(settings.otel_exporter_otlp_headers) or None,
    )
    provider = TracerProvider(
        resource=Resource.create(
            {"service.name": settings.otel_service_name, "deployment.environment": settings.environment}
        )
    )
    provider.add_span_processor(BatchSpanProcessor(exporter))
    trace.set_tracer_provider(provider)
    _provider = provider
    return provider


def shutdown_tracer(provider: TracerProvider | None) -> None:
    global _provider

    if provider is None:
        return
    provider.shutdown()
    _provider = None

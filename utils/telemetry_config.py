# -------------------------------------------------------------------------
# Copyright (c) Microsoft Corporation. All rights reserved.
# Licensed under the MIT License. See License in the project root for
# license information.
# --------------------------------------------------------------------------
"""
OpenTelemetry tracing configuration.

Installs an SDK TracerProvider for the session manager's ``handoffdesk.*``
spans. Without this setup the OpenTelemetry API stays a no-op, which is what
the test-suite relies on.

Configuration via environment variables:
- ENABLE_TRACING: Set to "true" to install the SDK tracer provider
- DISABLE_CLOUD_TELEMETRY: Set to "true" to disable all telemetry
- SERVICE_NAME / SERVICE_NAMESPACE / SERVICE_VERSION / ENVIRONMENT: resource attributes
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass
from typing import List, Optional, Pattern

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import ReadableSpan, SpanProcessor, TracerProvider
from opentelemetry.sdk.trace.export import (
    BatchSpanProcessor,
    ConsoleSpanExporter,
    SpanExporter,
)

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# CONFIGURATION
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass
class TelemetryConfig:
    """Centralized telemetry configuration loaded from environment."""

    enabled: bool = False
    service_name: str = "handoffdesk-api"
    service_namespace: str = "realtime-console"
    service_version: Optional[str] = None
    environment: Optional[str] = None

    @classmethod
    def from_env(cls) -> "TelemetryConfig":
        """Create configuration from environment variables."""
        def _bool_env(key: str, default: bool) -> bool:
            return os.getenv(key, str(default)).lower() not in ("false", "0", "no")

        disabled = _bool_env("DISABLE_CLOUD_TELEMETRY", False)
        return cls(
            enabled=_bool_env("ENABLE_TRACING", False) and not disabled,
            service_name=os.getenv("SERVICE_NAME", "handoffdesk-api"),
            service_namespace=os.getenv("SERVICE_NAMESPACE", "realtime-console"),
            service_version=os.getenv("SERVICE_VERSION") or os.getenv("APP_VERSION"),
            environment=os.getenv("ENVIRONMENT"),
        )


# ═══════════════════════════════════════════════════════════════════════════════
# SPAN FILTERING
# ═══════════════════════════════════════════════════════════════════════════════

# High-frequency realtime events that would drown out lifecycle spans
NOISY_SPAN_PATTERNS: List[Pattern[str]] = [
    re.compile(r".*response\.audio\.delta", re.IGNORECASE),
    re.compile(r".*response\.audio_transcript\.delta", re.IGNORECASE),
    re.compile(r".*input_audio_buffer\.append", re.IGNORECASE),
]

NOISY_LOGGERS = [
    "httpx", "httpcore", "openai",
    "uvicorn.access", "uvicorn.error",
    "opentelemetry.sdk.trace", "opentelemetry.exporter",
]


def _suppress_noisy_loggers(level: int = logging.WARNING) -> None:
    """Set noisy loggers to WARNING level to reduce noise."""
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(level)


class FilteringSpanProcessor(SpanProcessor):
    """SpanProcessor that drops spans whose name matches ``NOISY_SPAN_PATTERNS``."""

    def __init__(self, next_processor: SpanProcessor):
        self._next = next_processor

    def on_start(self, span, parent_context=None) -> None:
        self._next.on_start(span, parent_context)

    def on_end(self, span: ReadableSpan) -> None:
        for pattern in NOISY_SPAN_PATTERNS:
            if pattern.match(span.name):
                return
        self._next.on_end(span)

    def shutdown(self) -> None:
        self._next.shutdown()

    def force_flush(self, timeout_millis: int = 30000) -> bool:
        return self._next.force_flush(timeout_millis)


def _build_resource(config: TelemetryConfig) -> Resource:
    attrs = {
        "service.name": config.service_name,
        "service.namespace": config.service_namespace,
    }
    if config.environment:
        attrs["service.environment"] = config.environment
    if config.service_version:
        attrs["service.version"] = config.service_version
    return Resource(attributes=attrs)


# ═══════════════════════════════════════════════════════════════════════════════
# MODULE STATE
# ═══════════════════════════════════════════════════════════════════════════════

_tracing_configured = False


def is_tracing_configured() -> bool:
    """Return True if the SDK tracer provider was installed by this module."""
    return _tracing_configured


def setup_tracing(
    config: TelemetryConfig | None = None,
    exporter: SpanExporter | None = None,
) -> bool:
    """
    Install an SDK TracerProvider with a console (or supplied) exporter.

    Args:
        config: Optional pre-built configuration (defaults to env-based config)
        exporter: Span exporter to use instead of ``ConsoleSpanExporter``

    Returns:
        True if tracing is configured after the call, False when disabled.
    """
    global _tracing_configured

    if _tracing_configured:
        logger.debug("setup_tracing called again - already configured")
        return True

    config = config or TelemetryConfig.from_env()
    if not config.enabled:
        logger.info("Tracing disabled (ENABLE_TRACING unset or DISABLE_CLOUD_TELEMETRY=true)")
        return False

    _suppress_noisy_loggers()

    provider = TracerProvider(resource=_build_resource(config))
    provider.add_span_processor(
        FilteringSpanProcessor(BatchSpanProcessor(exporter or ConsoleSpanExporter()))
    )
    trace.set_tracer_provider(provider)
    _tracing_configured = True
    logger.info("Tracing configured | service=%s", config.service_name)
    return True


# Apply suppression when module is imported
_suppress_noisy_loggers()

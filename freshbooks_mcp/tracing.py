"""OpenTelemetry tracing setup for the FreshBooks MCP server.

Spans:
  tool.<name>          one per wrapped tool invocation
  freshbooks.request   one per HTTP call to FreshBooks

In production, export spans via OTLP to Jaeger/Tempo/etc.
In development, spans can be printed to stderr.
"""

from __future__ import annotations

import atexit
import os
import sys

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import (
    BatchSpanProcessor,
    ConsoleSpanExporter,
    SimpleSpanProcessor,
)

_tracer: trace.Tracer | None = None


def setup_tracing(
    service_name: str = "freshbooks-mcp",
    console: bool = False,
    otlp_endpoint: str | None = None,
) -> None:
    """Initialize OpenTelemetry tracing.

    Args:
        service_name: Service name for the resource attribute.
        console: If True, export spans to stderr (dev mode).
        otlp_endpoint: OTLP collector; falls back to OTEL_EXPORTER_OTLP_ENDPOINT.
                       Without either, spans are recorded but not exported.
    """
    global _tracer

    resource = Resource.create({"service.name": service_name})
    provider = TracerProvider(resource=resource)

    endpoint = otlp_endpoint or os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT")
    if console or os.getenv("OTEL_TRACES_CONSOLE", "").lower() in ("1", "true"):
        # stdout is the JSON-RPC stream
        provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter(out=sys.stderr)))
    elif endpoint:
        try:
            from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter

            provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=endpoint)))
        except ImportError:
            provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter(out=sys.stderr)))

    trace.set_tracer_provider(provider)
    _tracer = trace.get_tracer(service_name)

    atexit.register(provider.shutdown)


def get_tracer() -> trace.Tracer:
    """Return the configured tracer (or a no-op tracer if not initialized)."""
    return _tracer or trace.get_tracer("freshbooks-mcp")

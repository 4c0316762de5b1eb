import os

import structlog
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.trace.export import ConsoleSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

log = structlog.get_logger(__name__)


def init_tracer(app_name: str = "paypal-client"):
    """Initialize OpenTelemetry tracer with OTLP exporter"""
    provider = TracerProvider(resource=Resource.create({"service.name": app_name}))

    if os.getenv("DISABLE_TRACING", "").lower() in {"1", "true", "yes"}:
        otlp_exporter = ConsoleSpanExporter()
    else:
        try:
            otlp_exporter = OTLPSpanExporter()
        except Exception as exc:  # pragma: no cover – only hit when collector absent
            log.warning("OTLP exporter unavailable, tracing disabled", error=str(exc))
            otlp_exporter = ConsoleSpanExporter()

    provider.add_span_processor(BatchSpanProcessor(otlp_exporter))

    trace.set_tracer_provider(provider)
    return provider


def get_tracer(name: str):
    """Tracer bound to whatever provider is installed (no-op until init_tracer)."""
    return trace.get_tracer(name)

"""Tracing utilities built on OpenTelemetry."""

from typing import Optional, Dict, Any
import os

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter


def _build_otlp_exporter_kwargs(endpoint_override: Optional[str] = None) -> Dict[str, Any]:
    endpoint = (
        endpoint_override
        or os.getenv("OTEL_EXPORTER_OTLP_TRACES_ENDPOINT")
        or os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT")
        or "http://otel-collector:4317"
    )
    headers_env = os.getenv("OTEL_EXPORTER_OTLP_HEADERS")
    headers: Dict[str, str] = {}
    if headers_env:
        for segment in headers_env.split(","):
            if not segment or "=" not in segment:
                continue
            key, value = segment.split("=", 1)
            key = key.strip()
            if key:
                headers[key] = value.strip()

    exporter_kwargs: Dict[str, Any] = {"endpoint": endpoint}
    if headers:
        exporter_kwargs["headers"] = headers
    if endpoint.startswith("http://"):
        exporter_kwargs["insecure"] = True

    return exporter_kwargs


def build_tracer_provider(service_name: str, otel_exporter: Optional[str] = None,
                          enable_console: bool = False) -> TracerProvider:
    """
    Build an SDK tracer provider for a service.

    The provider is returned rather than installed globally; callers hand it to
    ``get_tracer`` and shut it down with the process.
    """
    resource = Resource.create({
        "service.name": service_name,
        "service.version": "1.0.0",
        "service.instance.id": os.getenv("HOSTNAME", "unknown"),
        "deployment.environment": os.getenv("ORDERS_ENV", "development")
    })
    provider = TracerProvider(resource=resource)

    if otel_exporter:
        otlp_exporter = OTLPSpanExporter(**_build_otlp_exporter_kwargs(otel_exporter))
        provider.add_span_processor(BatchSpanProcessor(otlp_exporter))

    if enable_console:
        provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))

    return provider


def get_tracer(name: str, provider: Optional[TracerProvider] = None) -> trace.Tracer:
    """Get a tracer, from ``provider`` when given, else the API default (no-op)."""
    if provider is not None:
        return provider.get_tracer(name)
    return trace.get_tracer(name)

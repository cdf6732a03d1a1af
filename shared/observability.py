"""
Observability context for the order ingestion service.

Logging, metrics and tracing handles are bundled into one object that is built
at process start and passed explicitly to the components that need it.
"""

from typing import Optional

from opentelemetry.sdk.trace import TracerProvider

from .logging import configure_logging, get_logger
from .metrics import MetricsCollector
from .tracing import build_tracer_provider, get_tracer


class Observability:
    """Logging, metrics and tracing handles shared by pipeline, cache and API."""

    def __init__(self, service_name: str,
                 metrics: Optional[MetricsCollector] = None,
                 tracer_provider: Optional[TracerProvider] = None):
        self.service_name = service_name
        self.metrics = metrics or MetricsCollector(service_name)
        self.tracer_provider = tracer_provider
        self.tracer = get_tracer(f"{service_name}.tracer", tracer_provider)
        self.logger = get_logger(f"{service_name}.observability")

    @classmethod
    def configure(cls, service_name: str, log_level: str = "info",
                  otel_exporter: Optional[str] = None, enable_tracing: bool = False,
                  enable_console: bool = False) -> "Observability":
        """Configure logging and, when enabled, tracing for a process."""
        configure_logging(service_name, log_level)

        provider = None
        if enable_tracing or enable_console:
            provider = build_tracer_provider(service_name, otel_exporter, enable_console)

        observability = cls(service_name, tracer_provider=provider)
        observability.logger.info(
            "Observability initialized",
            service=service_name,
            log_level=log_level,
            tracing_enabled=provider is not None
        )
        return observability

    def get_logger(self, component: str):
        return get_logger(f"{self.service_name}.{component}")

    def shutdown(self) -> None:
        """Flush and stop the tracer provider, if one was built."""
        if self.tracer_provider is not None:
            self.tracer_provider.shutdown()
            self.tracer_provider = None

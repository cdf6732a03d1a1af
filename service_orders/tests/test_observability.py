"""
Unit tests for the shared observability helpers used by the order service.
"""

import pytest

from opentelemetry.sdk.trace import TracerProvider

from shared.errors import OrderNotFoundError, ValidationError
from shared.metrics import MetricsCollector
from shared.observability import Observability
from shared.tracing import _build_otlp_exporter_kwargs, build_tracer_provider


class TestMetricsCollector:
    """Test cases for MetricsCollector."""

    @pytest.fixture
    def metrics(self):
        """Create collector with its own registry."""
        return MetricsCollector("orders-test")

    def test_collectors_are_isolated(self):
        """Test that two collectors never share samples."""
        first = MetricsCollector("orders-test")
        second = MetricsCollector("orders-test")

        first.record_dead_letter("invalid_json")

        assert first.sample("dead_letter_messages_total", reason="invalid_json") == 1
        assert second.sample("dead_letter_messages_total", reason="invalid_json") == 0

    def test_record_http_request(self, metrics):
        """Test HTTP request counters."""
        metrics.record_http_request("GET", "/order/{order_uid}", 200, 0.01)

        assert metrics.sample(
            "http_requests_total", method="GET", endpoint="/order/{order_uid}", status_code="200"
        ) == 1

    def test_time_operation(self, metrics):
        """Test processing duration histogram."""
        with metrics.time_operation("kafka", "process_message"):
            pass

        assert metrics.sample(
            "order_processing_seconds_count", source="kafka", operation="process_message"
        ) == 1

    def test_export(self, metrics):
        """Test text exposition."""
        metrics.record_order_processed("kafka", "success")

        assert b"orders_processed_total" in metrics.export()


class TestObservability:
    """Test cases for Observability."""

    def test_default_has_no_provider(self):
        """Test that tracing is off unless configured."""
        observability = Observability("orders-test")

        assert observability.tracer_provider is None
        with observability.tracer.start_as_current_span("noop"):
            pass

    def test_configure_with_console_tracing(self):
        """Test that console tracing builds an SDK provider."""
        observability = Observability.configure("orders-test", enable_console=True)

        assert isinstance(observability.tracer_provider, TracerProvider)
        observability.shutdown()
        assert observability.tracer_provider is None

    def test_build_tracer_provider(self):
        """Test provider construction without exporters."""
        provider = build_tracer_provider("orders-test")

        assert isinstance(provider, TracerProvider)
        provider.shutdown()

    def test_otlp_exporter_kwargs(self, monkeypatch):
        """Test OTLP endpoint and header parsing."""
        monkeypatch.setenv("OTEL_EXPORTER_OTLP_HEADERS", "api-key=secret, tenant = a")

        kwargs = _build_otlp_exporter_kwargs("http://collector:4317")

        assert kwargs["endpoint"] == "http://collector:4317"
        assert kwargs["insecure"] is True
        assert kwargs["headers"] == {"api-key": "secret", "tenant": "a"}


class TestErrors:
    """Test cases for error responses."""

    def test_status_codes(self):
        """Test HTTP status mapping on error types."""
        assert ValidationError().status_code == 400
        assert OrderNotFoundError("order-x").status_code == 404

    def test_to_response(self):
        """Test error response body."""
        response = OrderNotFoundError("order-x").to_response()

        assert response.code == "ORDER_NOT_FOUND"
        assert response.message == "Order order-x not found"
        assert response.trace_id is None

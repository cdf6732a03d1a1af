"""
Shared utilities for the order ingestion service.

This package aggregates the building blocks the service packages rely on:

- config: Service configuration via pydantic-settings
- logging: Structured logging with trace and order correlation
- metrics: Prometheus metrics collector with its own registry
- tracing: OpenTelemetry tracer provider setup
- observability: One handle bundling logger, metrics and tracer
- errors: Canonical error types and responses
- retry: Retry policy and backoff delays
- base_service: FastAPI service skeleton with health and metrics routes

Do not import from service packages into shared/.
"""

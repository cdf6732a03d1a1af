"""
Shared configuration management for the order ingestion service.
"""

from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="ORDERS_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore"
    )

    # Service
    service_name: str = "orders"
    host: str = "0.0.0.0"
    port: int = 8081

    # Environment
    env: str = "local"
    log_level: str = "info"

    # External services
    postgres_dsn: str = "postgres://localhost:5432/orders"
    kafka_bootstrap: str = "localhost:9092"

    # Observability
    enable_tracing: bool = False
    otel_exporter: Optional[str] = None
    enable_console_tracing: bool = False


class OrderServiceConfig(BaseConfig):
    """Settings consumed by the ingestion pipeline, cache and read API."""

    # Queue
    orders_topic: str = "orders"
    consumer_group: str = "order_service_group"
    dlq_topic: str = "orders_dlq"
    ingest_enabled: bool = True

    # Cache
    cache_ttl_seconds: float = Field(default=300.0, gt=0)
    cache_capacity: int = Field(default=1000, ge=1)
    cache_sweep_interval_seconds: float = Field(default=60.0, gt=0)
    cache_warm_limit: int = Field(default=1000, ge=0)

    # Retry
    max_retries: int = Field(default=3, ge=0)
    retry_base_delay_seconds: float = Field(default=2.0, ge=0)
    backoff_mode: Literal["fixed", "exponential"] = "exponential"
    fetch_error_delay_seconds: float = Field(default=1.0, ge=0)


def get_config(**overrides) -> OrderServiceConfig:
    """Load service configuration from the environment, applying overrides."""
    return OrderServiceConfig(**overrides)

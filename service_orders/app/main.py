"""
Order service for the order ingestion system.

Wires the Kafka ingestion pipeline, the order cache and the order store
together, and exposes a thin HTTP API for order lookup and submission.
"""

from typing import Dict, Optional

from fastapi import Request

from shared.base_service import BaseService
from shared.config import OrderServiceConfig, get_config
from shared.errors import PersistenceError
from shared.logging import set_order_context
from shared.observability import Observability
from shared.retry import RetryConfig

from .cache import OrderCache
from .kafka import KafkaDeadLetterProducer, KafkaOrderConsumer
from .models import Order
from .persistence import PostgreSQLOrderStore
from .pipeline import IngestionPipeline
from .ports import DeadLetterSink, MessageSource, OrderStore
from .validation import validate_order_for_api


async def _start(component) -> None:
    start = getattr(component, "start", None)
    if start is not None:
        await start()


async def _stop(component) -> None:
    stop = getattr(component, "stop", None)
    if stop is not None:
        await stop()


class OrderService(BaseService):
    """Order service implementation."""

    def __init__(
        self,
        config: Optional[OrderServiceConfig] = None,
        *,
        observability: Optional[Observability] = None,
        store: Optional[OrderStore] = None,
        cache: Optional[OrderCache] = None,
        source: Optional[MessageSource] = None,
        dead_letter: Optional[DeadLetterSink] = None,
    ):
        config = config or get_config()
        super().__init__(config, observability)

        self.store = store if store is not None else PostgreSQLOrderStore(
            config.postgres_dsn,
            observability=self.observability
        )
        self.cache = cache if cache is not None else OrderCache(
            ttl=config.cache_ttl_seconds,
            capacity=config.cache_capacity,
            sweep_interval=config.cache_sweep_interval_seconds,
            observability=self.observability
        )

        self.source = None
        self.dead_letter = None
        self.pipeline: Optional[IngestionPipeline] = None
        if config.ingest_enabled:
            self.source = source if source is not None else KafkaOrderConsumer(
                bootstrap_servers=config.kafka_bootstrap,
                topic=config.orders_topic,
                group_id=config.consumer_group,
                observability=self.observability
            )
            self.dead_letter = dead_letter if dead_letter is not None else KafkaDeadLetterProducer(
                bootstrap_servers=config.kafka_bootstrap,
                topic=config.dlq_topic,
                observability=self.observability
            )
            self.pipeline = IngestionPipeline(
                self.source,
                self.store,
                self.cache,
                self.dead_letter,
                RetryConfig(
                    max_retries=config.max_retries,
                    base_delay=config.retry_base_delay_seconds,
                    backoff_strategy=config.backoff_mode
                ),
                observability=self.observability,
                fetch_error_delay=config.fetch_error_delay_seconds
            )

        self._setup_order_routes()

    async def on_startup(self) -> None:
        self.logger.info("Order service starting", ingest_enabled=self.pipeline is not None)
        await _start(self.store)
        await self.warm_cache()
        await self.cache.start()

        if self.pipeline is not None:
            await _start(self.dead_letter)
            await _start(self.source)
            await self.pipeline.start()

    async def on_shutdown(self) -> None:
        self.logger.info("Order service stopping")
        if self.pipeline is not None:
            await self.pipeline.stop()
            await _stop(self.source)
            await _stop(self.dead_letter)

        await self.cache.stop()
        await _stop(self.store)

    async def warm_cache(self) -> int:
        """Load the most recent orders into the cache; returns how many were loaded."""
        limit = self.config.cache_warm_limit
        if limit <= 0:
            return 0

        self.logger.info("Restoring cache from the order store", limit=limit)
        try:
            orders = await self.store.get_recent(limit)
        except PersistenceError as e:
            self.logger.warning("Cache warm-up failed; starting cold", error=str(e))
            return 0

        # oldest first, so capacity eviction drops the oldest orders
        self.cache.bulk_set(dict(reversed(list(orders.items()))))
        self.logger.info("Cache warmed", count=len(orders))
        return len(orders)

    def _setup_order_routes(self):
        """Set up order routes."""

        @self.app.get("/order/{order_uid}", response_model=Order)
        async def get_order(order_uid: str):
            """Look up an order, cache first."""
            set_order_context(order_uid)
            order, found = self.cache.get(order_uid)
            if found:
                self.logger.debug("Order served from cache", order_uid=order_uid)
                return order

            order = await self.store.get_by_uid(order_uid)
            self.cache.set(order_uid, order)
            return order

        @self.app.post("/order", response_model=Order, status_code=201)
        async def create_order(request: Request):
            """Validate, persist and cache an externally submitted order."""
            order = Order.from_json(await request.body())
            set_order_context(order.order_uid)
            validate_order_for_api(order)

            await self.store.save(order)
            self.cache.set(order.order_uid, order)
            self.metrics.record_order_processed("api", "success")
            self.logger.info("Order accepted via API", order_uid=order.order_uid)
            return order

    async def _check_dependencies(self) -> Dict[str, str]:
        dependencies = {"cache": "ok" if self.cache.is_running() else "stopped"}
        if self.pipeline is not None:
            dependencies["ingestion"] = "ok" if self.pipeline.is_running() else "stopped"
        return dependencies


def create_app(config: Optional[OrderServiceConfig] = None, **components):
    """Create the FastAPI application."""
    return OrderService(config, **components).app


def main():
    OrderService().run()


if __name__ == "__main__":
    main()

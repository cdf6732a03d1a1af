"""
Order Service package for the order ingestion system.

This package consumes order messages from Kafka and makes them available
for low-latency lookup. It provides:

- app.main: HTTP API for order lookup and submission, plus health.
- app.pipeline: Fetch, decode, validate, persist, cache and commit loop.
- app.validation: Field, date and total rules for decoded orders.
- app.cache: Bounded in-memory TTL cache with a background sweeper.
- app.persistence: PostgreSQL and in-memory order stores.
- app.kafka: Order consumer and dead-letter producer.

Guidelines:
- Process one message at a time; commit only after success or dead-lettering.
- The store is the source of truth; the cache may be cold or stale.
- Keep every failure observable (metrics + logs).
"""

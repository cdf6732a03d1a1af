"""
Capability interfaces consumed by the ingestion pipeline and the read API.

Implementations satisfy these structurally; they do not inherit from them.
"""

from typing import Dict, Mapping, Optional, Protocol, Tuple, runtime_checkable

from .models import Order, QueueMessage


@runtime_checkable
class OrderStore(Protocol):
    """Durable, transactional order store."""

    async def save(self, order: Order) -> None:
        """Idempotent upsert of the order and all of its sub-entities, atomic as a unit.

        Raises PersistenceError when the store is unavailable or rejects the write.
        """

    async def get_by_uid(self, order_uid: str) -> Order:
        """Point lookup. Raises OrderNotFoundError when absent."""

    async def get_recent(self, limit: int) -> Dict[str, Order]:
        """Up to ``limit`` orders with the newest ``date_created``, keyed by UID."""


@runtime_checkable
class DeadLetterSink(Protocol):
    """Side channel for messages that could not be processed."""

    async def send(self, value: bytes, headers: Mapping[str, str],
                   key: Optional[bytes] = None) -> None:
        """Record a raw message. Raises DeadLetterDeliveryError on failure."""


@runtime_checkable
class MessageSource(Protocol):
    """Inbound queue."""

    async def fetch(self) -> QueueMessage:
        """Block until the next message is available."""

    async def commit(self, message: QueueMessage) -> None:
        """Mark ``message`` as processed for the consumer group."""


@runtime_checkable
class OrderCacheProtocol(Protocol):
    """Read-through cache keyed by order UID."""

    def get(self, order_uid: str) -> Tuple[Optional[Order], bool]:
        ...

    def set(self, order_uid: str, order: Order) -> None:
        ...

    def bulk_set(self, orders: Mapping[str, Order]) -> None:
        ...

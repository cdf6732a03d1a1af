"""
Ingestion pipeline: fetch → decode → validate → persist → cache → commit.

One message is processed at a time, retries included, before the next fetch.
An attempt succeeds only when decode, validation and persistence all succeed
in that attempt; the cache is then updated and the message committed. When
every attempt fails, the raw message goes to the dead-letter sink and is
committed as well, so a poison message is never redelivered to this group.
"""

import asyncio
from enum import Enum
from typing import Optional

from opentelemetry.trace import Status, StatusCode

from shared.errors import (
    DeadLetterDeliveryError,
    DecodeError,
    OrderServiceException,
    PersistenceError,
    ValidationError,
)
from shared.logging import set_order_context
from shared.observability import Observability
from shared.retry import RetryConfig
from ..models import Order, QueueMessage
from ..ports import DeadLetterSink, MessageSource, OrderCacheProtocol, OrderStore
from ..validation import validate_order

SOURCE = "kafka"

REASON_INVALID_JSON = "invalid_json"
REASON_VALIDATION_FAILED = "validation_failed"
REASON_PERSISTENCE_FAILED = "persistence_failed"
REASON_PROCESSING_FAILED = "processing_failed"


def error_reason(error: BaseException) -> str:
    """Dead-letter ``error_reason`` header value for a failed attempt."""
    if isinstance(error, DecodeError):
        return REASON_INVALID_JSON
    if isinstance(error, ValidationError):
        return REASON_VALIDATION_FAILED
    if isinstance(error, PersistenceError):
        return REASON_PERSISTENCE_FAILED
    return REASON_PROCESSING_FAILED


class ProcessingOutcome(str, Enum):
    """Terminal state of one message."""
    ACKNOWLEDGED = "acknowledged"
    DEAD_LETTERED = "dead_lettered"
    CANCELLED = "cancelled"


class IngestionPipeline:
    """Sequential order ingestion loop with bounded retry and dead-lettering."""

    def __init__(
        self,
        source: MessageSource,
        store: OrderStore,
        cache: OrderCacheProtocol,
        dead_letter: DeadLetterSink,
        retry_config: Optional[RetryConfig] = None,
        *,
        observability: Optional[Observability] = None,
        fetch_error_delay: float = 1.0,
    ):
        self.source = source
        self.store = store
        self.cache = cache
        self.dead_letter = dead_letter
        self.retry_config = retry_config or RetryConfig()
        self.fetch_error_delay = fetch_error_delay
        self.observability = observability or Observability("orders")
        self.logger = self.observability.get_logger("pipeline")
        self.metrics = self.observability.metrics
        self.tracer = self.observability.tracer

        self._stopping = asyncio.Event()
        self._task: Optional[asyncio.Task] = None

    async def start(self) -> None:
        """Run the ingestion loop as a background task."""
        if self._task is not None and not self._task.done():
            return
        self._stopping.clear()
        self._task = asyncio.create_task(self.run())
        self.logger.info(
            "Ingestion pipeline started",
            max_retries=self.retry_config.max_retries,
            base_delay=self.retry_config.base_delay,
            backoff=self.retry_config.backoff_strategy
        )

    async def stop(self) -> None:
        """Stop the loop; the in-flight message, if any, is left uncommitted."""
        self._stopping.set()
        task = self._task
        if task is None or task is asyncio.current_task():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        self._task = None
        self.logger.info("Ingestion pipeline stopped")

    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run(self) -> None:
        """Fetch and process messages until stopped or cancelled."""
        if self._task is None:
            self._task = asyncio.current_task()

        while not self._stopping.is_set():
            try:
                message = await self.source.fetch()
            except asyncio.CancelledError:
                self.logger.info("Ingestion loop cancelled while fetching")
                raise
            except Exception as e:
                self.logger.error("Queue fetch failed", error=str(e), error_type=type(e).__name__)
                await self._wait(self.fetch_error_delay)
                continue

            outcome = await self.process_message(message)
            if outcome is ProcessingOutcome.CANCELLED:
                break

        self.logger.info("Ingestion loop exited")

    async def process_message(self, message: QueueMessage) -> ProcessingOutcome:
        """Process one message through all of its attempts, then commit or dead-letter it."""
        set_order_context(None)
        log = self.logger.bind(topic=message.topic, partition=message.partition, offset=message.offset)
        retry = self.retry_config
        last_error: Optional[Exception] = None

        for attempt in range(retry.max_attempts):
            try:
                order = await self._attempt(message)
            except Exception as e:
                last_error = e
                log.warning(
                    "Order processing attempt failed",
                    attempt=attempt + 1,
                    max_attempts=retry.max_attempts,
                    reason=error_reason(e),
                    error=str(e),
                    exc_info=not isinstance(e, OrderServiceException)
                )
            else:
                await self._commit(message)
                log.info("Order processed", order_uid=order.order_uid, attempts=attempt + 1)
                return ProcessingOutcome.ACKNOWLEDGED

            if attempt == retry.max_retries:
                break

            delay = retry.delay_for(attempt)
            log.debug("Waiting before retry", attempt=attempt + 1, delay=delay)
            if not await self._wait(delay):
                log.info("Stop requested during retry backoff; message left uncommitted")
                return ProcessingOutcome.CANCELLED

        await self._send_to_dead_letter(message, last_error)
        await self._commit(message)
        return ProcessingOutcome.DEAD_LETTERED

    async def _attempt(self, message: QueueMessage) -> Order:
        """Single attempt: decode, validate, persist, then update the cache."""
        with self.tracer.start_as_current_span(
            "kafka.process_message",
            record_exception=False,
            set_status_on_exception=False
        ) as span, self.metrics.time_operation(SOURCE, "process_message"):
            span.set_attribute("messaging.kafka.offset", message.offset)
            try:
                order = Order.from_json(message.value)
                set_order_context(order.order_uid)
                span.set_attribute("order.uid", order.order_uid)

                validate_order(order)
                await self.store.save(order)
            except Exception as e:
                span.record_exception(e)
                span.set_status(Status(StatusCode.ERROR, error_reason(e)))
                self.metrics.record_order_processed(SOURCE, "error")
                raise

            self.cache.set(order.order_uid, order)
            span.set_status(Status(StatusCode.OK))
            self.metrics.record_order_processed(SOURCE, "success")
            return order

    async def _send_to_dead_letter(self, message: QueueMessage, error: Optional[Exception]) -> None:
        reason = error_reason(error) if error is not None else REASON_PROCESSING_FAILED
        try:
            await self.dead_letter.send(message.value, {"error_reason": reason}, key=message.key)
        except DeadLetterDeliveryError as e:
            self.logger.error(
                "Dead-letter delivery failed",
                topic=message.topic,
                partition=message.partition,
                offset=message.offset,
                reason=reason,
                error=str(e)
            )
            return

        self.metrics.record_dead_letter(reason)
        self.logger.error(
            "Message dead-lettered after exhausting retries",
            topic=message.topic,
            partition=message.partition,
            offset=message.offset,
            attempts=self.retry_config.max_attempts,
            reason=reason,
            error=str(error) if error is not None else None
        )

    async def _commit(self, message: QueueMessage) -> None:
        try:
            await self.source.commit(message)
        except OrderServiceException as e:
            # Redelivery is safe: saves are idempotent
            self.logger.error(
                "Commit failed",
                topic=message.topic,
                partition=message.partition,
                offset=message.offset,
                error=str(e)
            )

    async def _wait(self, delay: float) -> bool:
        """Wait ``delay`` seconds; returns False as soon as a stop is requested."""
        if self._stopping.is_set():
            return False
        if delay <= 0:
            return True
        try:
            await asyncio.wait_for(self._stopping.wait(), timeout=delay)
        except asyncio.TimeoutError:
            return True
        return False

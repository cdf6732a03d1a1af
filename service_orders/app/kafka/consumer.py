"""
Kafka consumer feeding the ingestion pipeline.
"""

import asyncio
from collections import deque
from concurrent.futures import ThreadPoolExecutor
from typing import Deque, List, Optional, Union

import kafka
from kafka.errors import KafkaError

from shared.errors import OrderServiceException
from shared.observability import Observability
from ..models import QueueMessage


class KafkaOrderConsumer:
    """
    Pulls order messages one at a time and commits them explicitly.

    kafka-python's consumer is blocking and not thread-safe, so every call on
    it goes through one dedicated worker thread. Records are polled one at a
    time, which makes a plain ``commit()`` commit exactly the position after
    the last record handed out.
    """

    def __init__(self, bootstrap_servers: Union[str, List[str]], topic: str, group_id: str,
                 observability: Optional[Observability] = None, poll_timeout_ms: int = 1000):
        self.bootstrap_servers = bootstrap_servers
        self.topic = topic
        self.group_id = group_id
        self.poll_timeout_ms = poll_timeout_ms
        self.observability = observability or Observability("orders")
        self.logger = self.observability.get_logger("kafka.consumer")
        self.consumer: Optional[kafka.KafkaConsumer] = None
        self._buffer: Deque[QueueMessage] = deque()
        self._executor: Optional[ThreadPoolExecutor] = None
        self.running = False

    async def _call(self, func, *args, **kwargs):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, lambda: func(*args, **kwargs))

    async def start(self):
        """Start the Kafka consumer."""
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="kafka-consumer")
        try:
            self.consumer = await self._call(
                kafka.KafkaConsumer,
                self.topic,
                bootstrap_servers=self.bootstrap_servers,
                group_id=self.group_id,
                value_deserializer=lambda x: x,
                key_deserializer=lambda x: x,
                auto_offset_reset='earliest',
                enable_auto_commit=False,
                max_poll_records=1,
                session_timeout_ms=30000,
                heartbeat_interval_ms=10000
            )
        except KafkaError as e:
            self._executor.shutdown(wait=False)
            self._executor = None
            self.logger.error("Failed to start Kafka consumer", error=str(e))
            raise OrderServiceException("KAFKA_CONSUMER_START_FAILED", str(e)) from e

        self.running = True
        self.logger.info("Kafka consumer started", topic=self.topic, group_id=self.group_id)

    async def stop(self):
        """Stop the Kafka consumer."""
        self.running = False
        if self.consumer:
            await self._call(self.consumer.close, autocommit=False)
            self.consumer = None
            self.logger.info("Kafka consumer stopped")
        if self._executor:
            self._executor.shutdown(wait=False)
            self._executor = None

    async def fetch(self) -> QueueMessage:
        """Block until the next message is available."""
        if not self.consumer:
            raise OrderServiceException("KAFKA_CONSUMER_NOT_STARTED", "Consumer not started")

        while not self._buffer:
            batch = await self._call(self.consumer.poll, timeout_ms=self.poll_timeout_ms, max_records=1)
            for records in (batch or {}).values():
                for record in records:
                    self._buffer.append(QueueMessage(
                        topic=record.topic,
                        partition=record.partition,
                        offset=record.offset,
                        key=record.key,
                        value=record.value,
                        timestamp=record.timestamp,
                        headers=dict(record.headers) if record.headers else None
                    ))

        return self._buffer.popleft()

    async def commit(self, message: QueueMessage) -> None:
        """Commit the consumed position, which ends right after ``message``."""
        if not self.consumer:
            raise OrderServiceException("KAFKA_CONSUMER_NOT_STARTED", "Consumer not started")

        try:
            await self._call(self.consumer.commit)
        except KafkaError as e:
            self.logger.error(
                "Kafka commit failed",
                topic=message.topic,
                partition=message.partition,
                offset=message.offset,
                error=str(e)
            )
            raise OrderServiceException("KAFKA_COMMIT_FAILED", str(e)) from e

        self.logger.debug(
            "Offset committed",
            topic=message.topic,
            partition=message.partition,
            offset=message.offset
        )

    def is_running(self) -> bool:
        return self.running

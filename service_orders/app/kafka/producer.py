"""
Kafka producer for the dead-letter topic.
"""

import asyncio
from typing import List, Mapping, Optional, Union

from kafka import KafkaProducer
from kafka.errors import KafkaError

from shared.errors import DeadLetterDeliveryError, OrderServiceException
from shared.observability import Observability

SEND_TIMEOUT_SECONDS = 10


class KafkaDeadLetterProducer:
    """Writes raw, unprocessable messages to the dead-letter topic."""

    def __init__(self, bootstrap_servers: Union[str, List[str]], topic: str,
                 observability: Optional[Observability] = None):
        self.bootstrap_servers = bootstrap_servers
        self.topic = topic
        self.observability = observability or Observability("orders")
        self.logger = self.observability.get_logger("kafka.dead_letter")
        self.producer: Optional[KafkaProducer] = None

    async def start(self):
        """Start the Kafka producer."""
        try:
            self.producer = await asyncio.to_thread(
                KafkaProducer,
                bootstrap_servers=self.bootstrap_servers,
                acks='all',
                retries=3,
                linger_ms=10
            )
        except KafkaError as e:
            self.logger.error("Failed to start dead-letter producer", error=str(e))
            raise OrderServiceException("KAFKA_PRODUCER_START_FAILED", str(e)) from e

        self.logger.info("Dead-letter producer started", topic=self.topic)

    async def stop(self):
        """Stop the Kafka producer."""
        if self.producer:
            producer = self.producer
            self.producer = None
            await asyncio.to_thread(producer.flush)
            await asyncio.to_thread(producer.close)
            self.logger.info("Dead-letter producer stopped")

    async def send(self, value: bytes, headers: Mapping[str, str],
                   key: Optional[bytes] = None) -> None:
        """Send raw bytes to the dead-letter topic and wait for the broker ack."""
        if not self.producer:
            raise DeadLetterDeliveryError("Dead-letter producer not started")

        kafka_headers = [(k, v.encode('utf-8')) for k, v in headers.items()]

        try:
            future = self.producer.send(
                self.topic,
                value=value,
                key=key,
                headers=kafka_headers
            )
            record_metadata = await asyncio.to_thread(future.get, timeout=SEND_TIMEOUT_SECONDS)
        except KafkaError as e:
            self.logger.error("Kafka error sending dead-letter message", topic=self.topic, error=str(e))
            raise DeadLetterDeliveryError(
                f"Failed to write to {self.topic}",
                details={"topic": self.topic, "error": str(e)}
            ) from e

        self.logger.debug(
            "Dead-letter message sent",
            topic=self.topic,
            partition=record_metadata.partition,
            offset=record_metadata.offset
        )

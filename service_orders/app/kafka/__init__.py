"""
Kafka integration for the Order Service: the inbound order consumer and the
dead-letter producer.
"""

from .consumer import KafkaOrderConsumer
from .producer import KafkaDeadLetterProducer

__all__ = ["KafkaOrderConsumer", "KafkaDeadLetterProducer"]

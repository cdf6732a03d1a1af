#!/usr/bin/env python3
"""
Publish sample orders for local development.

Sends N valid orders, keyed by order UID, to the orders topic and one
malformed message straight to the dead-letter topic tagged
``error_reason=invalid_json``, so both topics have something to look at.
"""

import argparse
import json
import os
import sys

from kafka import KafkaProducer

from shared.test_helpers import OrderFactory

SEND_TIMEOUT_SECONDS = 10


def produce(*, bootstrap: str, topic: str, dlq_topic: str, count: int) -> dict:
    """Publish the sample messages and return a summary."""
    factory = OrderFactory()
    producer = KafkaProducer(bootstrap_servers=bootstrap, acks='all', retries=3)
    sent = []

    try:
        for order in factory.create_orders(count):
            producer.send(
                topic,
                key=order["order_uid"].encode('utf-8'),
                value=factory.encode(order)
            ).get(timeout=SEND_TIMEOUT_SECONDS)
            sent.append(order["order_uid"])

        producer.send(
            dlq_topic,
            value=factory.invalid_json(),
            headers=[("error_reason", b"invalid_json")]
        ).get(timeout=SEND_TIMEOUT_SECONDS)
        producer.flush()
    finally:
        producer.close()

    return {"topic": topic, "orders": sent, "dead_letter_topic": dlq_topic, "dead_letters": 1}


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Publish sample orders to Kafka.")
    parser.add_argument("--bootstrap", default=os.getenv("ORDERS_KAFKA_BOOTSTRAP", "localhost:9092"), help="Kafka bootstrap servers")
    parser.add_argument("--topic", default=os.getenv("ORDERS_ORDERS_TOPIC", "orders"), help="Orders topic")
    parser.add_argument("--dlq-topic", default=os.getenv("ORDERS_DLQ_TOPIC", "orders_dlq"), help="Dead-letter topic")
    parser.add_argument("--count", type=int, default=10, help="Number of valid orders to publish")
    return parser.parse_args()


def main() -> int:
    args = _parse_args()
    try:
        summary = produce(
            bootstrap=args.bootstrap,
            topic=args.topic,
            dlq_topic=args.dlq_topic,
            count=args.count,
        )
    except KeyboardInterrupt:
        return 130
    except Exception as exc:  # pragma: no cover - CLI surface
        print(f"[produce-orders] failed: {exc}", file=sys.stderr)
        return 1

    print(json.dumps(summary, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

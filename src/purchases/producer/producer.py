import json
import logging
import random
import sys
import time

from kafka import KafkaProducer
from kafka.errors import NoBrokersAvailable

from purchases.config import load_config
from purchases.logger import setup_logger
from purchases.producer.data_factory import (
    build_donation_json,
    build_invalid_json,
    build_purchase_json,
    build_unknown_json,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------
# Broker connection
# ---------------------------------------------------------
def create_producer(bootstrap_servers: str, retry_delay: float = 3.0) -> KafkaProducer:
    """Connect to the broker, retrying until one is available"""
    producer = None
    logger.info("Connecting to Kafka", extra={"bootstrap_servers": bootstrap_servers})

    while not producer:
        try:
            producer = KafkaProducer(
                bootstrap_servers=[bootstrap_servers],
                value_serializer=lambda x: json.dumps(x, ensure_ascii=False).encode("utf-8"),
                acks=1,
                retries=5,
            )
            logger.info("Kafka connected")
        except NoBrokersAvailable:
            logger.warning("No brokers available, retrying", extra={"retry_in": retry_delay})
            time.sleep(retry_delay)
    return producer


# ---------------------------------------------------------
# Scenarios
# ---------------------------------------------------------
def pick_scenario(dice: float):
    """
    dice in [0, 1) -> (scenario name, payload)
    - 50% purchase, 30% donation, 10% invalid, 5% unknown, 5% tagged
    """
    if dice < 0.50:
        return "purchase", build_purchase_json(with_purchase_time=random.random() < 0.5)
    if dice < 0.80:
        return "donation", build_donation_json()
    if dice < 0.90:
        return "invalid", build_invalid_json()
    if dice < 0.95:
        return "unknown", build_unknown_json()
    if random.random() < 0.5:
        return "tagged", build_purchase_json(tagged=True)
    return "tagged", build_donation_json(tagged=True)


def publish_once(producer: KafkaProducer, topic: str) -> str:
    scenario, msg = pick_scenario(random.random())
    producer.send(topic, value=msg)
    producer.flush()
    logger.info("Sent message", extra={"scenario": scenario, "topic": topic, "payload": msg})
    return scenario


# ---------------------------------------------------------
# Main
# ---------------------------------------------------------
def main() -> int:
    cfg = load_config()
    setup_logger(cfg.env)

    producer = create_producer(cfg.kafka_bootstrap_servers)
    logger.info("Publishing synthetic events", extra={"topic": cfg.queue_name})

    try:
        while True:
            publish_once(producer, cfg.queue_name)
            time.sleep(random.uniform(0.5, 1.5))
    except KeyboardInterrupt:
        logger.info("Producer stopped")
    finally:
        producer.close()
    return 0


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()

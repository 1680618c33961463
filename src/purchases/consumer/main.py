import logging
import sys
from typing import Iterable

import psycopg2
from kafka import KafkaConsumer
from kafka.errors import KafkaError

from purchases.config import Config, load_config
from purchases.logger import setup_logger

from .errors import MessageError
from .handler import handle_message
from .repository import PostgresRepository, create_pool

logger = logging.getLogger(__name__)


# =============================================================================
# Broker
# =============================================================================
def create_consumer(cfg: Config) -> KafkaConsumer:
    """
    Subscribe to the queue.
    - enable_auto_commit: deliveries are acknowledged on receipt, not after the insert
    - no value_deserializer: raw bytes go to the handler so bad JSON is handled there
    """
    return KafkaConsumer(
        cfg.queue_name,
        bootstrap_servers=[cfg.kafka_bootstrap_servers],
        group_id=cfg.kafka_group_id,
        auto_offset_reset=cfg.auto_offset_reset,
        enable_auto_commit=True,
    )


# =============================================================================
# Consumption loop
# =============================================================================
def consume(messages: Iterable, repo: PostgresRepository) -> int:
    """
    Drive handle_message for every delivery until the iterator ends.
    Per-message failures are logged and never stop the loop.
    Returns the number of inserted rows.
    """
    saved = 0
    for msg in messages:
        try:
            if handle_message(msg.value, repo):
                saved += 1
        except MessageError as e:
            logger.error(
                "Message processing error",
                extra={
                    "error": str(e),
                    "topic": getattr(msg, "topic", None),
                    "partition": getattr(msg, "partition", None),
                    "offset": getattr(msg, "offset", None),
                },
            )
    return saved


# =============================================================================
# Main
# =============================================================================
def serve(cfg: Config) -> None:
    """
    Startup order: Postgres -> tables -> Kafka -> consume.
    Startup failures are logged and end the run without consuming.
    """
    try:
        pool = create_pool(cfg.postgres_address, cfg.postgres_sslmode)
    except psycopg2.Error as e:
        logger.error("Postgres connection error", extra={"error": str(e)})
        return
    logger.info("Postgres connected")

    repo = PostgresRepository(pool)
    try:
        try:
            repo.create_tables()
        except psycopg2.Error as e:
            logger.error("Failed to create necessary tables", extra={"error": str(e)})
            return

        try:
            consumer = create_consumer(cfg)
        except KafkaError as e:
            logger.error("Kafka connection error", extra={"error": str(e)})
            return

        try:
            logger.info(
                "Kafka connected and consuming messages",
                extra={"topic": cfg.queue_name, "group_id": cfg.kafka_group_id},
            )
            consume(consumer, repo)
        finally:
            consumer.close()
            logger.info("Kafka consumer closed")
    finally:
        repo.close()
        logger.info("Postgres connection closed")


def main() -> int:
    """Always returns 0: startup failures, subscription end and Ctrl-C at any stage."""
    cfg = load_config()
    setup_logger(cfg.env)
    logger.info("Configuration loaded")
    logger.info("Logger initialized", extra={"env": cfg.env})

    try:
        serve(cfg)
    except KeyboardInterrupt:
        logger.info("Consumer stopped")
    return 0


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()

import logging
from datetime import datetime, timezone
from typing import Any, Optional, Sequence

import psycopg2
from psycopg2.pool import SimpleConnectionPool

from .errors import PersistError
from .models import DonationRecord, PurchaseRecord

logger = logging.getLogger(__name__)


# =============================================================================
# SQL
# =============================================================================
SQL_CREATE_TABLES = """
CREATE TABLE IF NOT EXISTS ticket_purchases (
  user_token TEXT,
  place_id INT,
  event_time TIMESTAMP,
  purchase_time TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
  cost INT
);
CREATE TABLE IF NOT EXISTS donations (
  user_token TEXT,
  collection_id INT,
  donation_time TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
  amount INT
);
"""

# NULL time -> insertion time in UTC (an explicit NULL would bypass the column DEFAULT)
SQL_INSERT_PURCHASE = """
INSERT INTO ticket_purchases (user_token, place_id, event_time, purchase_time, cost)
VALUES (%s, %s, %s, COALESCE(%s, CURRENT_TIMESTAMP AT TIME ZONE 'UTC'), %s)
"""

SQL_INSERT_DONATION = """
INSERT INTO donations (user_token, collection_id, donation_time, amount)
VALUES (%s, %s, COALESCE(%s, CURRENT_TIMESTAMP AT TIME ZONE 'UTC'), %s)
"""


def create_pool(dsn: str, sslmode: str = "disable") -> SimpleConnectionPool:
    """
    One-connection pool; the first connection is opened here, so a dead store is fatal at startup.
    A connection the server dropped is discarded on return and reopened on the next getconn().
    """
    return SimpleConnectionPool(1, 1, dsn, sslmode=sslmode)


def _utc_naive(value: Optional[datetime]) -> Optional[datetime]:
    """TIMESTAMP columns have no zone: bind the UTC wall clock, not a timestamptz."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


class PostgresRepository:
    """
    Statements go through a psycopg2 connection pool.
    Every statement runs in its own transaction: commit on success, rollback on error.
    """

    def __init__(self, pool):
        self.pool = pool

    def execute(self, sql: str, params: Optional[Sequence[Any]] = None) -> None:
        # psycopg2 raises a plain ValueError while adapting some params (NUL in a string)
        conn = self.pool.getconn()
        try:
            with conn.cursor() as cur:
                cur.execute(sql, params)
            conn.commit()
        except (psycopg2.Error, ValueError):
            if not conn.closed:
                conn.rollback()
            raise
        finally:
            self.pool.putconn(conn, close=bool(conn.closed))

    def create_tables(self) -> None:
        """Idempotent DDL; psycopg2 errors propagate to the caller."""
        self.execute(SQL_CREATE_TABLES)
        logger.info("Tables created or already exist")

    def insert_purchase(self, rec: PurchaseRecord) -> None:
        try:
            self.execute(
                SQL_INSERT_PURCHASE,
                (
                    rec.user_token,
                    rec.place_id,
                    _utc_naive(rec.event_time),
                    _utc_naive(rec.purchase_time),
                    rec.cost,
                ),
            )
        except (psycopg2.Error, ValueError, OverflowError) as e:
            raise PersistError(f"failed to insert purchase message into Postgres: {e}") from e

    def insert_donation(self, rec: DonationRecord) -> None:
        try:
            self.execute(
                SQL_INSERT_DONATION,
                (rec.user_token, rec.collection_id, _utc_naive(rec.donation_time), rec.amount),
            )
        except (psycopg2.Error, ValueError, OverflowError) as e:
            raise PersistError(f"failed to insert donation message into Postgres: {e}") from e

    def close(self) -> None:
        self.pool.closeall()

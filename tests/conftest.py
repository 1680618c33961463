import json
from types import SimpleNamespace

import psycopg2
import pytest

from purchases.consumer.repository import PostgresRepository


class FakeCursor:
    def __init__(self, conn):
        self.conn = conn

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def execute(self, sql, params=None):
        params = tuple(params or ())
        self.conn.executed.append((sql, params))
        if self.conn.closed:
            raise psycopg2.InterfaceError("connection already closed")
        # psycopg2 adapts parameters before sending and rejects NUL with a plain ValueError
        if any(isinstance(p, str) and "\x00" in p for p in params):
            raise ValueError("A string literal cannot contain NUL (0x00) characters.")
        if self.conn.fail_with is not None:
            if isinstance(self.conn.fail_with, psycopg2.OperationalError):
                self.conn.closed = 2
            raise self.conn.fail_with

        for stmt in sql.split(";"):
            stmt = " ".join(stmt.split())
            if stmt.startswith("CREATE TABLE IF NOT EXISTS"):
                name = stmt.split()[5]
                self.conn.tables.setdefault(name, [])
            elif stmt.startswith("INSERT INTO"):
                name = stmt.split()[2]
                if name not in self.conn.tables:
                    raise psycopg2.ProgrammingError(f'relation "{name}" does not exist')
                self.conn.tables[name].append(params)


class FakeConnection:
    """
    Just enough of a psycopg2 connection: records statements, keeps inserted rows per table.
    An OperationalError from fail_with marks the connection closed, like a server drop.
    """

    def __init__(self, tables=None):
        self.executed = []
        self.tables = {} if tables is None else tables
        self.commits = 0
        self.rollbacks = 0
        self.closed = 0
        self.fail_with = None

    def cursor(self):
        if self.closed:
            raise psycopg2.InterfaceError("connection already closed")
        return FakeCursor(self)

    def commit(self):
        self.commits += 1

    def rollback(self):
        if self.closed:
            raise psycopg2.InterfaceError("connection already closed")
        self.rollbacks += 1

    def close(self):
        self.closed = 1


class FakePool:
    """SimpleConnectionPool(1, 1) stand-in; new connections share the first one's tables."""

    def __init__(self, conn):
        self.conn = conn
        self.tables = conn.tables
        self.opened = 1
        self.down = False
        self.closed = False

    def getconn(self):
        if self.conn is None:
            if self.down:
                raise psycopg2.OperationalError("could not connect to server: Connection refused")
            self.conn = FakeConnection(tables=self.tables)
            self.opened += 1
        return self.conn

    def putconn(self, conn, close=False):
        if close:
            conn.close()
            self.conn = None

    def closeall(self):
        if self.conn is not None:
            self.conn.close()
        self.closed = True


@pytest.fixture
def conn():
    return FakeConnection()


@pytest.fixture
def pool(conn):
    return FakePool(conn)


@pytest.fixture
def repo(pool):
    r = PostgresRepository(pool)
    r.create_tables()
    return r


def _message(payload, offset=0):
    value = payload if isinstance(payload, (bytes, type(None))) else json.dumps(payload).encode("utf-8")
    return SimpleNamespace(topic="purchases", partition=0, offset=offset, value=value)


@pytest.fixture
def make_message():
    """Kafka-like delivery; dict payloads are JSON-encoded, bytes are passed through."""
    return _message

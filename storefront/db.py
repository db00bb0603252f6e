from contextlib import contextmanager
from typing import Optional

from psycopg.rows import dict_row
from psycopg_pool import ConnectionPool

from .config import env_int, require_env

SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS orders (
        id UUID PRIMARY KEY,
        order_number TEXT NOT NULL UNIQUE,
        status TEXT NOT NULL,
        created_at TIMESTAMPTZ NOT NULL,
        customer JSONB NOT NULL,
        shipping JSONB NOT NULL,
        payment JSONB NOT NULL,
        items JSONB NOT NULL,
        totals JSONB NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS orders_created_at_idx ON orders (created_at)",
    """
    CREATE TABLE IF NOT EXISTS order_counters (
        day DATE PRIMARY KEY,
        last_seq INTEGER NOT NULL
    )
    """,
]


def create_pool(conninfo: Optional[str] = None) -> ConnectionPool:
    """Open a connection pool for ``conninfo`` (defaults to ``DATABASE_URL``)."""
    return ConnectionPool(
        conninfo=conninfo or require_env("DATABASE_URL"),
        min_size=env_int("APP_POOL_MIN", 1),
        max_size=env_int("APP_POOL_MAX", 10),
        kwargs={"autocommit": False},  # transactions are managed per call
        open=True,
    )


@contextmanager
def get_conn(pool: ConnectionPool):
    with pool.connection() as conn:
        yield conn


def fetch_one(conn, sql, params=None):
    with conn.cursor(row_factory=dict_row) as cur:
        cur.execute(sql, params or ())
        return cur.fetchone()


def execute(conn, sql, params=None):
    with conn.cursor() as cur:
        cur.execute(sql, params or ())


def init_schema(pool: ConnectionPool) -> None:
    with get_conn(pool) as conn:
        for statement in SCHEMA:
            execute(conn, statement)
        conn.commit()

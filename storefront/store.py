"""Order persistence.

Both stores expose the same three calls used by the checkout flow:
``create_order``, ``get_order`` and ``count_orders_between``. Sequence
numbers are allocated atomically with the insert, so two checkouts on the
same UTC day never share an order number.
"""
import threading
import uuid
from datetime import datetime, timezone
from typing import Dict, Optional

import psycopg
from psycopg.types.json import Jsonb
from psycopg_pool import ConnectionPool

from .config import ORDER_NUMBER_PREFIX
from .db import create_pool, fetch_one, get_conn, init_schema
from .errors import OrderPersistenceError
from .log import get_logger
from .models import CreatedOrder, OrderPayload, StoredOrder
from .order_number import as_utc, format_order_number, utc_day_bounds

logger = get_logger(__name__)

DOCUMENT_FIELDS = ("customer", "shipping", "payment", "items", "totals")


def _parse_order_id(order_id: str) -> Optional[uuid.UUID]:
    try:
        return uuid.UUID(str(order_id))
    except ValueError:
        return None


class PostgresOrderStore:
    def __init__(self, pool: ConnectionPool, prefix: str = ORDER_NUMBER_PREFIX):
        self.pool = pool
        self.prefix = prefix

    @classmethod
    def from_env(cls) -> "PostgresOrderStore":
        pool = create_pool()
        init_schema(pool)
        return cls(pool)

    def close(self) -> None:
        self.pool.close()

    def ping(self) -> bool:
        with get_conn(self.pool) as conn:
            row = fetch_one(conn, "SELECT 1 AS ok")
            return row["ok"] == 1

    def create_order(self, payload: OrderPayload, created_at: Optional[datetime] = None) -> CreatedOrder:
        created_at = as_utc(created_at or datetime.now(timezone.utc))
        start, end = utc_day_bounds(created_at)
        document = payload.model_dump(mode="json", by_alias=True)
        order_id = uuid.uuid4()

        with get_conn(self.pool) as conn:
            try:
                # the counter row lock serialises concurrent checkouts for the day
                row = fetch_one(conn, """
                    INSERT INTO order_counters (day, last_seq)
                    VALUES (%s, (SELECT COUNT(*) FROM orders WHERE created_at >= %s AND created_at < %s) + 1)
                    ON CONFLICT (day) DO UPDATE SET last_seq = order_counters.last_seq + 1
                    RETURNING last_seq
                """, (start.date(), start, end))
                order_number = format_order_number(created_at, row["last_seq"] - 1, self.prefix)
                fetch_one(conn, """
                    INSERT INTO orders (id, order_number, status, created_at,
                                        customer, shipping, payment, items, totals)
                    VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s)
                    RETURNING id
                """, (order_id, order_number, "received", created_at,
                      *(Jsonb(document[field]) for field in DOCUMENT_FIELDS)))
                conn.commit()
            except psycopg.Error as e:
                conn.rollback()
                raise OrderPersistenceError(f"create_order failed: {e}") from e

        return CreatedOrder(order_id=str(order_id), order_number=order_number, created_at=created_at)

    def get_order(self, order_id: str) -> Optional[StoredOrder]:
        parsed = _parse_order_id(order_id)
        if parsed is None:
            return None
        with get_conn(self.pool) as conn:
            try:
                row = fetch_one(conn, "SELECT * FROM orders WHERE id = %s", (parsed,))
            except psycopg.Error as e:
                raise OrderPersistenceError(f"get_order failed: {e}") from e
        if not row:
            return None
        return StoredOrder(
            order_id=str(row["id"]),
            order_number=row["order_number"],
            status=row["status"],
            created_at=as_utc(row["created_at"]),
            **{field: row[field] for field in DOCUMENT_FIELDS},
        )

    def count_orders_between(self, start: datetime, end: datetime) -> int:
        with get_conn(self.pool) as conn:
            row = fetch_one(conn,
                "SELECT COUNT(*)::int AS total FROM orders WHERE created_at >= %s AND created_at < %s",
                (as_utc(start), as_utc(end))
            )
            return row["total"]


class MemoryOrderStore:
    """In-process store with the same contract, for tests and local runs."""

    def __init__(self, prefix: str = ORDER_NUMBER_PREFIX):
        self.prefix = prefix
        self._orders: Dict[str, dict] = {}
        self._lock = threading.Lock()

    def close(self) -> None:
        pass

    def ping(self) -> bool:
        return True

    def create_order(self, payload: OrderPayload, created_at: Optional[datetime] = None) -> CreatedOrder:
        created_at = as_utc(created_at or datetime.now(timezone.utc))
        with self._lock:
            orders_today = self.count_orders_between(*utc_day_bounds(created_at))
            created = CreatedOrder(
                order_id=str(uuid.uuid4()),
                order_number=format_order_number(created_at, orders_today, self.prefix),
                created_at=created_at,
            )
            stored = StoredOrder.from_payload(payload, created)
            self._orders[created.order_id] = stored.to_document()
        return created

    def get_order(self, order_id: str) -> Optional[StoredOrder]:
        document = self._orders.get(str(order_id))
        if document is None:
            return None
        return StoredOrder.model_validate(document)

    def count_orders_between(self, start: datetime, end: datetime) -> int:
        start, end = as_utc(start), as_utc(end)
        return sum(
            1 for document in list(self._orders.values())
            if start <= datetime.fromisoformat(document["createdAt"].replace("Z", "+00:00")) < end
        )

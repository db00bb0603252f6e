import uuid
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock, patch

import pytest

from storefront.order_number import utc_day_bounds
from storefront.store import MemoryOrderStore, PostgresOrderStore

MOMENT = datetime(2024, 3, 1, 0, 0, 0, tzinfo=timezone.utc)


class TestMemoryOrderStore:
    def test_create_assigns_number_and_id(self, memory_store, order_payload):
        created = memory_store.create_order(order_payload, MOMENT)
        assert created.order_number == "AUD-20240301-0001"
        assert created.created_at == MOMENT
        uuid.UUID(created.order_id)

    def test_sequence_counts_same_day_orders_only(self, memory_store, order_payload):
        memory_store.create_order(order_payload, MOMENT - timedelta(seconds=1))
        first = memory_store.create_order(order_payload, MOMENT)
        second = memory_store.create_order(order_payload, MOMENT + timedelta(hours=23))
        assert first.order_number == "AUD-20240301-0001"
        assert second.order_number == "AUD-20240301-0002"

    def test_get_order_returns_stored_document(self, memory_store, order_payload):
        created = memory_store.create_order(order_payload, MOMENT)
        stored = memory_store.get_order(created.order_id)
        assert stored.order_id == created.order_id
        assert stored.order_number == created.order_number
        assert stored.status == "received"
        assert stored.customer == order_payload.customer
        assert stored.items == order_payload.items

    def test_get_missing_order_returns_none(self, memory_store):
        assert memory_store.get_order(str(uuid.uuid4())) is None
        assert memory_store.get_order("not-an-id") is None

    def test_count_orders_between(self, memory_store, order_payload):
        for _ in range(3):
            memory_store.create_order(order_payload, MOMENT)
        memory_store.create_order(order_payload, MOMENT + timedelta(days=1))
        assert memory_store.count_orders_between(*utc_day_bounds(MOMENT)) == 3

    def test_concurrent_creates_never_share_a_number(self, memory_store, order_payload):
        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(lambda _: memory_store.create_order(order_payload, MOMENT), range(50)))
        numbers = {created.order_number for created in results}
        assert len(numbers) == 50
        assert "AUD-20240301-0050" in numbers

    def test_custom_prefix(self, order_payload):
        store = MemoryOrderStore(prefix="TST")
        assert store.create_order(order_payload, MOMENT).order_number == "TST-20240301-0001"


class TestPostgresRowMapping:
    def make_row(self, order_payload, created_at):
        document = order_payload.model_dump(mode="json", by_alias=True)
        return {
            "id": uuid.UUID("33333333-3333-3333-3333-333333333333"),
            "order_number": "AUD-20240301-0001",
            "status": "received",
            "created_at": created_at,
            **{field: document[field] for field in ("customer", "shipping", "payment", "items", "totals")},
        }

    @patch("storefront.store.fetch_one")
    def test_get_order_normalises_session_time_zone_to_utc(self, mock_fetch_one, order_payload):
        local = datetime(2024, 3, 1, 2, 0, 0, tzinfo=timezone(timedelta(hours=2)))
        mock_fetch_one.return_value = self.make_row(order_payload, local)

        stored = PostgresOrderStore(MagicMock()).get_order("33333333-3333-3333-3333-333333333333")

        assert stored.created_at == MOMENT
        assert stored.created_at.utcoffset() == timedelta(0)
        assert stored.model_dump(mode="json", by_alias=True)["createdAt"].startswith("2024-03-01T00:00:00")

    @patch("storefront.store.fetch_one")
    def test_get_order_skips_query_for_malformed_id(self, mock_fetch_one):
        assert PostgresOrderStore(MagicMock()).get_order("garbage") is None
        mock_fetch_one.assert_not_called()


class TestPostgresOrderStore:
    """Runs against a real database; skipped unless DATABASE_URL is set."""

    @pytest.fixture
    def pg_store(self, database_url):
        from storefront.db import create_pool, init_schema

        pool = create_pool(database_url)
        init_schema(pool)
        store = PostgresOrderStore(pool, prefix=f"T{uuid.uuid4().hex[:6].upper()}")
        yield store
        store.close()

    def test_create_and_get(self, pg_store, order_payload):
        created = pg_store.create_order(order_payload)
        stored = pg_store.get_order(created.order_id)
        assert stored is not None
        assert stored.order_number == created.order_number
        assert stored.status == "received"
        assert stored.items == order_payload.items
        assert stored.created_at == created.created_at
        assert stored.model_dump(mode="json", by_alias=True)["createdAt"] == \
            created.model_dump(mode="json", by_alias=True)["createdAt"]

    def test_same_day_numbers_are_consecutive(self, pg_store, order_payload):
        first = pg_store.create_order(order_payload)
        second = pg_store.create_order(order_payload)
        first_seq = int(first.order_number.rsplit("-", 1)[1])
        second_seq = int(second.order_number.rsplit("-", 1)[1])
        assert second_seq == first_seq + 1

    def test_missing_order(self, pg_store):
        assert pg_store.get_order(str(uuid.uuid4())) is None
        assert pg_store.get_order("garbage") is None

    def test_ping(self, pg_store):
        assert pg_store.ping() is True

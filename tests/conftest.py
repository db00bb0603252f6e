"""
Pytest fixtures shared by the storefront test modules.

The API and checkout tests run against the in-memory order store and a
recording notifier; tests that need PostgreSQL skip unless DATABASE_URL is set.
"""
import copy
import os
from datetime import datetime, timezone

import pytest
from dotenv import load_dotenv
from fastapi.testclient import TestClient

from storefront.app import create_app
from storefront.models import OrderPayload
from storefront.store import MemoryOrderStore

load_dotenv()

CHECKOUT_MOMENT = datetime(2024, 3, 1, 0, 0, 0, tzinfo=timezone.utc)


class RecordingNotifier:
    """Notifier that keeps sent confirmations in memory."""

    def __init__(self):
        self.sent = []
        self.should_succeed = True
        self.failure_reason = "SMTP connection refused"

    def configure(self, should_succeed=True, failure_reason="SMTP connection refused"):
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def send_order_confirmation(self, order):
        if not self.should_succeed:
            raise ConnectionRefusedError(self.failure_reason)
        self.sent.append(order)


class FailingStore(MemoryOrderStore):
    def create_order(self, payload, created_at=None):
        raise RuntimeError("database unavailable")


@pytest.fixture(scope="session")
def database_url():
    url = os.getenv("DATABASE_URL")
    if not url:
        pytest.skip("DATABASE_URL not configured")
    return url


@pytest.fixture
def order_payload_data():
    return {
        "customer": {"name": "A", "emailAddress": "a@b.com", "phoneNumber": "+10000000000"},
        "shipping": {"address": "1 Rd", "city": "X", "country": "Y", "zipCode": "00000"},
        "payment": {"method": "Cash on Delivery"},
        "items": [{"id": 1, "shortName": "Item", "cartImage": "/i.png", "price": 10, "quantity": 2}],
        "totals": {"subtotal": 20, "shipping": 5, "tax": 1, "grandTotal": 26},
    }


@pytest.fixture
def make_payload_data(order_payload_data):
    """Copy of the sample payload with top-level sections replaced."""
    def _make(**overrides):
        data = copy.deepcopy(order_payload_data)
        data.update(overrides)
        return data
    return _make


@pytest.fixture
def order_payload(order_payload_data):
    return OrderPayload.model_validate(order_payload_data)


@pytest.fixture
def clock():
    return lambda: CHECKOUT_MOMENT


@pytest.fixture
def memory_store():
    return MemoryOrderStore()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def client(memory_store, notifier, clock):
    app = create_app(store=memory_store, notifier=notifier, clock=clock)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def failing_store():
    return FailingStore()

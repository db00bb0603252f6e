"""Checkout sequence: persist, reload, confirm, acknowledge."""
from datetime import datetime, timezone
from typing import Callable, Optional, Protocol

from .errors import ConfirmationDeliveryError, OrderPersistenceError
from .log import get_logger
from .models import CheckoutReceipt, CreatedOrder, OrderPayload, StoredOrder

logger = get_logger(__name__)


class OrderStore(Protocol):
    def create_order(self, payload: OrderPayload, created_at: Optional[datetime] = None) -> CreatedOrder: ...

    def get_order(self, order_id: str) -> Optional[StoredOrder]: ...


class Notifier(Protocol):
    def send_order_confirmation(self, order: StoredOrder) -> None: ...


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class CheckoutService:
    def __init__(self, store: OrderStore, notifier: Notifier, clock: Callable[[], datetime] = utc_now):
        self.store = store
        self.notifier = notifier
        self.clock = clock

    def place_order(self, payload: OrderPayload) -> CheckoutReceipt:
        """Store ``payload`` and email the customer a confirmation.

        Raises ``OrderPersistenceError`` when nothing was stored, and
        ``ConfirmationDeliveryError`` (carrying the receipt) when the order
        was stored but the email could not be sent.
        """
        try:
            created = self.store.create_order(payload, self.clock())
        except OrderPersistenceError:
            logger.error("Order persistence failed", exc_info=True)
            raise
        except Exception as e:
            logger.error("Order persistence failed", exc_info=True)
            raise OrderPersistenceError(f"Unable to store order: {e}") from e

        receipt = CheckoutReceipt(**created.model_dump())
        logger.info("Order created", order_id=receipt.order_id, order_number=receipt.order_number)

        order = self.order_for_confirmation(payload, created)
        try:
            self.notifier.send_order_confirmation(order)
        except Exception as e:
            logger.error("Order confirmation failed", order_number=receipt.order_number, exc_info=True)
            raise ConfirmationDeliveryError(
                f"Order {receipt.order_number} was placed but the confirmation email could not be sent: {e}",
                receipt,
            ) from e

        return receipt

    def order_for_confirmation(self, payload: OrderPayload, created: CreatedOrder) -> StoredOrder:
        try:
            stored = self.store.get_order(created.order_id)
        except Exception:
            logger.warning("Stored order could not be read back, using submitted payload",
                           order_id=created.order_id, exc_info=True)
            stored = None
        if stored is not None:
            return stored
        logger.debug("Stored order not visible yet, using submitted payload", order_id=created.order_id)
        return StoredOrder.from_payload(payload, created)

    def get_order(self, order_id: str) -> Optional[StoredOrder]:
        order = self.store.get_order(order_id)
        if order is None:
            logger.info("Order not found", order_id=order_id)
        return order

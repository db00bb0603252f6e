"""Exceptions raised by the checkout flow and translated by the API layer."""


class StorefrontError(Exception):
    """Base class for storefront failures."""


class ConfigError(StorefrontError, RuntimeError):
    """Required configuration is missing or malformed."""


class OrderPersistenceError(StorefrontError):
    """The order store could not create or read an order."""


class ConfirmationDeliveryError(StorefrontError):
    """The order was stored but its confirmation email was not delivered.

    ``receipt`` identifies the persisted order so callers can tell this
    apart from a checkout that never reached the store.
    """

    def __init__(self, message, receipt):
        super().__init__(message)
        self.receipt = receipt

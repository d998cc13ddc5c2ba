# storefront/domain/exceptions.py
"""
Business-level exceptions raised by the services.
Routers convert them to HTTP responses with raise_http().
"""

from fastapi import HTTPException


class ShopError(Exception):
    """Base exception for all order/cart workflow errors."""

    status_code = 400

    def __init__(self, message: str = "Request could not be processed"):
        self.message = message
        super().__init__(self.message)


class InvalidArgumentError(ShopError):
    """Malformed quantity, missing product id or bad payment signal."""


class EmptyCartError(ShopError):
    def __init__(self):
        super().__init__("Cart is empty")


class NotFoundError(ShopError):
    """Resource does not exist or is not visible to the caller."""

    status_code = 404


class ProductNotFoundError(NotFoundError):
    def __init__(self, product_id: int):
        self.product_id = product_id
        super().__init__(f"Product {product_id} not found")


class AlreadyPaidError(ShopError):
    status_code = 409

    def __init__(self, order_id: int):
        self.order_id = order_id
        super().__init__(f"Order {order_id} is already paid")


class PaymentStateError(ShopError):
    """Transition not allowed from the order's current payment status."""

    status_code = 409


class StorageFailureError(ShopError):
    """Transaction did not commit; nothing was written and the call can be retried."""

    status_code = 503


class ConcurrencyConflictError(StorageFailureError):
    status_code = 409

    def __init__(self, message: str = "Cart was modified by another operation, retry"):
        super().__init__(message)


class CatalogUnavailableError(ShopError):
    status_code = 503


def raise_http(error: ShopError):
    """Convert a business exception to an HTTP exception."""
    raise HTTPException(status_code=error.status_code, detail=error.message)

# storefront/services/cart_service.py
from contextlib import nullcontext
from decimal import Decimal
from typing import Any, Dict, List

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from storefront.domain.exceptions import (
    InvalidArgumentError,
    ProductNotFoundError,
    StorageFailureError,
)
from storefront.repos.cart_repo import CartRepo
from storefront.services.lock_service import LockService
from storefront.services.product_client import ProductClient
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


def parse_quantity(quantity: Any) -> int:
    """None means 1; ints and integral strings >= 1 are accepted."""
    if quantity is None:
        return 1

    if isinstance(quantity, bool):
        raise InvalidArgumentError("Invalid quantity")

    if isinstance(quantity, str):
        try:
            quantity = int(quantity.strip())
        except ValueError:
            raise InvalidArgumentError("Invalid quantity") from None

    if not isinstance(quantity, int) or quantity < 1:
        raise InvalidArgumentError("Invalid quantity")

    return quantity


class CartService:
    """
    Per-user cart.
    commands (upsert_line, remove_line) bump the cart generation in the same
    transaction as the line change, query (get_cart) only reads
    """

    def __init__(
        self,
        db: Session,
        product_client: ProductClient,
        lock_service: LockService | None = None,
    ):
        self.repo = CartRepo(db)
        self.product_client = product_client
        self.lock_service = lock_service

    def _user_lock(self, user_id: int):
        if self.lock_service is None:
            return nullcontext()
        return self.lock_service.user_cart_lock(user_id)

    # query
    def get_cart(self, user_id: int) -> Dict[str, Any]:
        cart = self.repo.get_cart_by_user(user_id)
        items = self.repo.get_cart_items(cart.id) if cart else []

        lines: List[Dict[str, Any]] = []
        for item in items:
            try:
                product = self.product_client.fetch_product(item.product_id)
            except ProductNotFoundError:
                # product removed from the catalog, the join drops it
                logger.warning(f"Product {item.product_id} in cart of user {user_id} no longer exists")
                continue

            lines.append(
                {
                    "product_id": item.product_id,
                    "name": product["name"],
                    "unit_price": product["price"],
                    "quantity": item.quantity,
                    "line_total": product["price"] * item.quantity,
                }
            )

        total = sum((line["line_total"] for line in lines), Decimal("0.00"))

        return {
            "user_id": user_id,
            "items": lines,
            "total": total,
        }

    # commands
    def upsert_line(self, user_id: int, product_id: int | None, quantity: Any = None) -> Dict[str, Any]:
        if not product_id:
            raise InvalidArgumentError("Missing product_id")

        qty = parse_quantity(quantity)

        with self._user_lock(user_id):
            # unknown product -> ProductNotFoundError
            self.product_client.fetch_product(product_id)

            try:
                cart = self.repo.ensure_cart(user_id)
                self.repo.bump_version(cart.id)
                self.repo.upsert_cart_item(cart.id, product_id, qty)
                self.repo.commit()
            except SQLAlchemyError as e:
                self.repo.rollback()
                logger.error(f"Cart upsert failed for user {user_id}, product {product_id}: {e}")
                raise StorageFailureError("Cart could not be updated, retry") from e

        logger.info(f"Cart of user {user_id}: product {product_id} set to quantity {qty}")

        return self.get_cart(user_id)

    def remove_line(self, user_id: int, product_id: int) -> Dict[str, Any]:
        if not product_id:
            raise InvalidArgumentError("Missing product_id")

        with self._user_lock(user_id):
            cart = self.repo.get_cart_by_user(user_id)

            if cart is not None:
                try:
                    self.repo.bump_version(cart.id)
                    removed = self.repo.delete_cart_item(cart.id, product_id)
                    self.repo.commit()
                except SQLAlchemyError as e:
                    self.repo.rollback()
                    logger.error(f"Cart remove failed for user {user_id}, product {product_id}: {e}")
                    raise StorageFailureError("Cart could not be updated, retry") from e

                if removed:
                    logger.info(f"Product {product_id} removed from cart of user {user_id}")

        return self.get_cart(user_id)

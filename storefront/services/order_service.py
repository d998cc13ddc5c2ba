# storefront/services/order_service.py
from contextlib import nullcontext
from decimal import Decimal
from typing import Any, Dict, List

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from storefront.data.models.order import OrderModel, PaymentStatus
from storefront.data.models.order_item import OrderItemModel
from storefront.domain.exceptions import (
    ConcurrencyConflictError,
    EmptyCartError,
    NotFoundError,
    ProductNotFoundError,
    StorageFailureError,
)
from storefront.repos.cart_repo import CartRepo
from storefront.repos.order_repo import OrderRepo
from storefront.services.lock_service import LockService
from storefront.services.notification_service import NotificationService
from storefront.services.product_client import ProductClient
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

CENT = Decimal("0.01")


def order_header(order: OrderModel) -> Dict[str, Any]:
    return {
        "id": order.id,
        "user_id": order.user_id,
        "total_price": order.total_price,
        "payment_status": order.payment_status,
        "created_at": order.created_at,
    }


class OrderService:
    """
    Orders: checkout from the cart (command) and order history (queries).
    """

    def __init__(
        self,
        db: Session,
        product_client: ProductClient,
        notification_service: NotificationService | None = None,
        lock_service: LockService | None = None,
    ):
        self.db = db
        self.repo = OrderRepo(db)
        self.cart_repo = CartRepo(db)
        self.product_client = product_client
        self.notification_service = notification_service or NotificationService()
        self.lock_service = lock_service

    def _user_lock(self, user_id: int):
        if self.lock_service is None:
            return nullcontext()
        return self.lock_service.user_cart_lock(user_id)

    def create_order(self, user_id: int) -> Dict[str, Any]:
        """
        Checkout:

        1. snapshot the cart (lines + generation)
        2. price every line from the catalog
        3. compute the total with Decimal
        4. CAS the cart generation, insert order and order lines, clear the cart
           in one transaction

        A cart edit committed after the snapshot makes the CAS fail, so it is
        never half-reflected in the order and then dropped.
        """
        with self._user_lock(user_id):
            cart = self.cart_repo.get_cart_by_user(user_id)
            if cart is None:
                raise EmptyCartError()

            snapshot_version = cart.version
            cart_id = cart.id
            items = self.cart_repo.get_cart_items(cart_id)

            priced = []
            for item in items:
                try:
                    price = self.product_client.get_unit_price(item.product_id)
                except ProductNotFoundError:
                    logger.warning(f"Skipping product {item.product_id}, no longer in the catalog")
                    continue
                priced.append((item.product_id, item.quantity, price))

            if not priced:
                raise EmptyCartError()

            total = sum((price * qty for _, qty, price in priced), Decimal("0.00")).quantize(CENT)

            try:
                rowcount = self.cart_repo.update_cart_version(
                    cart_id=cart_id,
                    old_version=snapshot_version,
                    new_data={"version": snapshot_version + 1},
                )
                if rowcount == 0:
                    self.db.rollback()
                    logger.warning(f"Checkout of user {user_id} lost the race for cart {cart_id}")
                    raise ConcurrencyConflictError()

                order = self.repo.add_order(
                    OrderModel(
                        user_id=user_id,
                        total_price=total,
                        payment_status=PaymentStatus.PENDING,
                    )
                )
                self.repo.add_order_items(
                    [
                        OrderItemModel(
                            order_id=order.id,
                            product_id=product_id,
                            quantity=qty,
                            item_price=price,
                        )
                        for product_id, qty, price in priced
                    ]
                )
                self.cart_repo.clear_cart(cart_id)
                self.db.commit()
            except SQLAlchemyError as e:
                self.db.rollback()
                logger.error(f"Checkout failed for user {user_id}: {e}")
                raise StorageFailureError("Order could not be created, retry") from e

        logger.info(f"Order {order.id} created for user {user_id}, total {total}, {len(priced)} lines")

        self.notification_service.send_order_notification(user_id, order.id)

        return order_header(order)

    # queries
    def list_orders(self, user_id: int) -> List[Dict[str, Any]]:
        return [order_header(o) for o in self.repo.list_user_orders(user_id)]

    def get_order(self, user_id: int, order_id: int) -> Dict[str, Any]:
        """
        Order header and lines. A foreign order is reported exactly like a
        missing one.
        """
        order = self.repo.get_user_order(order_id, user_id)
        if not order:
            raise NotFoundError("Order not found")

        lines = []
        for item in self.repo.get_order_items(order.id):
            # display name is live, the price is the frozen one
            try:
                name = self.product_client.fetch_product(item.product_id)["name"]
            except ProductNotFoundError:
                name = None

            lines.append(
                {
                    "product_id": item.product_id,
                    "name": name,
                    "quantity": item.quantity,
                    "item_price": item.item_price,
                    "line_total": item.item_price * item.quantity,
                }
            )

        return {"order": order_header(order), "items": lines}

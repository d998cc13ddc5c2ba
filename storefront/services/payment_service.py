# storefront/services/payment_service.py
import hashlib
import hmac
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from storefront.data.models.order import OrderModel, PaymentStatus
from storefront.domain.exceptions import (
    AlreadyPaidError,
    InvalidArgumentError,
    NotFoundError,
    PaymentStateError,
    StorageFailureError,
)
from storefront.repos.order_repo import OrderRepo
from storefront.services.notification_service import NotificationService
from storefront.utils.settings import PAYMENT_CURRENCY
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

SIGNALS = ("confirm", "fail")


def to_cents(amount: Decimal) -> int:
    """Minor units for the payment provider, rounded half up."""
    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def sign_payload(payload: bytes, secret: str) -> str:
    return hmac.new(secret.encode(), payload, hashlib.sha256).hexdigest()


def verify_signature(payload: bytes, signature: str | None, secret: str) -> bool:
    """HMAC-SHA256 hex of the raw body. An empty secret disables the check."""
    if not secret:
        return True
    if not signature:
        return False
    return hmac.compare_digest(sign_payload(payload, secret), signature.strip())


class PaymentService:
    """
    Payment status reconciliation.

    Only pending -> paid and pending -> failed are allowed, paid is terminal.
    Every transition is a single conditional UPDATE, so notifier replays can
    never apply a payment twice.
    """

    def __init__(self, db: Session, notification_service: NotificationService | None = None):
        self.repo = OrderRepo(db)
        self.notification_service = notification_service or NotificationService()

    def _transition(
        self,
        order_id: int,
        to_status: PaymentStatus,
        expected_user_id: int | None,
    ) -> Tuple[OrderModel, bool]:
        try:
            rowcount = self.repo.transition_payment_status(
                order_id,
                from_status=PaymentStatus.PENDING,
                to_status=to_status,
                user_id=expected_user_id,
            )
            self.repo.commit()
        except SQLAlchemyError as e:
            self.repo.rollback()
            logger.error(f"Payment status update failed for order {order_id}: {e}")
            raise StorageFailureError("Payment status could not be updated, retry") from e

        order = self.repo.get_order(order_id)
        if not order or (expected_user_id is not None and order.user_id != expected_user_id):
            raise NotFoundError("Order not found")

        changed = rowcount == 1
        if changed:
            logger.info(f"Order {order_id} payment status: pending -> {to_status.value}")
            self.notification_service.send_payment_notification(order.user_id, order.id, to_status.value)

        return order, changed

    @staticmethod
    def _result(order: OrderModel, changed: bool) -> Dict[str, Any]:
        return {
            "order_id": order.id,
            "payment_status": order.payment_status,
            "changed": changed,
        }

    def mark_paid(self, order_id: int, expected_user_id: int | None = None) -> Dict[str, Any]:
        order, changed = self._transition(order_id, PaymentStatus.PAID, expected_user_id)

        if not changed:
            if order.payment_status == PaymentStatus.PAID:
                logger.info(f"Order {order_id} already paid, ignoring confirmation")
                raise AlreadyPaidError(order_id)
            raise PaymentStateError(
                f"Order {order_id} payment is {order.payment_status.value}, cannot mark as paid"
            )

        return self._result(order, changed)

    def mark_failed(self, order_id: int, expected_user_id: int | None = None) -> Dict[str, Any]:
        order, changed = self._transition(order_id, PaymentStatus.FAILED, expected_user_id)

        if not changed and order.payment_status == PaymentStatus.PAID:
            raise AlreadyPaidError(order_id)

        # replay on an already failed order is a no-op
        return self._result(order, changed)

    def apply_signal(self, order_id: int, signal: str) -> Dict[str, Any]:
        """
        Entry point for the payment notifier. Signals against an order already
        in a terminal state are benign and reported with changed=False, so the
        notifier stops redelivering them.
        """
        if signal not in SIGNALS:
            raise InvalidArgumentError(f"Unknown payment signal: {signal}")

        try:
            if signal == "confirm":
                return self.mark_paid(order_id)
            return self.mark_failed(order_id)
        except AlreadyPaidError:
            return {
                "order_id": order_id,
                "payment_status": PaymentStatus.PAID,
                "changed": False,
            }
        except PaymentStateError:
            logger.warning(f"Ignoring confirm signal for failed order {order_id}")
            return {
                "order_id": order_id,
                "payment_status": PaymentStatus.FAILED,
                "changed": False,
            }

    def start_payment(self, user_id: int, order_id: int) -> Dict[str, Any]:
        """Amount to charge for a pending order of this user, in cents."""
        order = self.repo.get_user_order(order_id, user_id)
        if not order:
            raise NotFoundError("Order not found")

        if order.payment_status == PaymentStatus.PAID:
            raise AlreadyPaidError(order_id)
        if order.payment_status != PaymentStatus.PENDING:
            raise PaymentStateError(
                f"Order {order_id} payment is {order.payment_status.value}, cannot be paid"
            )

        amount_cents = to_cents(order.total_price)

        return {
            "order_id": order.id,
            "amount_cents": amount_cents,
            "currency": PAYMENT_CURRENCY,
        }

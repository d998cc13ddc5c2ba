"""
Unit tests: PaymentService

- pending -> paid / failed transitions
- replays are idempotent and never touch totals
- ownership checks
- notifier signal handling and webhook signatures
"""

from decimal import Decimal

import pytest

from storefront.data.models.order import OrderModel, PaymentStatus
from storefront.data.models.order_item import OrderItemModel
from storefront.domain.exceptions import (
    AlreadyPaidError,
    InvalidArgumentError,
    NotFoundError,
    PaymentStateError,
)
from storefront.services.payment_service import sign_payload, to_cents, verify_signature


@pytest.fixture
def order(order_service, cart_service):
    cart_service.upsert_line(1, 7, 2)
    cart_service.upsert_line(1, 9, 1)
    return order_service.create_order(1)


def snapshot(session, order_id):
    session.expire_all()
    order = session.get(OrderModel, order_id)
    lines = sorted(
        (l.product_id, l.quantity, l.item_price)
        for l in session.query(OrderItemModel).filter_by(order_id=order_id)
    )
    return order.total_price, lines


class TestMarkPaid:
    def test_marks_pending_order_paid(self, payment_service, order, notifier):
        result = payment_service.mark_paid(order["id"])

        assert result == {"order_id": order["id"], "payment_status": PaymentStatus.PAID, "changed": True}
        assert notifier.payments == [(1, order["id"], "paid")]

    def test_second_call_is_already_paid(self, payment_service, session, order, notifier):
        before = snapshot(session, order["id"])

        payment_service.mark_paid(order["id"])
        with pytest.raises(AlreadyPaidError):
            payment_service.mark_paid(order["id"])

        assert snapshot(session, order["id"]) == before
        assert len(notifier.payments) == 1

    def test_unknown_order(self, payment_service):
        with pytest.raises(NotFoundError):
            payment_service.mark_paid(12345)

    def test_other_users_order(self, payment_service, session, order):
        with pytest.raises(NotFoundError):
            payment_service.mark_paid(order["id"], expected_user_id=2)

        session.expire_all()
        assert session.get(OrderModel, order["id"]).payment_status == PaymentStatus.PENDING

    def test_owner_can_confirm(self, payment_service, order):
        result = payment_service.mark_paid(order["id"], expected_user_id=1)

        assert result["payment_status"] == PaymentStatus.PAID

    def test_failed_order_cannot_be_paid(self, payment_service, order):
        payment_service.mark_failed(order["id"])

        with pytest.raises(PaymentStateError):
            payment_service.mark_paid(order["id"])


class TestMarkFailed:
    def test_marks_pending_order_failed(self, payment_service, order):
        result = payment_service.mark_failed(order["id"])

        assert result["payment_status"] == PaymentStatus.FAILED
        assert result["changed"] is True

    def test_replay_is_noop(self, payment_service, order, notifier):
        payment_service.mark_failed(order["id"])
        result = payment_service.mark_failed(order["id"])

        assert result["changed"] is False
        assert result["payment_status"] == PaymentStatus.FAILED
        assert len(notifier.payments) == 1

    def test_paid_is_terminal(self, payment_service, session, order):
        payment_service.mark_paid(order["id"])

        with pytest.raises(AlreadyPaidError):
            payment_service.mark_failed(order["id"])

        session.expire_all()
        assert session.get(OrderModel, order["id"]).payment_status == PaymentStatus.PAID


class TestApplySignal:
    def test_confirm_replays_are_benign(self, payment_service, session, order):
        before = snapshot(session, order["id"])

        first = payment_service.apply_signal(order["id"], "confirm")
        second = payment_service.apply_signal(order["id"], "confirm")

        assert first["changed"] is True
        assert second == {"order_id": order["id"], "payment_status": PaymentStatus.PAID, "changed": False}
        assert snapshot(session, order["id"]) == before

    def test_fail_after_paid_is_benign(self, payment_service, order):
        payment_service.apply_signal(order["id"], "confirm")

        result = payment_service.apply_signal(order["id"], "fail")

        assert result["changed"] is False
        assert result["payment_status"] == PaymentStatus.PAID

    def test_confirm_after_fail_is_benign(self, payment_service, session, order, notifier):
        payment_service.apply_signal(order["id"], "fail")

        result = payment_service.apply_signal(order["id"], "confirm")

        assert result == {"order_id": order["id"], "payment_status": PaymentStatus.FAILED, "changed": False}
        assert notifier.payments == [(1, order["id"], "failed")]
        session.expire_all()
        assert session.get(OrderModel, order["id"]).payment_status == PaymentStatus.FAILED

    def test_unknown_signal(self, payment_service, order):
        with pytest.raises(InvalidArgumentError):
            payment_service.apply_signal(order["id"], "refund")


class TestStartPayment:
    def test_amount_in_cents(self, payment_service, order):
        intent = payment_service.start_payment(1, order["id"])

        assert intent == {"order_id": order["id"], "amount_cents": 2550, "currency": "usd"}

    def test_stored_total_converts_exactly(self, payment_service, session):
        o = OrderModel(user_id=3, total_price=Decimal("19.99"), payment_status=PaymentStatus.PENDING)
        session.add(o)
        session.commit()

        assert payment_service.start_payment(3, o.id)["amount_cents"] == 1999

    @pytest.mark.parametrize(
        "amount, cents",
        [("2.675", 268), ("0.005", 1), ("1.0049", 100), ("19.99", 1999), ("0", 0)],
    )
    def test_to_cents_rounds_half_up(self, amount, cents):
        assert to_cents(Decimal(amount)) == cents

    def test_paid_order_rejected(self, payment_service, order):
        payment_service.mark_paid(order["id"])

        with pytest.raises(AlreadyPaidError):
            payment_service.start_payment(1, order["id"])

    def test_foreign_order_rejected(self, payment_service, order):
        with pytest.raises(NotFoundError):
            payment_service.start_payment(2, order["id"])


class TestSignature:
    def test_no_secret_disables_check(self):
        assert verify_signature(b"{}", None, "")

    def test_valid_signature(self):
        body = b'{"order_id": 1, "status": "confirm"}'

        assert verify_signature(body, sign_payload(body, "s3cret"), "s3cret")

    def test_missing_or_wrong_signature(self):
        body = b'{"order_id": 1, "status": "confirm"}'

        assert not verify_signature(body, None, "s3cret")
        assert not verify_signature(body, sign_payload(body, "other"), "s3cret")
        assert not verify_signature(body + b" ", sign_payload(body, "s3cret"), "s3cret")

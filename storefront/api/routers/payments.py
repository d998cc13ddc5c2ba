# storefront/api/routers/payments.py
from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request
from pydantic import ValidationError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from storefront.api.deps import get_notification_service
from storefront.data.database import get_db
from storefront.domain.exceptions import ShopError, raise_http
from storefront.domain.schemas import CheckoutIn, PaymentIntentOut, PaymentResultOut, PaymentSignalIn
from storefront.services.payment_service import PaymentService, verify_signature
from storefront.utils.settings import PAYMENT_WEBHOOK_SECRET
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/payments", tags=["payments"])


def get_service(
    db: Session = Depends(get_db),
    notification_service=Depends(get_notification_service),
) -> PaymentService:
    return PaymentService(db, notification_service=notification_service)


def get_webhook_secret() -> str:
    return PAYMENT_WEBHOOK_SECRET


@router.post("/checkout", response_model=PaymentIntentOut)
def start_payment(
    payload: CheckoutIn,
    user_id: int = Query(..., gt=0),
    svc: PaymentService = Depends(get_service),
):
    try:
        return svc.start_payment(user_id, payload.order_id)
    except ShopError as e:
        raise_http(e)


@router.post("/{order_id}/confirm", response_model=PaymentResultOut)
def confirm_payment(
    order_id: int,
    user_id: int = Query(..., gt=0),
    svc: PaymentService = Depends(get_service),
):
    """
    Simplified confirmation call for the order owner.
    """
    try:
        return svc.mark_paid(order_id, expected_user_id=user_id)
    except ShopError as e:
        raise_http(e)


@router.post("/webhook", response_model=PaymentResultOut)
async def payment_webhook(
    request: Request,
    x_payment_signature: str | None = Header(None),
    secret: str = Depends(get_webhook_secret),
    svc: PaymentService = Depends(get_service),
):
    """
    Payment notifier signal: {"order_id": ..., "status": "confirm" | "fail"}.
    Delivered at least once, replays answer 200 with changed=false.
    """
    body = await request.body()

    if not verify_signature(body, x_payment_signature, secret):
        logger.warning("Payment webhook rejected: bad signature")
        raise HTTPException(status_code=400, detail="Invalid webhook signature")

    try:
        signal = PaymentSignalIn.model_validate_json(body)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=e.errors(include_url=False, include_context=False))

    try:
        # sync session work stays off the event loop
        return await run_in_threadpool(svc.apply_signal, signal.order_id, signal.status)
    except ShopError as e:
        raise_http(e)

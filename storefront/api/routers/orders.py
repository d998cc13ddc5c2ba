# storefront/api/routers/orders.py
from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from storefront.api.deps import get_lock_service, get_notification_service, get_product_client
from storefront.data.database import get_db
from storefront.domain.exceptions import ShopError, raise_http
from storefront.domain.schemas import OrderDetailOut, OrderOut
from storefront.services.order_service import OrderService

router = APIRouter(prefix="/orders", tags=["orders"])


def get_service(
    db: Session = Depends(get_db),
    product_client=Depends(get_product_client),
    notification_service=Depends(get_notification_service),
    lock_service=Depends(get_lock_service),
) -> OrderService:
    return OrderService(
        db=db,
        product_client=product_client,
        notification_service=notification_service,
        lock_service=lock_service,
    )


@router.post("", response_model=OrderOut, status_code=201)
def create_order(
    user_id: int = Query(..., gt=0),
    svc: OrderService = Depends(get_service),
):
    """
    Creates an order from the user's cart and empties the cart.
    """
    try:
        return svc.create_order(user_id)
    except ShopError as e:
        raise_http(e)


@router.get("", response_model=List[OrderOut])
def list_orders(
    user_id: int = Query(..., gt=0),
    svc: OrderService = Depends(get_service),
):
    return svc.list_orders(user_id)


@router.get("/{order_id}", response_model=OrderDetailOut)
def get_order(
    order_id: int,
    user_id: int = Query(..., gt=0),
    svc: OrderService = Depends(get_service),
):
    try:
        return svc.get_order(user_id, order_id)
    except ShopError as e:
        raise_http(e)

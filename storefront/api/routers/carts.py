# storefront/api/routers/carts.py
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from storefront.api.deps import get_lock_service, get_product_client
from storefront.data.database import get_db
from storefront.domain.exceptions import ShopError, raise_http
from storefront.domain.schemas import CartLineIn, CartOut
from storefront.services.cart_service import CartService

router = APIRouter(prefix="/cart", tags=["cart"])


def get_service(
    db: Session = Depends(get_db),
    product_client=Depends(get_product_client),
    lock_service=Depends(get_lock_service),
) -> CartService:
    return CartService(
        db=db,
        product_client=product_client,
        lock_service=lock_service,
    )


@router.get("", response_model=CartOut)
def get_cart(
    user_id: int = Query(..., gt=0),
    svc: CartService = Depends(get_service),
):
    try:
        return svc.get_cart(user_id)
    except ShopError as e:
        raise_http(e)


@router.post("/items", response_model=CartOut)
def upsert_item(
    payload: CartLineIn,
    user_id: int = Query(..., gt=0),
    svc: CartService = Depends(get_service),
):
    """
    Adds a product or overwrites its quantity (re-adding does not sum).
    """
    try:
        return svc.upsert_line(user_id, payload.product_id, payload.quantity)
    except ShopError as e:
        raise_http(e)


@router.delete("/items/{product_id}", response_model=CartOut)
def remove_item(
    product_id: int,
    user_id: int = Query(..., gt=0),
    svc: CartService = Depends(get_service),
):
    try:
        return svc.remove_line(user_id, product_id)
    except ShopError as e:
        raise_http(e)

# storefront/domain/schemas.py
from pydantic import BaseModel, Field, ConfigDict
from typing import List, Literal, Optional
from decimal import Decimal
from datetime import datetime

from storefront.data.models.order import PaymentStatus


class CartLineIn(BaseModel):
    """Add a product to the cart or overwrite its quantity."""

    product_id: int = Field(..., gt=0, description="Product ID (> 0)")
    quantity: Optional[int] = Field(None, ge=1, description="Quantity, defaults to 1")


class CartLineOut(BaseModel):
    product_id: int
    name: str
    unit_price: Decimal
    quantity: int
    line_total: Decimal


class CartOut(BaseModel):
    user_id: int
    items: List[CartLineOut]
    total: Decimal


class OrderOut(BaseModel):
    """Order header."""

    id: int
    user_id: int
    total_price: Decimal
    payment_status: PaymentStatus
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class OrderLineOut(BaseModel):
    product_id: int
    name: Optional[str] = None
    quantity: int
    item_price: Decimal
    line_total: Decimal


class OrderDetailOut(BaseModel):
    order: OrderOut
    items: List[OrderLineOut]


class CheckoutIn(BaseModel):
    order_id: int = Field(..., gt=0, description="Order ID (> 0)")


class PaymentIntentOut(BaseModel):
    order_id: int
    amount_cents: int
    currency: str


class PaymentSignalIn(BaseModel):
    """Confirmation signal from the payment notifier (delivered at least once)."""

    order_id: int = Field(..., gt=0)
    status: Literal["confirm", "fail"]


class PaymentResultOut(BaseModel):
    order_id: int
    payment_status: PaymentStatus
    changed: bool

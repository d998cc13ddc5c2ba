# storefront/data/models/order.py
import enum
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, DateTime, Numeric, Enum
from sqlalchemy.orm import relationship

from storefront.data.database import Base


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"


class OrderModel(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, nullable=False, index=True)

    # computed once at checkout, never recomputed
    total_price = Column(Numeric(10, 2), nullable=False)
    payment_status = Column(
        Enum(
            PaymentStatus,
            name="payment_status",
            values_callable=lambda e: [m.value for m in e],
            validate_strings=True,
        ),
        nullable=False,
        default=PaymentStatus.PENDING,
    )
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))

    items = relationship(
        "OrderItemModel",
        back_populates="order",
        order_by="OrderItemModel.id",
    )

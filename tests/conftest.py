"""Shared pytest fixtures: in-memory SQLite, stub catalog, recording notifier."""

import os

# must be set before storefront.utils.settings is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["CART_LOCKS_ENABLED"] = "false"
os.environ["PAYMENT_WEBHOOK_SECRET"] = ""

from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from storefront.data.database import Base
import storefront.data.models  # noqa: F401
from storefront.domain.exceptions import ProductNotFoundError
from storefront.services.cart_service import CartService
from storefront.services.order_service import OrderService
from storefront.services.payment_service import PaymentService


class FakeCatalog:
    """In-memory stand-in for ProductClient."""

    def __init__(self, products=None):
        self.products = dict(products or {})

    def set_price(self, product_id: int, price: str):
        self.products[product_id]["price"] = Decimal(price)

    def remove(self, product_id: int):
        del self.products[product_id]

    def fetch_product(self, product_id: int) -> dict:
        if product_id not in self.products:
            raise ProductNotFoundError(product_id)
        return dict(self.products[product_id])

    def get_unit_price(self, product_id: int) -> Decimal:
        return self.fetch_product(product_id)["price"]


class RecordingNotifier:
    def __init__(self):
        self.orders = []
        self.payments = []

    def send_order_notification(self, user_id: int, order_id: int):
        self.orders.append((user_id, order_id))

    def send_payment_notification(self, user_id: int, order_id: int, payment_status: str):
        self.payments.append((user_id, order_id, payment_status))


def make_catalog():
    return FakeCatalog(
        {
            7: {"id": 7, "name": "Screen Protector", "price": Decimal("10.00")},
            9: {"id": 9, "name": "Phone Ring Holder", "price": Decimal("5.50")},
            11: {"id": 11, "name": "USB-C Hub", "price": Decimal("49.99")},
        }
    )


@pytest.fixture
def engine():
    """In-memory SQLite shared by every session of one test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def session(session_factory):
    session = session_factory()
    yield session
    session.rollback()
    session.close()


@pytest.fixture
def catalog():
    return make_catalog()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def cart_service(session, catalog):
    return CartService(session, product_client=catalog)


@pytest.fixture
def order_service(session, catalog, notifier):
    return OrderService(session, product_client=catalog, notification_service=notifier)


@pytest.fixture
def payment_service(session, notifier):
    return PaymentService(session, notification_service=notifier)

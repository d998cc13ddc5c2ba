# storefront/repos/cart_repo.py
from typing import List

from sqlalchemy import select, update, delete
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from storefront.data.models.cart import CartModel
from storefront.data.models.cart_item import CartItemModel


class CartRepo:
    def __init__(self, db: Session):
        self.db = db

    def _insert(self, model):
        # ON CONFLICT is dialect specific
        if self.db.get_bind().dialect.name == "postgresql":
            return postgresql.insert(model)
        return sqlite.insert(model)

    def get_cart_by_user(self, user_id: int) -> CartModel | None:
        return self.db.execute(
            select(CartModel)
            .where(CartModel.user_id == user_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def ensure_cart(self, user_id: int) -> CartModel:
        stmt = (
            self._insert(CartModel)
            .values(user_id=user_id, version=1)
            .on_conflict_do_nothing(index_elements=["user_id"])
        )
        self.db.execute(stmt)
        return self.get_cart_by_user(user_id)

    def get_cart_items(self, cart_id: int) -> List[CartItemModel]:
        return list(
            self.db.execute(
                select(CartItemModel)
                .where(CartItemModel.cart_id == cart_id)
                .order_by(CartItemModel.id)
            ).scalars()
        )

    def upsert_cart_item(self, cart_id: int, product_id: int, quantity: int) -> None:
        # single statement, quantity is overwritten, not summed
        stmt = self._insert(CartItemModel).values(
            cart_id=cart_id,
            product_id=product_id,
            quantity=quantity,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["cart_id", "product_id"],
            set_={"quantity": stmt.excluded.quantity},
        )
        self.db.execute(stmt)

    def delete_cart_item(self, cart_id: int, product_id: int) -> int:
        res = self.db.execute(
            delete(CartItemModel)
            .where(
                CartItemModel.cart_id == cart_id,
                CartItemModel.product_id == product_id,
            )
            .execution_options(synchronize_session=False)
        )
        return res.rowcount

    def clear_cart(self, cart_id: int) -> int:
        res = self.db.execute(
            delete(CartItemModel)
            .where(CartItemModel.cart_id == cart_id)
            .execution_options(synchronize_session=False)
        )
        return res.rowcount

    def bump_version(self, cart_id: int) -> None:
        # takes the cart row lock before the lines are touched
        self.db.execute(
            update(CartModel)
            .where(CartModel.id == cart_id)
            .values(version=CartModel.version + 1)
            .execution_options(synchronize_session=False)
        )

    def update_cart_version(self, cart_id: int, old_version: int, new_data: dict) -> int:
        """Compare-and-swap on the cart generation, returns affected rows."""
        res = self.db.execute(
            update(CartModel)
            .where(CartModel.id == cart_id, CartModel.version == old_version)
            .values(**new_data)
            .execution_options(synchronize_session=False)
        )
        return res.rowcount

    def commit(self):
        self.db.commit()

    def rollback(self):
        self.db.rollback()

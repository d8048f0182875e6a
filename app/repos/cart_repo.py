# app/repos/cart_repo.py
from sqlalchemy import select, delete, update
from sqlalchemy.orm import Session

from app.data.models.cart_item import CartItemModel
from app.data.models.product import ProductModel


class CartRepo:
    def __init__(self, db: Session):
        self.db = db

    def get_lines_with_products(self, user_id: str) -> list[tuple[CartItemModel, ProductModel | None]]:
        #outer join - linia bez produktu (usunięty) wraca z None
        stmt = (
            select(CartItemModel, ProductModel)
            .outerjoin(ProductModel, ProductModel.id == CartItemModel.product_id)
            .where(CartItemModel.user_id == user_id)
            .order_by(CartItemModel.id)
        )
        return [(line, product) for line, product in self.db.execute(stmt).all()]

    def get_item(self, user_id: str, product_id: str) -> CartItemModel | None:
        return self.db.execute(
            select(CartItemModel).where(
                CartItemModel.user_id == user_id,
                CartItemModel.product_id == product_id,
            )
        ).scalar_one_or_none()

    def get_product(self, product_id: str) -> ProductModel | None:
        return self.db.get(ProductModel, product_id)

    def add_item(self, item: CartItemModel) -> CartItemModel:
        self.db.add(item)
        self.db.flush()
        return item

    def delete_item(self, user_id: str, product_id: str) -> int:
        result = self.db.execute(
            delete(CartItemModel).where(
                CartItemModel.user_id == user_id,
                CartItemModel.product_id == product_id,
            )
        )
        return result.rowcount

    def consume(self, user_id: str, product_id: str, quantity: int):
        #tylko ilość zamówiona - to co doszło w międzyczasie zostaje w koszyku
        self.db.execute(
            delete(CartItemModel)
            .where(
                CartItemModel.user_id == user_id,
                CartItemModel.product_id == product_id,
                CartItemModel.quantity <= quantity,
            )
            .execution_options(synchronize_session=False)
        )
        self.db.execute(
            update(CartItemModel)
            .where(
                CartItemModel.user_id == user_id,
                CartItemModel.product_id == product_id,
                CartItemModel.quantity > quantity,
            )
            .values(quantity=CartItemModel.quantity - quantity)
            .execution_options(synchronize_session=False)
        )

    def commit(self):
        self.db.commit()

    def rollback(self):
        self.db.rollback()

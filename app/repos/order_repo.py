# app/repos/order_repo.py
from sqlalchemy import select, update, exists
from sqlalchemy.orm import Session, selectinload

from app.data.models.order import OrderModel
from app.data.models.order_item import OrderItemModel
from app.data.models.payment_attempt import PaymentAttemptModel
from app.data.models.product import ProductModel


class OrderRepo:
    def __init__(self, db: Session):
        self.db = db

    def add_order(self, order: OrderModel) -> OrderModel:
        self.db.add(order)
        self.db.flush()
        return order

    def add_item(self, item: OrderItemModel) -> OrderItemModel:
        self.db.add(item)
        self.db.flush()
        return item

    def product_exists(self, product_id: str) -> bool:
        return self.db.execute(select(exists().where(ProductModel.id == product_id))).scalar()

    def get_order(self, order_id: str) -> OrderModel | None:
        return self.db.execute(
            select(OrderModel)
            .options(selectinload(OrderModel.items))
            .where(OrderModel.id == order_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    # próby płatności - każde wydane zdalne zamówienie/sesja

    def add_attempt(self, attempt: PaymentAttemptModel) -> PaymentAttemptModel:
        self.db.add(attempt)
        self.db.flush()
        return attempt

    def has_attempt(self, order_id: str, remote_id: str) -> bool:
        return self.db.execute(
            select(
                exists().where(
                    PaymentAttemptModel.order_id == order_id,
                    PaymentAttemptModel.remote_id == remote_id,
                )
            )
        ).scalar()

    def count_attempts(self, order_id: str) -> int:
        return len(
            self.db.execute(
                select(PaymentAttemptModel.id).where(PaymentAttemptModel.order_id == order_id)
            ).all()
        )

    def get_by_remote_id(self, remote_id: str) -> OrderModel | None:
        """Zamówienie po dowolnej swojej próbie, także tej zastąpionej przez retry."""
        return self.db.execute(
            select(OrderModel)
            .join(PaymentAttemptModel, PaymentAttemptModel.order_id == OrderModel.id)
            .where(PaymentAttemptModel.remote_id == remote_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def update_order(self, order_id: str, new_data: dict, payment_status: str | tuple | None = None) -> int:
        """
        Jeden UPDATE po id. Z `payment_status` działa jak warunek (compare-and-set):
        update orders set ... where id = :id and payment_status in (:payment_status)
        """
        stmt = update(OrderModel).where(OrderModel.id == order_id)
        if isinstance(payment_status, str):
            stmt = stmt.where(OrderModel.payment_status == payment_status)
        elif payment_status is not None:
            stmt = stmt.where(OrderModel.payment_status.in_(payment_status))
        result = self.db.execute(stmt.values(**new_data).execution_options(synchronize_session=False))
        return result.rowcount

    def commit(self):
        self.db.commit()

    def rollback(self):
        self.db.rollback()

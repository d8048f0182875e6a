# app/repos/payment_event_repo.py
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.data.models.payment_event import PaymentEventModel


class PaymentEventRepo:
    def __init__(self, db: Session):
        self.db = db

    def exists(self, event_key: str) -> bool:
        return self.db.execute(
            select(PaymentEventModel.id).where(PaymentEventModel.event_key == event_key)
        ).first() is not None

    def record(self, event: PaymentEventModel) -> PaymentEventModel:
        #flush - duplikat klucza wybucha IntegrityError jeszcze przed commitem
        self.db.add(event)
        self.db.flush()
        return event

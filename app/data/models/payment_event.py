from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, DateTime

from app.data.database import Base


class PaymentEventModel(Base):
    """Rejestr przetworzonych webhooków (idempotencja przy at-least-once)."""

    __tablename__ = "payment_events"

    id = Column(Integer, primary_key=True)
    event_key = Column(String, nullable=False, unique=True)
    provider = Column(String(20), nullable=False)
    event_type = Column(String, nullable=False)
    order_id = Column(String(36), nullable=True, index=True)
    endpoint_id = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))

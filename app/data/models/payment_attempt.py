from datetime import datetime, timezone

from sqlalchemy import Column, Integer, ForeignKey, String, DateTime

from app.data.database import Base


class PaymentAttemptModel(Base):
    """
    Każde zdalne zamówienie/sesja wydane dla zamówienia (checkout + każdy retry).
    Kolumny correlation w orders trzymają tylko ostatnią próbę, tu są wszystkie.
    """

    __tablename__ = "payment_attempts"

    id = Column(Integer, primary_key=True)
    order_id = Column(String(36), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    payment_method = Column(String(10), nullable=False)
    remote_id = Column(String, nullable=False, unique=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))

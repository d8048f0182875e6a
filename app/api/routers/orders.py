# app/api/routers/orders.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.deps import get_current_user_id, get_rails
from app.api.routers.checkout import checkout_response
from app.data.database import get_db
from app.domain.schemas import CheckoutOut, OrderOut
from app.services.order_service import OrderService
from app.services.rails import PaymentRails

router = APIRouter(prefix="/orders", tags=["orders"])


def get_service(db: Session, rails: PaymentRails):
    return OrderService(db, rails)


@router.get("/{order_id}", response_model=OrderOut)
def get_order(
    order_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    rails: PaymentRails = Depends(get_rails),
):
    """
    Szczegóły zamówienia - klient odpytuje paymentStatus po płatności.
    """
    svc = get_service(db, rails)
    return svc.get_order(user_id, order_id)


@router.post("/{order_id}/retry-payment", response_model=CheckoutOut)
def retry_payment(
    order_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    rails: PaymentRails = Depends(get_rails),
):
    """
    Ponowna inicjalizacja płatności dla zamówienia wciąż pending lub failed
    (np. po RailUnavailableError albo odrzuconej próbie).
    """
    svc = get_service(db, rails)
    return checkout_response(svc.retry_payment(user_id, order_id))

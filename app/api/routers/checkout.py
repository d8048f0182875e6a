# app/api/routers/checkout.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.deps import get_current_user_id, get_rails
from app.data.database import get_db
from app.data.models.order import PaymentMethod
from app.domain.schemas import CheckoutIn, CheckoutOut, UpiCheckoutOut, CardCheckoutOut, PublishableKeyOut
from app.services.order_service import OrderService, CheckoutResult
from app.services.rails import PaymentRails

router = APIRouter(tags=["checkout"])


def get_service(db: Session, rails: PaymentRails):
    return OrderService(db, rails)


def checkout_response(result: CheckoutResult):
    payload = result.payload
    if payload.method == PaymentMethod.UPI:
        return UpiCheckoutOut(
            order_id=result.order_id,
            razorpay_order_id=payload.remote_id,
            amount=payload.amount_minor,
            currency=payload.currency,
            intent_link=payload.intent_link,
        )
    return CardCheckoutOut(
        order_id=result.order_id,
        session_id=payload.remote_id,
        checkout_url=payload.checkout_url,
    )


@router.post("/checkout", response_model=CheckoutOut)
def checkout(
    payload: CheckoutIn,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    rails: PaymentRails = Depends(get_rails),
):
    """
    Zamienia koszyk w zamówienie i inicjuje płatność wybraną szyną.
    UPI: zwraca razorpayOrderId + intentLink (QR); karta: sessionId do redirectu.
    """
    svc = get_service(db, rails)
    result = svc.checkout(
        user_id,
        payload.delivery_address.model_dump(),
        payload.delivery_slot,
        payload.delivery_fee,
        payload.payment_method,
    )
    return checkout_response(result)


@router.get("/stripe/publishable-key", response_model=PublishableKeyOut)
def publishable_key(rails: PaymentRails = Depends(get_rails)):
    return PublishableKeyOut(publishable_key=rails.hosted_checkout.publishable_key)

# app/api/routers/payment_intent.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.deps import get_current_user_id, get_rails
from app.data.database import get_db
from app.domain.schemas import QrCodeOut, VerifyPaymentIn, VerifyPaymentOut, PaymentDetailsOut
from app.services.payment_service import PaymentService
from app.services.rails import PaymentRails

router = APIRouter(prefix="/payment-intent", tags=["payment-intent"])


def get_service(db: Session, rails: PaymentRails):
    return PaymentService(db, rails)


@router.get("/qr-code/{order_id}", response_model=QrCodeOut)
def qr_code(
    order_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    rails: PaymentRails = Depends(get_rails),
):
    svc = get_service(db, rails)
    return svc.qr_code(user_id, order_id)


@router.post("/verify-payment", response_model=VerifyPaymentOut)
def verify_payment(
    payload: VerifyPaymentIn,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    rails: PaymentRails = Depends(get_rails),
):
    svc = get_service(db, rails)
    return svc.verify_payment(
        user_id,
        payload.order_id,
        payload.remote_order_id,
        payload.remote_payment_id,
        payload.signature,
    )


@router.get("/payment-details/{order_id}", response_model=PaymentDetailsOut)
def payment_details(
    order_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    rails: PaymentRails = Depends(get_rails),
):
    svc = get_service(db, rails)
    return svc.payment_details(user_id, order_id)

# app/api/routers/webhooks.py
from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from app.api.deps import get_rails
from app.data.database import get_db
from app.domain.errors import WebhookSignatureError
from app.domain.schemas import WebhookAckOut
from app.services.rails import PaymentRails
from app.services.webhook_service import WebhookService, STRIPE, RAZORPAY
from app.utils.logging import security_logger

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


def get_service(db: Session, rails: PaymentRails):
    return WebhookService(db, rails)


@router.post("/payment", response_model=WebhookAckOut)
async def payment_webhook(
    request: Request,
    endpoint_id: str | None = Query(None, alias="endpointId"),
    db: Session = Depends(get_db),
    rails: PaymentRails = Depends(get_rails),
):
    """
    Surowe body - podpis liczony na bajtach, bez uwierzytelnienia wywołującego.
    Provider rozpoznawany po nagłówku podpisu.
    """
    payload = await request.body()

    event_id = None
    if "stripe-signature" in request.headers:
        provider = STRIPE
        signature = request.headers["stripe-signature"]
    elif "x-razorpay-signature" in request.headers:
        provider = RAZORPAY
        signature = request.headers["x-razorpay-signature"]
        event_id = request.headers.get("x-razorpay-event-id")
    else:
        security_logger.warning(f"Webhook without signature header on endpoint {endpoint_id}")
        raise WebhookSignatureError("Missing webhook signature header")

    svc = get_service(db, rails)
    outcome = await run_in_threadpool(svc.process_webhook, payload, signature, endpoint_id, provider, event_id)
    return WebhookAckOut(outcome=outcome)

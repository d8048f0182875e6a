# app/services/webhook_service.py
from dataclasses import dataclass, field

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.data.models.order import OrderModel, OrderStatus, PaymentStatus, OPEN_PAYMENT_STATUSES
from app.data.models.payment_event import PaymentEventModel
from app.domain.errors import WebhookSignatureError
from app.repos.order_repo import OrderRepo
from app.repos.payment_event_repo import PaymentEventRepo
from app.services.notification_service import NotificationService
from app.services.rails import PaymentRails
from app.utils.logging import get_logger, security_logger

logger = get_logger(__name__)

STRIPE = "stripe"
RAZORPAY = "razorpay"

PROCESSED = "processed"
DUPLICATE = "duplicate"
IGNORED = "ignored"

STRIPE_COMPLETED = ("checkout.session.completed", "checkout.session.async_payment_succeeded")
STRIPE_FAILED = ("checkout.session.expired", "checkout.session.async_payment_failed")
RAZORPAY_COMPLETED = ("payment.captured", "order.paid")
RAZORPAY_FAILED = ("payment.failed",)


@dataclass
class Transition:
    event_type: str
    event_id: str | None = None
    order: OrderModel | None = None
    target: PaymentStatus | None = None
    values: dict = field(default_factory=dict)
    allowed_from: tuple = (PaymentStatus.PENDING.value,)
    fallback_key: str | None = None


class WebhookService:
    """
    Asynchroniczne potwierdzenia płatności od providerów.

    Payload to nieprzezroczyste bajty do momentu weryfikacji podpisu.
    Zamówienie szukane po dowolnej swojej próbie (payment_attempts), więc płatność
    na próbę zastąpioną przez retry nadal je potwierdza.
    Idempotencja (at-least-once): klucz = id eventu providera, a bez niego
    "<order_id>:<docelowy payment_status>". Klucz zapisywany w payment_events
    w tej samej transakcji co warunkowy UPDATE zamówienia.
    """

    def __init__(self, db: Session, rails: PaymentRails, notifications: NotificationService | None = None):
        self.repo = OrderRepo(db)
        self.events = PaymentEventRepo(db)
        self.rails = rails
        self.notifications = notifications or NotificationService()

    def process_webhook(
        self,
        payload: bytes,
        signature: str | None,
        endpoint_id: str | None = None,
        provider: str = STRIPE,
        event_id: str | None = None,
    ) -> str:
        if not isinstance(payload, (bytes, bytearray)):
            raise WebhookSignatureError("Webhook payload must be raw bytes")

        try:
            if provider == STRIPE:
                event = self.rails.hosted_checkout.construct_event(bytes(payload), signature)
                transition = self._stripe_transition(event)
            elif provider == RAZORPAY:
                event = self.rails.intent_link.verify_webhook(bytes(payload), signature)
                transition = self._razorpay_transition(event, event_id)
            else:
                raise WebhookSignatureError(f"Unknown webhook provider {provider!r}")
        except WebhookSignatureError as e:
            security_logger.warning(f"Rejected {provider} webhook on endpoint {endpoint_id}: {e.message}")
            raise

        return self._apply(transition, provider, endpoint_id)

    def _stripe_transition(self, event: dict) -> Transition:
        event_type = event.get("type", "")
        session = (event.get("data") or {}).get("object") or {}
        session_id = session.get("id")
        transition = Transition(event_type=event_type, event_id=event.get("id"))

        if event_type in STRIPE_COMPLETED:
            #completed z payment_status != paid = płatność asynchroniczna jeszcze trwa
            if event_type == "checkout.session.completed" and session.get("payment_status") != "paid":
                return transition
            transition.target = PaymentStatus.COMPLETED
            transition.allowed_from = OPEN_PAYMENT_STATUSES
            transition.values = {
                "payment_status": PaymentStatus.COMPLETED.value,
                "status": OrderStatus.CONFIRMED.value,
                "stripe_session_id": session_id,
            }
        elif event_type in STRIPE_FAILED:
            transition.target = PaymentStatus.FAILED
            transition.values = {"payment_status": PaymentStatus.FAILED.value}
        else:
            return transition

        order = self.repo.get_by_remote_id(session_id) if session_id else None

        metadata_order_id = (session.get("metadata") or {}).get("order_id")
        if order is not None and metadata_order_id and metadata_order_id != order.id:
            security_logger.warning(
                f"Stripe session {session_id} metadata points to order {metadata_order_id}, stored for {order.id}"
            )
            order = None

        #wygaśnięcie sesji zastąpionej przez retry nie zamyka zamówienia
        if order is not None and transition.target == PaymentStatus.FAILED and order.stripe_session_id != session_id:
            logger.info(f"Stripe session {session_id} of order {order.id} was superseded, ignoring {event_type}")
            order = None

        transition.order = order
        return transition

    def _razorpay_transition(self, event: dict, event_id: str | None) -> Transition:
        event_type = event.get("event", "")
        payload = event.get("payload") or {}
        payment = (payload.get("payment") or {}).get("entity") or {}
        remote_order = (payload.get("order") or {}).get("entity") or {}
        remote_order_id = payment.get("order_id") or remote_order.get("id")
        transition = Transition(event_type=event_type, event_id=event_id)

        if event_type in RAZORPAY_COMPLETED:
            transition.target = PaymentStatus.COMPLETED
            transition.allowed_from = OPEN_PAYMENT_STATUSES
            transition.values = {
                "payment_status": PaymentStatus.COMPLETED.value,
                "status": OrderStatus.CONFIRMED.value,
                "razorpay_order_id": remote_order_id,
            }
            if payment.get("id"):
                transition.values["razorpay_payment_id"] = payment["id"]
        elif event_type in RAZORPAY_FAILED:
            #zamówienie Razorpay przyjmuje kolejne próby - nieudana próba nie zamyka zamówienia
            transition.target = PaymentStatus.FAILED
            if payment.get("id"):
                transition.fallback_key = f"{payment['id']}:{PaymentStatus.FAILED.value}"
        else:
            return transition

        transition.order = self.repo.get_by_remote_id(remote_order_id) if remote_order_id else None
        return transition

    def _apply(self, transition: Transition, provider: str, endpoint_id: str | None) -> str:
        if transition.target is None:
            logger.info(f"Ignoring {provider} event {transition.event_type} ({transition.event_id})")
            return IGNORED

        order = transition.order
        if order is None:
            logger.warning(f"{provider} event {transition.event_type} ({transition.event_id}) matches no order, ignoring")
            return IGNORED

        order_id = order.id
        user_id = order.user_id
        key = transition.event_id or transition.fallback_key or f"{order_id}:{transition.target.value}"

        if self.events.exists(key):
            logger.info(f"{provider} event {key} already processed for order {order_id}")
            return DUPLICATE

        rowcount = None
        if transition.values:
            rowcount = self.repo.update_order(order_id, transition.values, payment_status=transition.allowed_from)

        try:
            self.events.record(
                PaymentEventModel(
                    event_key=key,
                    provider=provider,
                    event_type=transition.event_type,
                    order_id=order_id,
                    endpoint_id=endpoint_id,
                )
            )
            self.repo.commit()
        except IntegrityError:
            #równoległa dostawa tego samego eventu wygrała wyścig
            self.repo.rollback()
            logger.info(f"{provider} event {key} recorded concurrently, treating as duplicate")
            return DUPLICATE

        if rowcount is None:
            logger.info(f"Payment attempt for order {order_id} failed ({provider} event {key}), order stays open")
            return PROCESSED

        if rowcount == 0:
            current = self.repo.get_order(order_id)
            logger.info(
                f"Order {order_id} payment already {current.payment_status}, "
                f"{provider} event {transition.event_type} is a no-op"
            )
            return DUPLICATE if current.payment_status == transition.target.value else IGNORED

        logger.info(f"Order {order_id} payment {transition.target.value} via {provider} event {key}")
        self.notifications.send_payment_notification(user_id, order_id, transition.target.value)
        return PROCESSED

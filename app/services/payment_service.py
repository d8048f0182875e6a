# app/services/payment_service.py
from sqlalchemy.orm import Session

from app.data.models.order import OrderStatus, PaymentStatus, PaymentMethod, OPEN_PAYMENT_STATUSES
from app.domain.errors import (
    CorrelationMismatchError,
    InvalidOrderStateError,
    MalformedVerificationRequestError,
    PaymentNotInitializedError,
    SignatureMismatchError,
)
from app.services.notification_service import NotificationService
from app.services.order_service import OrderService
from app.services.rails import PaymentRails
from app.utils.logging import get_logger, security_logger

logger = get_logger(__name__)


class PaymentService:
    """
    Synchroniczna brama weryfikacji płatności UPI (intent-link).

    Każdy krok jest twardą bramką - błąd przerywa bez zmiany stanu:
    1. komplet pól korelacji (stringi)
    2. podpis HMAC(secret, remoteOrderId|remotePaymentId)
    3. zamówienie istnieje
    4. zamówienie należy do wywołującego
    5. remoteOrderId to jedna z prób płatności tego zamówienia
    6. jeden warunkowy UPDATE: payment id + podpis + completed + confirmed
    """

    def __init__(self, db: Session, rails: PaymentRails, notifications: NotificationService | None = None):
        self.orders = OrderService(db, rails)
        self.repo = self.orders.repo
        self.rail = rails.intent_link
        self.notifications = notifications or NotificationService()

    def verify_payment(
        self,
        caller_id: str,
        order_id,
        remote_order_id,
        remote_payment_id,
        signature,
    ) -> dict:
        fields = {
            "orderId": order_id,
            "remoteOrderId": remote_order_id,
            "remotePaymentId": remote_payment_id,
            "signature": signature,
        }
        bad = [name for name, value in fields.items() if not isinstance(value, str) or not value]
        if bad:
            raise MalformedVerificationRequestError(f"Missing or invalid fields: {', '.join(bad)}")

        if not self.rail.verify_signature(remote_order_id, remote_payment_id, signature):
            security_logger.warning(
                f"Signature mismatch: user {caller_id}, order {order_id}, "
                f"remote order {remote_order_id}, remote payment {remote_payment_id}"
            )
            raise SignatureMismatchError()

        order = self.orders.get_owned_order(caller_id, order_id)

        #podpis wiąże tylko remoteOrderId|paymentId - musi to być próba TEGO zamówienia (także sprzed retry)
        if order.payment_method != PaymentMethod.UPI.value or not self.repo.has_attempt(order_id, remote_order_id):
            security_logger.warning(
                f"Verified payment {remote_payment_id} for remote order {remote_order_id} "
                f"submitted against order {order_id} (remote order {order.razorpay_order_id})"
            )
            raise CorrelationMismatchError()

        if order.payment_status == PaymentStatus.COMPLETED.value and order.razorpay_payment_id == remote_payment_id:
            logger.info(f"Payment {remote_payment_id} for order {order_id} already verified")
            return self._verified(order_id, remote_payment_id)

        #failed po nieudanej próbie nie blokuje udanej płatności
        rowcount = self.repo.update_order(
            order_id,
            {
                "razorpay_order_id": remote_order_id,
                "razorpay_payment_id": remote_payment_id,
                "razorpay_signature": signature,
                "payment_status": PaymentStatus.COMPLETED.value,
                "status": OrderStatus.CONFIRMED.value,
            },
            payment_status=OPEN_PAYMENT_STATUSES,
        )

        if rowcount == 0:
            self.repo.rollback()
            raise InvalidOrderStateError(f"Order {order_id} payment is already {order.payment_status}")

        self.repo.commit()
        logger.info(f"Payment {remote_payment_id} verified, order {order_id} confirmed")

        self.notifications.send_payment_notification(caller_id, order_id, PaymentStatus.COMPLETED.value)
        return self._verified(order_id, remote_payment_id)

    def qr_code(self, caller_id: str, order_id: str) -> dict:
        order = self.orders.get_owned_order(caller_id, order_id)

        if order.payment_method != PaymentMethod.UPI.value or not order.razorpay_order_id:
            raise PaymentNotInitializedError(f"UPI payment has not been initialized for order {order_id}")

        return {
            "order_id": order.id,
            "remote_order_id": order.razorpay_order_id,
            "amount": self.rail.minor_amount(order.total_amount),
            "currency": self.rail.currency,
            "intent_link": self.rail.generate_intent_payload(order.id, order.total_amount),
        }

    def payment_details(self, caller_id: str, order_id: str) -> dict:
        order = self.orders.get_owned_order(caller_id, order_id)

        if not order.razorpay_payment_id:
            raise PaymentNotInitializedError(f"No verified UPI payment for order {order_id}")

        details = self.rail.get_payment_details(order.razorpay_payment_id)
        return {
            "order_id": order.id,
            "payment_id": order.razorpay_payment_id,
            "status": details.get("status"),
            "method": details.get("method"),
            "amount": details.get("amount"),
            "currency": details.get("currency"),
        }

    @staticmethod
    def _verified(order_id: str, payment_id: str) -> dict:
        return {
            "success": True,
            "order_id": order_id,
            "payment_id": payment_id,
            "message": "Payment verified successfully",
        }

# app/services/stripe_client.py
import json
from decimal import Decimal

import stripe

from app.data.models.order import PaymentMethod
from app.domain.errors import InvalidOrderStateError, RailUnavailableError, WebhookSignatureError
from app.services.rails import PaymentRail, RailPayload
from app.utils.logging import get_logger

logger = get_logger(__name__)


class StripeCheckoutClient(PaymentRail):
    """
    Szyna hosted-checkout: sesja Stripe Checkout + redirect.
    Zaufanie do wyniku płatności tylko przez podpisane webhooki.
    """

    method = PaymentMethod.CARD

    def __init__(
        self,
        secret_key: str,
        publishable_key: str,
        webhook_secret: str,
        public_base_url: str,
        currency: str = "INR",
        timeout: float = 10,
        client: stripe.StripeClient | None = None,
    ):
        self.publishable_key = publishable_key
        self.webhook_secret = webhook_secret
        self.public_base_url = public_base_url.rstrip("/")
        self.currency = currency.lower()
        self.client = client or stripe.StripeClient(
            secret_key,
            http_client=stripe.RequestsClient(timeout=timeout),
        )

    def create_remote_order(self, amount: Decimal, reference: str, description: str) -> RailPayload:
        success_url = f"{self.public_base_url}/orders/{reference}?payment=success&session_id={{CHECKOUT_SESSION_ID}}"
        cancel_url = f"{self.public_base_url}/checkout?cancelled={reference}"
        session_id, url = self.create_remote_session(
            amount,
            reference,
            success_url,
            cancel_url,
            metadata={"order_id": reference, "description": description},
        )
        return RailPayload(
            method=self.method,
            remote_id=session_id,
            amount_minor=self.minor_amount(amount),
            currency=self.currency,
            checkout_url=url,
        )

    def create_remote_session(
        self,
        amount: Decimal,
        order_id: str,
        success_url: str,
        cancel_url: str,
        metadata: dict,
    ) -> tuple[str, str | None]:
        minor = self.minor_amount(amount)
        logger.info(f"Stripe checkout session for order {order_id} ({minor} {self.currency})")

        try:
            session = self.client.checkout.sessions.create(
                params={
                    "mode": "payment",
                    "payment_method_types": ["card"],
                    "line_items": [
                        {
                            "price_data": {
                                "currency": self.currency,
                                "product_data": {"name": metadata.get("description") or f"Order {order_id}"},
                                "unit_amount": minor,
                            },
                            "quantity": 1,
                        }
                    ],
                    "client_reference_id": order_id,
                    "success_url": success_url,
                    "cancel_url": cancel_url,
                    "metadata": metadata,
                }
            )
        except stripe.StripeError as e:
            logger.error(f"Stripe checkout session for order {order_id} failed: {e}")
            raise RailUnavailableError(f"Stripe error: {e.user_message or e}") from e

        session_id = getattr(session, "id", None)
        if not session_id:
            raise RailUnavailableError("Stripe error: session id missing in response")

        return session_id, getattr(session, "url", None)

    def attach_correlation(self, payload: RailPayload) -> dict:
        return {"stripe_session_id": payload.remote_id}

    def current_remote_id(self, order) -> str | None:
        return order.stripe_session_id

    def supersede_remote_order(self, remote_id: str):
        """
        Zamyka poprzednią sesję przed utworzeniem nowej.
        Sesja już opłacona (complete) blokuje retry - czekamy na webhook.
        """
        try:
            session = self.client.checkout.sessions.retrieve(remote_id)
            status = getattr(session, "status", None)
            if status == "open":
                self.client.checkout.sessions.expire(remote_id)
                logger.info(f"Stripe session {remote_id} expired before retry")
        except stripe.StripeError as e:
            logger.error(f"Could not expire Stripe session {remote_id}: {e}")
            raise RailUnavailableError(f"Stripe error: {e.user_message or e}") from e

        if status == "complete":
            raise InvalidOrderStateError(
                f"Stripe session {remote_id} is already paid, waiting for payment confirmation"
            )

    def construct_event(self, payload: bytes, signature: str | None) -> dict:
        """Weryfikuje Stripe-Signature na surowym body, zwraca event jako zwykły dict."""
        if not signature:
            raise WebhookSignatureError()
        try:
            body = payload.decode("utf-8")
            stripe.WebhookSignature.verify_header(
                body,
                signature,
                self.webhook_secret,
                tolerance=stripe.Webhook.DEFAULT_TOLERANCE,
            )
            return json.loads(body)
        except (ValueError, stripe.SignatureVerificationError) as e:
            raise WebhookSignatureError(f"Webhook signature verification failed: {e}") from e

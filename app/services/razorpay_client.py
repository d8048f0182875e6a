# app/services/razorpay_client.py
import hashlib
import hmac
import json
from decimal import Decimal
from urllib.parse import urlencode, quote

import requests

from app.data.models.order import PaymentMethod
from app.domain.errors import RailUnavailableError, WebhookSignatureError
from app.services.rails import PaymentRail, RailPayload
from app.utils.money import format_amount
from app.utils.retry import http_retry
from app.utils.logging import get_logger

logger = get_logger(__name__)


def _sign(secret: str, message: str | bytes) -> str:
    if isinstance(message, str):
        message = message.encode("utf-8")
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


class RazorpayClient(PaymentRail):
    """
    Szyna intent-link: zamówienie w Razorpay + link upi:// do QR.
    Zamówienia Razorpay nie da się anulować, więc supersede_remote_order nic nie robi.
    """

    method = PaymentMethod.UPI

    def __init__(
        self,
        key_id: str,
        key_secret: str,
        payee_vpa: str,
        payee_name: str = "FreshHarvest",
        webhook_secret: str = "",
        api_base: str = "https://api.razorpay.com/v1",
        currency: str = "INR",
        timeout: float = 10,
        session: requests.Session | None = None,
    ):
        self.key_id = key_id
        self.key_secret = key_secret
        self.payee_vpa = payee_vpa
        self.payee_name = payee_name
        self.webhook_secret = webhook_secret
        self.api_base = api_base.rstrip("/")
        self.currency = currency
        self.timeout = timeout
        self.session = session or requests.Session()

    @http_retry()
    def _send(self, method: str, path: str, **kwargs) -> requests.Response:
        url = f"{self.api_base}{path}"
        logger.info(f"RazorpayClient {method} {url}")
        return self.session.request(
            method,
            url,
            auth=(self.key_id, self.key_secret),
            timeout=self.timeout,
            **kwargs,
        )

    def _call(self, method: str, path: str, **kwargs) -> dict:
        #każdy błąd providera zamieniany na RailUnavailableError
        try:
            resp = self._send(method, path, **kwargs)
        except requests.Timeout as e:
            logger.error(f"Razorpay {method} {path} timed out: {e}")
            raise RailUnavailableError(f"Razorpay request timed out: {e}") from e
        except requests.RequestException as e:
            logger.error(f"Razorpay {method} {path} failed: {e}")
            raise RailUnavailableError(f"Razorpay request failed: {e}") from e

        if not resp.ok:
            description = _error_description(resp)
            logger.error(f"Razorpay {method} {path} returned {resp.status_code}: {description}")
            raise RailUnavailableError(f"Razorpay API error: {description}")

        try:
            return resp.json()
        except ValueError as e:
            raise RailUnavailableError("Razorpay API error: invalid JSON response") from e

    def create_remote_order(self, amount: Decimal, reference: str, description: str) -> RailPayload:
        minor = self.minor_amount(amount)
        data = self._call(
            "POST",
            "/orders",
            json={
                "amount": minor,
                "currency": self.currency,
                "receipt": reference,
                "notes": {"description": description},
            },
        )

        remote_id = data.get("id")
        if not remote_id:
            raise RailUnavailableError("Razorpay API error: order id missing in response")

        logger.info(f"Razorpay order {remote_id} created for {reference} ({minor} {self.currency})")

        return RailPayload(
            method=self.method,
            remote_id=remote_id,
            amount_minor=minor,
            currency=self.currency,
            intent_link=self.generate_intent_payload(reference, amount),
        )

    def attach_correlation(self, payload: RailPayload) -> dict:
        return {"razorpay_order_id": payload.remote_id}

    def current_remote_id(self, order) -> str | None:
        return order.razorpay_order_id

    def generate_intent_payload(self, order_id: str, amount: Decimal) -> str:
        # upi://pay?pa=<vpa>&pn=<nazwa>&am=<kwota>&cu=<waluta>&tn=<notatka>&tr=<referencja>
        params = {
            "pa": self.payee_vpa,
            "pn": self.payee_name,
            "am": format_amount(amount),
            "cu": self.currency,
            "tn": f"Order {order_id}",
            "tr": order_id,
        }
        return f"upi://pay?{urlencode(params, quote_via=quote, safe='@')}"

    def verify_signature(self, remote_order_id: str, remote_payment_id: str, signature: str) -> bool:
        try:
            expected = _sign(self.key_secret, f"{remote_order_id}|{remote_payment_id}")
            return hmac.compare_digest(expected, signature)
        except Exception as e:
            logger.error(f"Signature verification error: {e}")
            return False

    def get_payment_details(self, payment_id: str) -> dict:
        return self._call("GET", f"/payments/{payment_id}")

    def verify_webhook(self, payload: bytes, signature: str | None) -> dict:
        """Weryfikuje X-Razorpay-Signature (HMAC całego body) i dopiero wtedy parsuje JSON."""
        if not self.webhook_secret:
            raise WebhookSignatureError("Razorpay webhooks are not configured")
        if not signature or not hmac.compare_digest(_sign(self.webhook_secret, payload), signature):
            raise WebhookSignatureError()
        try:
            return json.loads(payload)
        except ValueError as e:
            raise WebhookSignatureError("Webhook payload is not valid JSON") from e


def _error_description(resp: requests.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.reason or f"HTTP {resp.status_code}"
    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict) and error.get("description"):
        return error["description"]
    return "Unknown error"

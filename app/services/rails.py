# app/services/rails.py
from dataclasses import dataclass
from decimal import Decimal

from app.data.models.order import PaymentMethod
from app.domain.errors import ConfigurationError, InvalidAmountError
from app.utils import settings
from app.utils.money import to_minor_units
from app.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class RailPayload:
    """Wynik utworzenia płatności po stronie providera."""

    method: PaymentMethod
    remote_id: str
    amount_minor: int
    currency: str
    intent_link: str | None = None
    checkout_url: str | None = None


class PaymentRail:
    """
    Wspólny kontrakt obu szyn płatności:
    - create_remote_order: zdalne zamówienie/sesja dla zamrożonej kwoty
    - attach_correlation: kolumny orders wiążące zamówienie z providerem
    - supersede_remote_order: zamknięcie poprzedniej próby przy retry
    """

    method: PaymentMethod

    def create_remote_order(self, amount: Decimal, reference: str, description: str) -> RailPayload:
        raise NotImplementedError

    def attach_correlation(self, payload: RailPayload) -> dict:
        raise NotImplementedError

    def current_remote_id(self, order) -> str | None:
        raise NotImplementedError

    def supersede_remote_order(self, remote_id: str):
        """Przed retry: stara próba przestaje przyjmować płatność (o ile provider to umie)."""
        return None

    @staticmethod
    def minor_amount(amount: Decimal) -> int:
        minor = to_minor_units(amount)
        #zero/ujemna kwota nie może dojść do providera
        if minor <= 0:
            raise InvalidAmountError(f"Amount must be positive, got {amount}")
        return minor


@dataclass
class PaymentRails:
    intent_link: "PaymentRail"
    hosted_checkout: "PaymentRail"

    def for_method(self, method: str) -> PaymentRail:
        if method == PaymentMethod.UPI.value:
            return self.intent_link
        return self.hosted_checkout


def build_rails() -> PaymentRails:
    """Tworzy klientów obu szyn raz, przy starcie procesu."""
    from app.services.razorpay_client import RazorpayClient
    from app.services.stripe_client import StripeCheckoutClient

    missing = settings.missing_rail_settings()
    if missing:
        raise ConfigurationError(f"Missing payment configuration: {', '.join(missing)}")

    logger.info("Payment rails configured (razorpay/upi, stripe/card)")

    return PaymentRails(
        intent_link=RazorpayClient(
            key_id=settings.RAZORPAY_KEY_ID,
            key_secret=settings.RAZORPAY_KEY_SECRET,
            payee_vpa=settings.UPI_PAYEE_VPA,
            payee_name=settings.UPI_PAYEE_NAME,
            webhook_secret=settings.RAZORPAY_WEBHOOK_SECRET,
            api_base=settings.RAZORPAY_API_BASE,
            currency=settings.CURRENCY,
            timeout=settings.RAIL_TIMEOUT_SECONDS,
        ),
        hosted_checkout=StripeCheckoutClient(
            secret_key=settings.STRIPE_SECRET_KEY,
            publishable_key=settings.STRIPE_PUBLISHABLE_KEY,
            webhook_secret=settings.STRIPE_WEBHOOK_SECRET,
            public_base_url=settings.PUBLIC_BASE_URL,
            currency=settings.CURRENCY,
            timeout=settings.RAIL_TIMEOUT_SECONDS,
        ),
    )

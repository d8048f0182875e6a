# app/domain/errors.py
"""
Błędy domeny checkout/płatności.

Każdy błąd niesie stabilny `kind` (dla klienta), kod HTTP i czytelny komunikat.
Handler w app.main zamienia je na {"error": ..., "kind": ...}.
"""


class CheckoutError(Exception):
    kind = "checkout_error"
    status_code = 500

    def __init__(self, message: str | None = None):
        self.message = message or self.__class__.__doc__ or self.kind
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"error": self.message, "kind": self.kind}


# 400 - błędy do poprawienia przez użytkownika

class ValidationError(CheckoutError):
    """Invalid request"""
    kind = "validation_error"
    status_code = 400


class InvalidAddressError(ValidationError):
    """Invalid delivery address"""
    kind = "invalid_address"

    def __init__(self, fields: dict[str, str]):
        self.fields = fields
        detail = "; ".join(f"{name}: {reason}" for name, reason in fields.items())
        super().__init__(f"Invalid delivery address ({detail})")

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["fields"] = self.fields
        return data


class InvalidPaymentMethodError(ValidationError):
    """Unsupported payment method"""
    kind = "invalid_payment_method"


class InvalidAmountError(ValidationError):
    """Invalid amount"""
    kind = "invalid_amount"


class MalformedVerificationRequestError(ValidationError):
    """Payment verification request is malformed"""
    kind = "malformed_verification_request"


class PaymentNotInitializedError(ValidationError):
    """Payment has not been initialized for this order"""
    kind = "payment_not_initialized"


class CorrelationMismatchError(ValidationError):
    """Payment does not belong to this order"""
    kind = "correlation_mismatch"


class EmptyCartError(CheckoutError):
    """Cart is empty"""
    kind = "empty_cart"
    status_code = 400


# bezpieczeństwo - logowane osobno, bez automatycznego retry

class SignatureMismatchError(CheckoutError):
    """Payment signature verification failed"""
    kind = "signature_mismatch"
    status_code = 400


class WebhookSignatureError(CheckoutError):
    """Webhook signature verification failed"""
    kind = "webhook_signature"
    status_code = 400


class UnauthenticatedError(CheckoutError):
    """Authentication required"""
    kind = "unauthenticated"
    status_code = 401


class OwnershipViolationError(CheckoutError):
    """Order belongs to another user"""
    kind = "ownership_violation"
    status_code = 403


class OrderNotFoundError(CheckoutError):
    """Order not found"""
    kind = "order_not_found"
    status_code = 404


class InvalidOrderStateError(CheckoutError):
    """Order is not in a state that allows this operation"""
    kind = "invalid_order_state"
    status_code = 409


# 500

class InvalidPriceError(CheckoutError):
    """Product has an invalid price"""
    kind = "invalid_price"


class RailUnavailableError(CheckoutError):
    """Payment provider is unavailable"""
    kind = "rail_unavailable"


class InternalInconsistencyError(CheckoutError):
    """Order could not be assembled"""
    kind = "internal_inconsistency"


class ConfigurationError(CheckoutError):
    """Payment configuration is incomplete"""
    kind = "configuration"

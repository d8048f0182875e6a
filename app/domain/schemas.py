# app/domain/schemas.py
from pydantic import BaseModel, Field, ConfigDict
from pydantic.alias_generators import to_camel
from typing import Annotated, Any, List, Literal, Optional, Union
from decimal import Decimal
from datetime import datetime


class ApiModel(BaseModel):
    """Baza: camelCase na wejściu/wyjściu, nieznane pola odrzucane."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
        from_attributes=True,
    )


# --- cart ---

class CartItemIn(ApiModel):
    """Schema dla dodawania produktu do koszyka."""

    product_id: str = Field(..., min_length=1, description="ID produktu")
    quantity: int = Field(1, gt=0, description="Ilość produktu (musi być > 0)")


class CartLineOut(ApiModel):
    product_id: str
    name: str
    price: Decimal
    quantity: int
    line_total: Decimal


class CartOut(ApiModel):
    items: List[CartLineOut]
    subtotal: Decimal


# --- checkout ---

class DeliveryAddressIn(ApiModel):
    """Adres dostawy - pustość i format pincode sprawdza OrderService."""

    line1: str
    line2: Optional[str] = None
    city: str
    state: str
    pincode: str


class CheckoutIn(ApiModel):
    delivery_address: DeliveryAddressIn
    delivery_slot: str = "morning"
    delivery_fee: Optional[Decimal] = Field(None, description="Brak = polityka opłat z konfiguracji")
    payment_method: str = Field(..., description="upi | card")


class UpiCheckoutOut(ApiModel):
    order_id: str
    payment_method: Literal["upi"] = "upi"
    razorpay_order_id: str
    amount: int = Field(..., description="Kwota w jednostkach minor (paise)")
    currency: str
    intent_link: str


class CardCheckoutOut(ApiModel):
    order_id: str
    payment_method: Literal["card"] = "card"
    session_id: str
    checkout_url: Optional[str] = None


CheckoutOut = Annotated[Union[UpiCheckoutOut, CardCheckoutOut], Field(discriminator="payment_method")]


class PublishableKeyOut(ApiModel):
    publishable_key: str


# --- payment intent (UPI) ---

class QrCodeOut(ApiModel):
    order_id: str
    remote_order_id: str
    amount: int
    currency: str
    intent_link: str


class VerifyPaymentIn(ApiModel):
    """Typy pól sprawdza PaymentService (MalformedVerificationRequestError)."""

    order_id: Any = None
    remote_order_id: Any = None
    remote_payment_id: Any = None
    signature: Any = None


class VerifyPaymentOut(ApiModel):
    success: bool
    order_id: str
    payment_id: str
    message: str


class PaymentDetailsOut(ApiModel):
    order_id: str
    payment_id: str
    status: Optional[str] = None
    method: Optional[str] = None
    amount: Optional[int] = None
    currency: Optional[str] = None


# --- orders ---

class OrderItemOut(ApiModel):
    product_id: str
    product_name: str
    product_image: str
    price: Decimal
    quantity: int
    weight: str


class DeliveryAddressOut(ApiModel):
    line1: str
    line2: Optional[str] = None
    city: str
    state: str
    pincode: str


class OrderOut(ApiModel):
    id: str
    user_id: str
    status: str
    payment_status: str
    payment_method: str
    total_amount: Decimal
    delivery_fee: Decimal
    delivery_address: DeliveryAddressOut
    delivery_slot: str
    items: List[OrderItemOut]
    created_at: datetime


# --- webhooks ---

class WebhookAckOut(ApiModel):
    received: bool = True
    outcome: str

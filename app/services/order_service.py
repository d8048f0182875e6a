# app/services/order_service.py
import re
import uuid
from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.data.models.order import OrderModel, OrderStatus, PaymentStatus, PaymentMethod, OPEN_PAYMENT_STATUSES
from app.data.models.order_item import OrderItemModel
from app.data.models.payment_attempt import PaymentAttemptModel
from app.domain.errors import (
    InvalidAddressError,
    InvalidAmountError,
    InvalidOrderStateError,
    InvalidPaymentMethodError,
    InvalidPriceError,
    InternalInconsistencyError,
    OrderNotFoundError,
    OwnershipViolationError,
    ValidationError,
)
from app.repos.order_repo import OrderRepo
from app.services.cart_service import CartService, SnapshotLine
from app.services.rails import PaymentRails, RailPayload
from app.utils import settings
from app.utils.money import CENT, parse_amount
from app.utils.logging import get_logger, security_logger

logger = get_logger(__name__)

PINCODE_RE = re.compile(r"[0-9]{6}")
REQUIRED_ADDRESS_FIELDS = ("line1", "city", "state", "pincode")


@dataclass(frozen=True)
class CheckoutResult:
    order_id: str
    payload: RailPayload


class OrderService:
    """
    Serwis domeny zamówień - checkout jako maszyna stanów.

    1. walidacja lokalna (adres, metoda, opłata) - przed jakimkolwiek zapisem
    2. snapshot koszyka i wycena
    3. Order + OrderItem w jednej transakcji (rollback gdy zero pozycji)
    4. wywołanie szyny płatności - już po commit, bez otwartej transakcji
    5. próba płatności (korelacja) + zdjęcie zamówionych pozycji z koszyka w jednym commit
    """

    def __init__(self, db: Session, rails: PaymentRails):
        self.db = db
        self.repo = OrderRepo(db)
        self.carts = CartService(db)
        self.rails = rails

    def checkout(
        self,
        caller_id: str,
        delivery_address: dict,
        delivery_slot: str,
        delivery_fee,
        payment_method: str,
    ) -> CheckoutResult:
        address = self.validate_address(delivery_address)
        method = self.validate_payment_method(payment_method)

        if not isinstance(delivery_slot, str) or not delivery_slot.strip():
            raise ValidationError("Delivery slot is required")
        slot = delivery_slot.strip()

        fee = None
        if delivery_fee is not None:
            fee = parse_amount(delivery_fee)
            if fee is None:
                raise InvalidAmountError(f"Invalid delivery fee: {delivery_fee}")

        lines = self.carts.snapshot(caller_id)
        priced = self.price_lines(lines)
        subtotal = sum((price * line.quantity for line, price in priced), Decimal("0.00"))

        if fee is None:
            fee = self.default_delivery_fee(subtotal)

        total = (subtotal + fee).quantize(CENT)
        if total <= 0:
            raise InvalidAmountError(f"Order total must be greater than 0, got {total}")

        order = self.persist_order(caller_id, address, slot, method, fee, priced)

        #błąd szyny: zamówienie zostaje pending/pending, koszyk nietknięty - można ponowić
        payload = self.dispatch(order.id, order.total_amount, method)

        self.record_attempt(order.id, method, payload)
        self.carts.consume(caller_id, [(i.product_id, i.quantity) for i in order.items])
        self.repo.commit()

        logger.info(f"Checkout of order {order.id} done, rail {method} correlation {payload.remote_id}")
        return CheckoutResult(order_id=order.id, payload=payload)

    def retry_payment(self, caller_id: str, order_id: str) -> CheckoutResult:
        """
        Nowa próba płatności dla zamówienia pending albo failed (po nieudanej próbie).
        Poprzednia próba zostaje w payment_attempts, więc spóźniona płatność na nią nadal potwierdza zamówienie.
        """
        order = self.get_owned_order(caller_id, order_id)

        if order.payment_status not in OPEN_PAYMENT_STATUSES:
            raise InvalidOrderStateError(
                f"Order {order_id} payment is {order.payment_status}, retry is only possible while pending or failed"
            )

        rail = self.rails.for_method(order.payment_method)
        previous = rail.current_remote_id(order)
        if previous:
            rail.supersede_remote_order(previous)

        #pierwsza udana próba (checkout padł na szynie) - koszyk jeszcze nie był zdjęty
        first_attempt = self.repo.count_attempts(order.id) == 0
        items = [(i.product_id, i.quantity) for i in order.items]

        payload = self.dispatch(order.id, order.total_amount, order.payment_method)

        rowcount = self.repo.update_order(
            order.id,
            {"payment_status": PaymentStatus.PENDING.value},
            payment_status=OPEN_PAYMENT_STATUSES,
        )
        if rowcount == 0:
            self.repo.rollback()
            raise InvalidOrderStateError(f"Order {order_id} was settled while retrying payment")

        self.record_attempt(order.id, order.payment_method, payload)
        if first_attempt:
            self.carts.consume(caller_id, items)
        self.repo.commit()

        logger.info(f"Payment for order {order.id} re-initialized, correlation {payload.remote_id} (previous {previous})")
        return CheckoutResult(order_id=order.id, payload=payload)

    def get_order(self, caller_id: str, order_id: str) -> dict:
        order = self.get_owned_order(caller_id, order_id)
        return {
            "id": order.id,
            "user_id": order.user_id,
            "status": order.status,
            "payment_status": order.payment_status,
            "payment_method": order.payment_method,
            "total_amount": order.total_amount,
            "delivery_fee": order.delivery_fee,
            "delivery_address": {
                "line1": order.delivery_address_line1,
                "line2": order.delivery_address_line2,
                "city": order.delivery_city,
                "state": order.delivery_state,
                "pincode": order.delivery_pincode,
            },
            "delivery_slot": order.delivery_slot,
            "items": [
                {
                    "product_id": i.product_id,
                    "product_name": i.product_name,
                    "product_image": i.product_image,
                    "price": i.price,
                    "quantity": i.quantity,
                    "weight": i.weight,
                }
                for i in order.items
            ],
            "created_at": order.created_at,
        }

    def get_owned_order(self, caller_id: str, order_id: str) -> OrderModel:
        order = self.repo.get_order(order_id)
        if not order:
            raise OrderNotFoundError(f"Order {order_id} not found")
        if order.user_id != caller_id:
            security_logger.warning(f"User {caller_id} tried to access order {order_id} owned by another user")
            raise OwnershipViolationError()
        return order

    # --- kroki checkout ---

    @staticmethod
    def validate_address(address: dict) -> dict:
        if not isinstance(address, dict):
            raise InvalidAddressError({"deliveryAddress": "is required"})

        cleaned = {}
        errors = {}
        for field in REQUIRED_ADDRESS_FIELDS:
            value = address.get(field)
            value = value.strip() if isinstance(value, str) else ""
            if not value:
                errors[field] = "is required"
            cleaned[field] = value

        if cleaned["pincode"] and not PINCODE_RE.fullmatch(cleaned["pincode"]):
            errors["pincode"] = "must be exactly 6 digits"

        if errors:
            raise InvalidAddressError(errors)

        line2 = address.get("line2")
        cleaned["line2"] = line2.strip() or None if isinstance(line2, str) else None
        return cleaned

    @staticmethod
    def validate_payment_method(payment_method) -> str:
        allowed = [m.value for m in PaymentMethod]
        if payment_method not in allowed:
            raise InvalidPaymentMethodError(
                f"Unsupported payment method {payment_method!r}, expected one of {', '.join(allowed)}"
            )
        return payment_method

    @staticmethod
    def price_lines(lines: list[SnapshotLine]) -> list[tuple[SnapshotLine, Decimal]]:
        priced = []
        for line in lines:
            price = parse_amount(line.price)
            if price is None:
                logger.error(f"Product {line.product_id} has invalid price {line.price!r}")
                raise InvalidPriceError(f"Product {line.product_id} has an invalid price")
            priced.append((line, price))
        return priced

    @staticmethod
    def default_delivery_fee(subtotal: Decimal) -> Decimal:
        #darmowa dostawa powyżej progu
        if subtotal > settings.DELIVERY_FREE_THRESHOLD:
            return Decimal("0.00")
        return settings.DELIVERY_FEE.quantize(CENT)

    def persist_order(
        self,
        caller_id: str,
        address: dict,
        slot: str,
        method: str,
        fee: Decimal,
        priced: list[tuple[SnapshotLine, Decimal]],
    ) -> OrderModel:
        """
        Order i pozycje w jednej transakcji. Order jest wstawiany przed pozycjami,
        więc zero wstawionych pozycji = rollback (kompensujące usunięcie wiersza orders).
        """
        order = OrderModel(
            id=str(uuid.uuid4()),
            user_id=caller_id,
            total_amount=Decimal("0.00"),
            delivery_fee=fee,
            status=OrderStatus.PENDING.value,
            payment_status=PaymentStatus.PENDING.value,
            payment_method=method,
            delivery_address_line1=address["line1"],
            delivery_address_line2=address["line2"],
            delivery_city=address["city"],
            delivery_state=address["state"],
            delivery_pincode=address["pincode"],
            delivery_slot=slot,
        )

        order_id = order.id

        try:
            self.repo.add_order(order)

            items_total = Decimal("0.00")
            inserted = 0
            for line, price in priced:
                #produkt mógł zniknąć między snapshotem a zapisem
                if not self.repo.product_exists(line.product_id):
                    logger.warning(f"Product {line.product_id} vanished before order {order_id} was stored, skipping")
                    continue
                self.repo.add_item(
                    OrderItemModel(
                        order_id=order_id,
                        product_id=line.product_id,
                        product_name=line.name,
                        product_image=line.image,
                        price=price,
                        quantity=line.quantity,
                        weight=line.weight,
                    )
                )
                items_total += price * line.quantity
                inserted += 1

            if inserted == 0:
                self.repo.rollback()
                logger.error(f"Order {order_id} had no insertable items, rolled back")
                raise InternalInconsistencyError("Order could not be created: none of the cart items are available")

            order.total_amount = (items_total + fee).quantize(CENT)
            if order.total_amount <= 0:
                self.repo.rollback()
                raise InvalidAmountError(f"Order total must be greater than 0, got {order.total_amount}")

            self.repo.commit()
        except SQLAlchemyError:
            self.repo.rollback()
            raise

        logger.info(
            f"Order {order.id} created for user {caller_id}: {inserted} items, total {order.total_amount}, method {method}"
        )
        return order

    def record_attempt(self, order_id: str, method: str, payload: RailPayload):
        """Korelacja bieżącej próby w orders + wpis w payment_attempts (bez commit)."""
        self.repo.update_order(order_id, self.rails.for_method(method).attach_correlation(payload))
        self.repo.add_attempt(
            PaymentAttemptModel(order_id=order_id, payment_method=method, remote_id=payload.remote_id)
        )

    def dispatch(self, order_id: str, total: Decimal, method: str) -> RailPayload:
        rail = self.rails.for_method(method)
        return rail.create_remote_order(total, order_id, f"FreshHarvest order {order_id}")

from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Any
from sqlalchemy.orm import Session
from app.data.models.cart_item import CartItemModel
from app.domain.errors import EmptyCartError, ValidationError
from app.repos.cart_repo import CartRepo
from app.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class SnapshotLine:
    """Linia koszyka z danymi produktu z chwili odczytu (cena jeszcze niesparsowana)."""

    product_id: str
    name: str
    image: str
    price: Any
    weight: str
    quantity: int


class CartService:
    """
    Prosta implementacja cqrs dla koszyka
    query (get, snapshot) tylko odczyt
    commands (add, remove, clear) modyfikują stan
    """

    def __init__(self, db: Session):
        self.repo = CartRepo(db)

    #query - odczyt
    def snapshot(self, user_id: str) -> list[SnapshotLine]:
        lines = []
        for line, product in self.repo.get_lines_with_products(user_id):
            #produkt usunięty z katalogu - pomijamy linię zamiast wywalać checkout
            if product is None:
                logger.warning(f"Cart line {line.id} of user {user_id} points to missing product {line.product_id}, skipping")
                continue
            if line.quantity is None or line.quantity < 1:
                continue
            lines.append(
                SnapshotLine(
                    product_id=product.id,
                    name=product.name,
                    image=product.image_url or "",
                    price=product.price,
                    weight=product.weight or "",
                    quantity=line.quantity,
                )
            )

        if not lines:
            raise EmptyCartError("Cart is empty")

        return lines

    def get_cart(self, user_id: str) -> Dict[str, Any]:
        try:
            lines = self.snapshot(user_id)
        except EmptyCartError:
            lines = []

        items = [
            {
                "product_id": l.product_id,
                "name": l.name,
                "price": l.price,
                "quantity": l.quantity,
                "line_total": l.price * l.quantity,
            }
            for l in lines
        ]
        #dict przekształcany w jsona
        return {
            "items": items,
            "subtotal": sum((i["line_total"] for i in items), Decimal("0.00")),
        }

    #commands
    def add_product(self, user_id: str, product_id: str, quantity: int) -> Dict[str, Any]:
        if quantity <= 0:
            raise ValidationError("Quantity must be greater than 0")

        product = self.repo.get_product(product_id)
        if not product:
            raise ValidationError(f"Product {product_id} does not exist")
        if not product.in_stock:
            raise ValidationError(f"Product {product_id} is out of stock")

        existing_item = self.repo.get_item(user_id, product_id)
        if existing_item:
            logger.info(
                f"Product {product_id} already in cart of user {user_id}, quantity "
                f"{existing_item.quantity} -> {existing_item.quantity + quantity}"
            )
            existing_item.quantity += quantity
        else:
            logger.info(f"Adding product {product_id} to cart of user {user_id}")
            self.repo.add_item(
                CartItemModel(
                    user_id=user_id,
                    product_id=product_id,
                    quantity=quantity,
                )
            )

        self.repo.commit()
        return self.get_cart(user_id)

    def remove_product(self, user_id: str, product_id: str) -> Dict[str, Any]:
        logger.info(f"Removing product {product_id} from cart of user {user_id}")
        self.repo.delete_item(user_id, product_id)
        self.repo.commit()
        return self.get_cart(user_id)

    def consume(self, user_id: str, lines: list[tuple[str, int]]):
        """
        Zdejmuje z koszyka dokładnie to, co weszło do zamówienia.
        Bez commit - wołający zapisuje razem z korelacją płatności.
        """
        for product_id, quantity in lines:
            self.repo.consume(user_id, product_id, quantity)
        logger.info(f"Consumed {len(lines)} cart lines of user {user_id}")

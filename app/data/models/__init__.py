#import wszystkich modeli, żeby SQLAlchemy je zarejestrował w base metadata

from app.data.models.user import UserModel
from app.data.models.product import ProductModel
from app.data.models.cart_item import CartItemModel
from app.data.models.order import OrderModel, OrderStatus, PaymentStatus, PaymentMethod
from app.data.models.order_item import OrderItemModel
from app.data.models.payment_event import PaymentEventModel
from app.data.models.payment_attempt import PaymentAttemptModel

__all__ = [
    "UserModel",
    "ProductModel",
    "CartItemModel",
    "OrderModel",
    "OrderItemModel",
    "PaymentEventModel",
    "PaymentAttemptModel",
    "OrderStatus",
    "PaymentStatus",
    "PaymentMethod",
]

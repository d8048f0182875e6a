import hashlib
import hmac
import os
import time
from decimal import Decimal
from types import SimpleNamespace

# konfiguracja musi być ustawiona przed importem app.*
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["CELERY_TASK_ALWAYS_EAGER"] = "true"
os.environ["CELERY_BROKER_URL"] = "memory://"
os.environ["CELERY_RESULT_BACKEND"] = "cache+memory://"
os.environ["RAZORPAY_KEY_ID"] = "rzp_test_key"
os.environ["RAZORPAY_KEY_SECRET"] = "rzp_test_secret"
os.environ["RAZORPAY_WEBHOOK_SECRET"] = "rzp_webhook_secret"
os.environ["UPI_PAYEE_VPA"] = "freshharvest@razorpay"
os.environ["UPI_PAYEE_NAME"] = "FreshHarvest"
os.environ["STRIPE_SECRET_KEY"] = "sk_test_key"
os.environ["STRIPE_PUBLISHABLE_KEY"] = "pk_test_key"
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test_secret"
os.environ["PUBLIC_BASE_URL"] = "https://shop.test"
os.environ["CURRENCY"] = "INR"

import pytest
from fastapi.testclient import TestClient

from app.data.database import Base, SessionLocal, engine
from app.data.models import UserModel, ProductModel, CartItemModel, OrderModel
from app.main import create_app
from app.services.rails import PaymentRails
from app.services.razorpay_client import RazorpayClient
from app.services.stripe_client import StripeCheckoutClient

RAZORPAY_KEY_SECRET = os.environ["RAZORPAY_KEY_SECRET"]
RAZORPAY_WEBHOOK_SECRET = os.environ["RAZORPAY_WEBHOOK_SECRET"]
STRIPE_WEBHOOK_SECRET = os.environ["STRIPE_WEBHOOK_SECRET"]

USER_A = "user-a"
USER_B = "user-b"

ADDRESS = {
    "line1": "12 Market Road",
    "line2": "Near Old Mill",
    "city": "Pune",
    "state": "Maharashtra",
    "pincode": "411001",
}


class FakeResponse:
    def __init__(self, status_code=200, body=None, reason="OK"):
        self.status_code = status_code
        self._body = body
        self.reason = reason

    @property
    def ok(self):
        return 200 <= self.status_code < 300

    def json(self):
        if self._body is None:
            raise ValueError("no json")
        return self._body


class FakeSession:
    """Zastępuje requests.Session - kolejka odpowiedzi, wyjątków albo funkcji zwracających odpowiedź."""

    def __init__(self):
        self.calls = []
        self.responses = []
        self.default = FakeResponse(200, {"id": "order_rzp_1", "status": "created"})

    def queue(self, *responses):
        self.responses.extend(responses)

    def request(self, method, url, **kwargs):
        self.calls.append(SimpleNamespace(method=method, url=url, kwargs=kwargs))
        outcome = self.responses.pop(0) if self.responses else self.default
        if callable(outcome):
            outcome = outcome()
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class FakeStripeSessions:
    def __init__(self):
        self.calls = []
        self.error = None
        self.counter = 0
        self.statuses = {}
        self.expired = []

    def create(self, params=None, options=None):
        self.calls.append(params)
        if self.error is not None:
            raise self.error
        self.counter += 1
        session_id = f"cs_test_{self.counter}"
        self.statuses[session_id] = "open"
        return SimpleNamespace(id=session_id, url=f"https://checkout.stripe.test/{session_id}")

    def retrieve(self, session_id, params=None, options=None):
        if self.error is not None:
            raise self.error
        return SimpleNamespace(id=session_id, status=self.statuses.get(session_id, "open"))

    def expire(self, session_id, params=None, options=None):
        self.expired.append(session_id)
        self.statuses[session_id] = "expired"
        return SimpleNamespace(id=session_id, status="expired")


@pytest.fixture(autouse=True)
def reset_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def razorpay_session():
    return FakeSession()


@pytest.fixture
def stripe_sessions():
    return FakeStripeSessions()


@pytest.fixture
def rails(razorpay_session, stripe_sessions):
    return PaymentRails(
        intent_link=RazorpayClient(
            key_id="rzp_test_key",
            key_secret=RAZORPAY_KEY_SECRET,
            payee_vpa="freshharvest@razorpay",
            payee_name="FreshHarvest",
            webhook_secret=RAZORPAY_WEBHOOK_SECRET,
            currency="INR",
            timeout=1,
            session=razorpay_session,
        ),
        hosted_checkout=StripeCheckoutClient(
            secret_key="sk_test_key",
            publishable_key="pk_test_key",
            webhook_secret=STRIPE_WEBHOOK_SECRET,
            public_base_url="https://shop.test",
            currency="INR",
            timeout=1,
            client=SimpleNamespace(checkout=SimpleNamespace(sessions=stripe_sessions)),
        ),
    )


@pytest.fixture
def client(rails):
    return TestClient(create_app(rails=rails))


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def catalog(db):
    db.add_all(
        [
            UserModel(id=USER_A, name="Asha", email="asha@example.com", phone="9000000001"),
            UserModel(id=USER_B, name="Ravi", email="ravi@example.com", phone="9000000002"),
            ProductModel(id="tomato", name="Tomatoes", image_url="/img/tomato.jpg", price=Decimal("85.00"), weight="1 kg"),
            ProductModel(id="spinach", name="Spinach", image_url="/img/spinach.jpg", price=Decimal("48.00"), weight="250 g"),
        ]
    )
    db.commit()


def add_to_cart(db, user_id, product_id, quantity):
    db.add(CartItemModel(user_id=user_id, product_id=product_id, quantity=quantity))
    db.commit()


@pytest.fixture
def filled_cart(db, catalog):
    add_to_cart(db, USER_A, "tomato", 2)
    add_to_cart(db, USER_A, "spinach", 1)


def headers(user_id=USER_A):
    return {"X-User-Id": user_id}


def checkout_body(payment_method="upi", delivery_fee="40", **overrides):
    body = {
        "deliveryAddress": dict(ADDRESS),
        "deliverySlot": "morning",
        "deliveryFee": delivery_fee,
        "paymentMethod": payment_method,
    }
    body.update(overrides)
    return body


def razorpay_signature(remote_order_id, remote_payment_id, secret=RAZORPAY_KEY_SECRET):
    message = f"{remote_order_id}|{remote_payment_id}".encode()
    return hmac.new(secret.encode(), message, hashlib.sha256).hexdigest()


def razorpay_webhook_signature(payload: bytes, secret=RAZORPAY_WEBHOOK_SECRET):
    return hmac.new(secret.encode(), payload, hashlib.sha256).hexdigest()


def stripe_signature(payload: bytes, secret=STRIPE_WEBHOOK_SECRET, timestamp=None):
    timestamp = timestamp or int(time.time())
    signed = f"{timestamp}.{payload.decode()}".encode()
    return f"t={timestamp},v1={hmac.new(secret.encode(), signed, hashlib.sha256).hexdigest()}"


def load_order(db, order_id) -> OrderModel:
    db.expire_all()
    return db.get(OrderModel, order_id)

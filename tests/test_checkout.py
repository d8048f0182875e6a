from decimal import Decimal

import pytest
import requests

from app.data.models import CartItemModel, OrderModel, OrderItemModel, PaymentAttemptModel, ProductModel
from app.domain.errors import InternalInconsistencyError, InvalidPriceError
from app.services.cart_service import SnapshotLine
from app.services.order_service import OrderService
from tests.conftest import ADDRESS, USER_A, USER_B, FakeResponse, add_to_cart, checkout_body, headers, load_order


def count(db, model):
    db.expire_all()
    return db.query(model).count()


def test_upi_checkout_freezes_total_and_clears_cart(client, db, filled_cart, razorpay_session):
    resp = client.post("/checkout", json=checkout_body("upi", "40"), headers=headers())

    assert resp.status_code == 200
    body = resp.json()
    assert body["paymentMethod"] == "upi"
    assert body["razorpayOrderId"] == "order_rzp_1"
    assert body["amount"] == 25800
    assert body["currency"] == "INR"
    assert body["intentLink"].startswith("upi://pay?pa=freshharvest@razorpay")

    order = load_order(db, body["orderId"])
    assert order.total_amount == Decimal("258.00")
    assert order.status == "pending"
    assert order.payment_status == "pending"
    assert order.razorpay_order_id == "order_rzp_1"
    assert order.delivery_pincode == "411001"
    assert len(order.items) == 2
    assert sum(i.price * i.quantity for i in order.items) + order.delivery_fee == order.total_amount
    assert count(db, CartItemModel) == 0

    sent = razorpay_session.calls[0]
    assert sent.method == "POST"
    assert sent.url.endswith("/orders")
    assert sent.kwargs["json"]["amount"] == 25800
    assert sent.kwargs["json"]["receipt"] == body["orderId"]
    assert sent.kwargs["auth"] == ("rzp_test_key", "rzp_test_secret")


def test_order_items_are_frozen_snapshots(client, db, filled_cart):
    order_id = client.post("/checkout", json=checkout_body(), headers=headers()).json()["orderId"]

    product = db.get(ProductModel, "tomato")
    product.price = Decimal("99.00")
    product.name = "Heirloom Tomatoes"
    db.commit()

    resp = client.get(f"/orders/{order_id}", headers=headers())
    items = {i["productId"]: i for i in resp.json()["items"]}
    assert items["tomato"]["price"] == "85.00"
    assert items["tomato"]["productName"] == "Tomatoes"
    assert resp.json()["totalAmount"] == "258.00"


def test_card_checkout_returns_session(client, db, filled_cart, stripe_sessions):
    resp = client.post("/checkout", json=checkout_body("card", "40"), headers=headers())

    assert resp.status_code == 200
    body = resp.json()
    assert body["paymentMethod"] == "card"
    assert body["sessionId"] == "cs_test_1"
    assert body["checkoutUrl"] == "https://checkout.stripe.test/cs_test_1"

    params = stripe_sessions.calls[0]
    assert params["line_items"][0]["price_data"]["unit_amount"] == 25800
    assert params["client_reference_id"] == body["orderId"]
    assert params["metadata"]["order_id"] == body["orderId"]
    assert params["success_url"].startswith(f"https://shop.test/orders/{body['orderId']}")

    assert load_order(db, body["orderId"]).stripe_session_id == "cs_test_1"


def test_invalid_pincode_creates_nothing(client, db, filled_cart, razorpay_session):
    body = checkout_body()
    body["deliveryAddress"]["pincode"] = "12AB56"

    resp = client.post("/checkout", json=body, headers=headers())

    assert resp.status_code == 400
    assert resp.json()["kind"] == "invalid_address"
    assert "pincode" in resp.json()["fields"]
    assert count(db, OrderModel) == 0
    assert razorpay_session.calls == []


def test_blank_address_fields_are_reported(client, filled_cart):
    body = checkout_body()
    body["deliveryAddress"]["city"] = "   "
    body["deliveryAddress"]["line1"] = ""

    resp = client.post("/checkout", json=body, headers=headers())

    assert resp.status_code == 400
    assert set(resp.json()["fields"]) == {"city", "line1"}


def test_empty_cart_creates_nothing(client, db, catalog):
    resp = client.post("/checkout", json=checkout_body(), headers=headers(USER_B))

    assert resp.status_code == 400
    assert resp.json()["kind"] == "empty_cart"
    assert count(db, OrderModel) == 0


def test_unknown_payment_method(client, db, filled_cart):
    resp = client.post("/checkout", json=checkout_body("cash"), headers=headers())

    assert resp.status_code == 400
    assert resp.json()["kind"] == "invalid_payment_method"
    assert count(db, OrderModel) == 0


def test_negative_delivery_fee_is_rejected(client, db, filled_cart):
    resp = client.post("/checkout", json=checkout_body(delivery_fee="-5"), headers=headers())

    assert resp.status_code == 400
    assert resp.json()["kind"] == "invalid_amount"
    assert count(db, OrderModel) == 0


def test_unknown_fields_are_rejected(client, filled_cart):
    resp = client.post("/checkout", json=checkout_body(couponCode="FREE"), headers=headers())

    assert resp.status_code == 400
    assert resp.json()["kind"] == "validation_error"


def test_checkout_requires_caller(client, filled_cart):
    resp = client.post("/checkout", json=checkout_body())

    assert resp.status_code == 401
    assert resp.json()["kind"] == "unauthenticated"


@pytest.mark.parametrize("subtotal_qty, expected_fee", [(1, "50.00"), (6, "0.00")])
def test_delivery_fee_policy_when_not_given(client, db, catalog, subtotal_qty, expected_fee):
    add_to_cart(db, USER_A, "tomato", subtotal_qty)

    resp = client.post("/checkout", json=checkout_body(delivery_fee=None), headers=headers())

    order = load_order(db, resp.json()["orderId"])
    assert order.delivery_fee == Decimal(expected_fee)
    assert order.total_amount == Decimal("85.00") * subtotal_qty + Decimal(expected_fee)


def test_zero_total_is_rejected(client, db, catalog):
    db.add(ProductModel(id="sample", name="Free sample", image_url="", price=Decimal("0.00"), weight="10 g"))
    db.commit()
    add_to_cart(db, USER_A, "sample", 1)

    resp = client.post("/checkout", json=checkout_body(delivery_fee="0"), headers=headers())

    assert resp.status_code == 400
    assert resp.json()["kind"] == "invalid_amount"
    assert count(db, OrderModel) == 0


def test_invalid_catalog_price_is_not_silently_zeroed(db, catalog, rails):
    db.add(ProductModel(id="broken", name="Broken", image_url="", price=Decimal("-1.00"), weight="1 kg"))
    db.commit()
    add_to_cart(db, USER_A, "broken", 1)

    with pytest.raises(InvalidPriceError):
        OrderService(db, rails).checkout(USER_A, dict(ADDRESS), "morning", "40", "upi")
    assert count(db, OrderModel) == 0


def test_rail_timeout_leaves_pending_order_for_retry(client, db, filled_cart, razorpay_session):
    razorpay_session.queue(requests.ReadTimeout("read timed out"))

    resp = client.post("/checkout", json=checkout_body(), headers=headers())

    assert resp.status_code == 500
    assert resp.json()["kind"] == "rail_unavailable"

    orders = db.query(OrderModel).all()
    assert len(orders) == 1
    order = orders[0]
    assert (order.status, order.payment_status) == ("pending", "pending")
    assert order.razorpay_order_id is None
    assert count(db, CartItemModel) == 2

    resp = client.post(f"/orders/{order.id}/retry-payment", headers=headers())

    assert resp.status_code == 200
    assert resp.json()["razorpayOrderId"] == "order_rzp_1"
    assert load_order(db, order.id).razorpay_order_id == "order_rzp_1"
    assert count(db, CartItemModel) == 0


def test_retry_payment_is_owner_only(client, db, filled_cart):
    order_id = client.post("/checkout", json=checkout_body(), headers=headers()).json()["orderId"]

    resp = client.post(f"/orders/{order_id}/retry-payment", headers=headers(USER_B))

    assert resp.status_code == 403


def test_retry_payment_rejects_settled_order(client, db, filled_cart):
    order_id = client.post("/checkout", json=checkout_body(), headers=headers()).json()["orderId"]
    order = load_order(db, order_id)
    order.payment_status = "completed"
    db.commit()

    resp = client.post(f"/orders/{order_id}/retry-payment", headers=headers())

    assert resp.status_code == 409
    assert resp.json()["kind"] == "invalid_order_state"


def test_retry_payment_reopens_failed_order(client, db, filled_cart, razorpay_session):
    order_id = client.post("/checkout", json=checkout_body(), headers=headers()).json()["orderId"]
    order = load_order(db, order_id)
    order.payment_status = "failed"
    db.commit()
    razorpay_session.queue(FakeResponse(200, {"id": "order_rzp_2"}))

    resp = client.post(f"/orders/{order_id}/retry-payment", headers=headers())

    assert resp.status_code == 200
    assert resp.json()["razorpayOrderId"] == "order_rzp_2"
    order = load_order(db, order_id)
    assert (order.payment_status, order.razorpay_order_id) == ("pending", "order_rzp_2")
    assert {a.remote_id for a in db.query(PaymentAttemptModel).all()} == {"order_rzp_1", "order_rzp_2"}


def test_card_retry_expires_previous_session(client, db, filled_cart, stripe_sessions):
    order_id = client.post("/checkout", json=checkout_body("card"), headers=headers()).json()["orderId"]

    resp = client.post(f"/orders/{order_id}/retry-payment", headers=headers())

    assert resp.json()["sessionId"] == "cs_test_2"
    assert stripe_sessions.expired == ["cs_test_1"]
    assert load_order(db, order_id).stripe_session_id == "cs_test_2"


def test_card_retry_refused_when_previous_session_is_paid(client, db, filled_cart, stripe_sessions):
    order_id = client.post("/checkout", json=checkout_body("card"), headers=headers()).json()["orderId"]
    stripe_sessions.statuses["cs_test_1"] = "complete"

    resp = client.post(f"/orders/{order_id}/retry-payment", headers=headers())

    assert resp.status_code == 409
    assert len(stripe_sessions.calls) == 1
    assert load_order(db, order_id).stripe_session_id == "cs_test_1"


def test_checkout_keeps_cart_lines_added_during_payment(client, db, filled_cart, razorpay_session):
    def add_while_paying():
        item = db.query(CartItemModel).filter_by(user_id=USER_A, product_id="tomato").one()
        item.quantity += 1
        db.add(ProductModel(id="okra", name="Okra", image_url="", price=Decimal("30.00"), weight="500 g"))
        db.commit()
        add_to_cart(db, USER_A, "okra", 1)
        return FakeResponse(200, {"id": "order_rzp_1"})

    razorpay_session.queue(add_while_paying)

    resp = client.post("/checkout", json=checkout_body(), headers=headers())

    assert resp.status_code == 200
    assert load_order(db, resp.json()["orderId"]).total_amount == Decimal("258.00")
    db.expire_all()
    left = {i.product_id: i.quantity for i in db.query(CartItemModel).filter_by(user_id=USER_A)}
    assert left == {"tomato": 1, "okra": 1}


def test_order_without_insertable_items_is_rolled_back(db, catalog, rails):
    ghost = SnapshotLine(
        product_id="deleted-product",
        name="Ghost",
        image="",
        price=Decimal("10.00"),
        weight="1 kg",
        quantity=1,
    )
    address = OrderService.validate_address(dict(ADDRESS))

    with pytest.raises(InternalInconsistencyError):
        OrderService(db, rails).persist_order(USER_A, address, "morning", "upi", Decimal("40.00"), [(ghost, Decimal("10.00"))])

    assert count(db, OrderModel) == 0
    assert count(db, OrderItemModel) == 0


def test_total_is_recomputed_from_stored_items(db, catalog, rails):
    kept = SnapshotLine("tomato", "Tomatoes", "", Decimal("85.00"), "1 kg", 2)
    gone = SnapshotLine("deleted-product", "Ghost", "", Decimal("10.00"), "1 kg", 3)
    address = OrderService.validate_address(dict(ADDRESS))

    order = OrderService(db, rails).persist_order(
        USER_A, address, "evening", "card", Decimal("40.00"), [(kept, Decimal("85.00")), (gone, Decimal("10.00"))]
    )

    stored = load_order(db, order.id)
    assert len(stored.items) == 1
    assert stored.total_amount == Decimal("210.00")


def test_get_order_not_found(client, catalog):
    resp = client.get("/orders/does-not-exist", headers=headers())

    assert resp.status_code == 404
    assert resp.json()["kind"] == "order_not_found"

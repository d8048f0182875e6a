# app/api/__init__.py
from app.api.routers import health, carts, checkout, orders, payment_intent, webhooks

ROUTERS = (
    health.router,
    carts.router,
    checkout.router,
    orders.router,
    payment_intent.router,
    webhooks.router,
)

# app/utils/settings.py
import os
from decimal import Decimal
from dotenv import load_dotenv

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./freshharvest.db")
REDIS_URL = os.getenv("REDIS_URL", "redis://redis:6379/0")
CELERY_BROKER_URL = os.getenv("CELERY_BROKER_URL", REDIS_URL)
CELERY_RESULT_BACKEND = os.getenv("CELERY_RESULT_BACKEND", "redis://redis:6379/2")
CELERY_TASK_ALWAYS_EAGER = os.getenv("CELERY_TASK_ALWAYS_EAGER", "false").lower() in ("1", "true", "yes")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

CURRENCY = os.getenv("CURRENCY", "INR")
DELIVERY_FEE = Decimal(os.getenv("DELIVERY_FEE", "50"))
DELIVERY_FREE_THRESHOLD = Decimal(os.getenv("DELIVERY_FREE_THRESHOLD", "500"))
RAIL_TIMEOUT_SECONDS = float(os.getenv("RAIL_TIMEOUT_SECONDS", 10))

# intent-link rail (Razorpay + UPI)
RAZORPAY_KEY_ID = os.getenv("RAZORPAY_KEY_ID", "")
RAZORPAY_KEY_SECRET = os.getenv("RAZORPAY_KEY_SECRET", "")
RAZORPAY_WEBHOOK_SECRET = os.getenv("RAZORPAY_WEBHOOK_SECRET", "")
RAZORPAY_API_BASE = os.getenv("RAZORPAY_API_BASE", "https://api.razorpay.com/v1")
UPI_PAYEE_VPA = os.getenv("UPI_PAYEE_VPA", "")
UPI_PAYEE_NAME = os.getenv("UPI_PAYEE_NAME", "FreshHarvest")

# hosted-checkout rail (Stripe)
STRIPE_SECRET_KEY = os.getenv("STRIPE_SECRET_KEY", "")
STRIPE_PUBLISHABLE_KEY = os.getenv("STRIPE_PUBLISHABLE_KEY", "")
STRIPE_WEBHOOK_SECRET = os.getenv("STRIPE_WEBHOOK_SECRET", "")

PUBLIC_BASE_URL = os.getenv("PUBLIC_BASE_URL", "")

REQUIRED_RAIL_SETTINGS = (
    "RAZORPAY_KEY_ID",
    "RAZORPAY_KEY_SECRET",
    "UPI_PAYEE_VPA",
    "STRIPE_SECRET_KEY",
    "STRIPE_PUBLISHABLE_KEY",
    "STRIPE_WEBHOOK_SECRET",
    "PUBLIC_BASE_URL",
)


def missing_rail_settings() -> list[str]:
    return [name for name in REQUIRED_RAIL_SETTINGS if not globals()[name]]

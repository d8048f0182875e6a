# app/api/deps.py
from fastapi import Header, Request

from app.domain.errors import UnauthenticatedError
from app.services.rails import PaymentRails


def get_current_user_id(x_user_id: str | None = Header(None, alias="X-User-Id")) -> str:
    """Tożsamość wywołującego - uwierzytelnienie dzieje się przed tym serwisem."""
    if not x_user_id or not x_user_id.strip():
        raise UnauthenticatedError()
    return x_user_id.strip()


def get_rails(request: Request) -> PaymentRails:
    return request.app.state.rails

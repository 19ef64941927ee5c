from datetime import UTC, datetime, timedelta
from typing import Any

from jose import jwt

from learnsphere.auth.models.user import User
from learnsphere.core.config import settings


def create_access_token(user: User, expires_in: timedelta = timedelta(hours=1)) -> str:
    """Mint a token shaped like the hosted auth provider's."""
    claims: dict[str, Any] = {
        "sub": str(user.id),
        "email": user.email,
        "exp": datetime.now(UTC) + expires_in,
    }
    if settings.AUTH_JWT_AUDIENCE:
        claims["aud"] = settings.AUTH_JWT_AUDIENCE
    return jwt.encode(claims, settings.AUTH_JWT_SECRET, algorithm=settings.AUTH_JWT_ALGORITHM)


def create_auth_headers(token: str) -> dict[str, str]:
    """Create Authorization headers with Bearer token."""
    return {"Authorization": f"Bearer {token}"}


def assert_error_envelope(data: dict[str, Any], code: str) -> None:
    assert data["success"] is False
    assert data["error"]["code"] == code
    assert data["error"]["message"]


CHECKOUT_SESSION_ID = "cs_test_a1b2c3"

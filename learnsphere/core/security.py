import logging
from typing import Any

from jose import JWTError, jwt

from learnsphere.core.config import settings

logger = logging.getLogger(__name__)


def decode_access_token(token: str) -> dict[str, Any] | None:
    """Verify an access token issued by the hosted auth provider.

    Returns the claims, or None when the signature, expiry or audience
    does not check out.
    """
    options = {"verify_aud": settings.AUTH_JWT_AUDIENCE is not None}
    try:
        payload: dict[str, Any] = jwt.decode(
            token,
            settings.AUTH_JWT_SECRET,
            algorithms=[settings.AUTH_JWT_ALGORITHM],
            audience=settings.AUTH_JWT_AUDIENCE,
            options=options,
        )
        return payload
    except JWTError as e:
        logger.info("Rejected access token: %s", e)
        return None

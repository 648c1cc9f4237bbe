"""Session cookie helpers.

The session itself is owned by the platform's auth service; this module only
signs and reads the httpOnly JWT cookie that carries the principal id, so a
successful email verification can start a session and every request can
resolve its principal.
"""

import logging
import uuid
from datetime import UTC, datetime, timedelta

import jwt
from fastapi import Response

from civicdesk.core.config import settings

logger = logging.getLogger(__name__)


def create_jwt(
    *,
    user_id: str,
    secret: str,
    expires_delta: timedelta | None = None,
) -> str:
    """Create a signed JWT with standard claims.

    Args:
        user_id: User UUID string for the sub claim.
        secret: HMAC signing secret.
        expires_delta: Time until expiration. Defaults to the session length.

    Returns:
        Encoded JWT string.
    """
    now = datetime.now(UTC)
    payload = {
        "sub": user_id,
        "aud": settings.auth_issuer,
        "iss": settings.auth_issuer,
        "exp": now + (expires_delta or timedelta(hours=settings.auth_session_hours)),
        "iat": now,
    }
    return jwt.encode(payload, secret, algorithm="HS256")


def decode_session_token(token: str) -> uuid.UUID | None:
    """Return the user id carried by a session JWT.

    Security: Never says WHY a token was rejected (expired, bad signature,
    malformed subject); every failure is simply None.

    Args:
        token: Raw cookie value.

    Returns:
        User UUID, or None if the token is not valid.
    """
    try:
        payload = jwt.decode(
            token,
            settings.auth_secret.get_secret_value(),
            algorithms=["HS256"],
            audience=settings.auth_issuer,
            issuer=settings.auth_issuer,
        )
        return uuid.UUID(payload["sub"])
    except (jwt.InvalidTokenError, KeyError, ValueError):
        logger.debug("Rejected session token")
        return None


def set_auth_cookie(response: Response, token: str) -> None:
    """Set httpOnly JWT cookie on response.

    Args:
        response: FastAPI response object.
        token: JWT token string.
    """
    response.set_cookie(
        key=settings.auth_cookie_name,
        value=token,
        httponly=True,
        secure=settings.auth_cookie_secure,
        samesite=settings.auth_cookie_samesite,
        path="/",
        max_age=settings.auth_session_hours * 3600,
        domain=settings.auth_cookie_domain or None,
    )

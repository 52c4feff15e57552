"""Session tokens identifying the acting homeowner or contractor."""

from __future__ import annotations

import logging
import os
import time
from typing import Any

import jwt

logger = logging.getLogger(__name__)

_DEV_SECRET = "homeflow-dev-secret-do-not-use-in-production"


class TokenExpiredError(Exception):
    """Raised when a session token has expired."""


class TokenInvalidError(Exception):
    """Raised when a session token is invalid."""


def jwt_secret() -> str:
    return os.environ.get("HOMEFLOW_JWT_SECRET", _DEV_SECRET)


def create_token(user_id: str, exp_minutes: int = 60, *, secret: str | None = None) -> str:
    """Issue an HS256 token whose subject is the user id."""
    now = int(time.time())
    payload = {
        "sub": user_id,
        "iat": now,
        "exp": now + (exp_minutes * 60),
    }
    return jwt.encode(payload, secret or jwt_secret(), algorithm="HS256")


def verify_token(token: str, secret: str | None = None) -> dict[str, Any]:
    """Verify and decode a session token."""
    try:
        return jwt.decode(token, secret or jwt_secret(), algorithms=["HS256"])
    except jwt.ExpiredSignatureError as e:
        logger.warning("Token expired: %s", e)
        raise TokenExpiredError("Token has expired") from e
    except jwt.InvalidTokenError as e:
        logger.warning("Invalid token: %s", e)
        raise TokenInvalidError("Token is invalid") from e


def user_from_token(token: str, secret: str | None = None) -> str:
    """Return the user id carried by a valid token."""
    user_id = verify_token(token, secret).get("sub")
    if not user_id:
        raise TokenInvalidError("Token missing user ID")
    return user_id

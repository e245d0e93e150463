"""
Identity verification.

Tokens are HS256 JWTs issued by the account service (outside this
codebase).  The ``sub`` claim is the user id and ``moderator`` flags a
privileged identity.  Verification only answers "who is this?"; what
that identity may do is decided by the comment service.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import jwt
from fastapi import Request

from app.config import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Identity:
    user_id: str
    is_moderator: bool = False


def create_access_token(
    user_id: str, is_moderator: bool = False, expires_minutes: int | None = None
) -> str:
    """Mint a token the way the account service does (tests and seeding)."""
    expires = datetime.now(timezone.utc) + timedelta(
        minutes=expires_minutes or settings.ACCESS_TOKEN_EXPIRE_MINUTES
    )
    payload = {"sub": user_id, "moderator": is_moderator, "exp": expires}
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> Identity | None:
    """Return the verified identity, or None for an invalid or expired token."""
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except jwt.InvalidTokenError as exc:
        logger.debug("Rejected access token: %s", exc)
        return None

    user_id = payload.get("sub")
    if not user_id:
        return None
    return Identity(user_id=str(user_id), is_moderator=bool(payload.get("moderator", False)))


def _extract_token(request: Request) -> str | None:
    token = request.cookies.get(settings.AUTH_COOKIE_NAME)
    if token:
        return token
    scheme, _, credentials = request.headers.get("Authorization", "").partition(" ")
    if scheme.lower() == "bearer" and credentials:
        return credentials
    return None


async def get_identity(request: Request) -> Identity | None:
    """
    FastAPI dependency resolving the caller's identity.

    Never raises: an anonymous caller is ``None`` and the service decides
    whether the operation needs an identity.
    """
    token = _extract_token(request)
    if token is None:
        return None
    return decode_access_token(token)

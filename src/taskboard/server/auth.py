"""Bearer-token authentication at the API boundary.

Credential issuance belongs to an external identity provider; this module
only decodes HS256 JWTs whose ``sub`` claim is a user id, and can mint tokens
for seeding and tests.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt

from ..config import Settings
from ..constants import ENTITY_USER
from ..errors import AuthenticationError
from ..models import Actor
from ..store import RecordStore


def create_access_token(
    user_id: str,
    settings: Settings,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """Create JWT access token.

    Args:
        user_id: Subject of the token.
        settings: Provides the signing secret, algorithm, and default expiry.
        expires_delta: Optional expiration time delta.

    Returns:
        Encoded JWT token.
    """
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.token_expire_minutes)
    )
    return jwt.encode({"sub": user_id, "exp": expire}, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str, settings: Settings) -> Optional[str]:
    """Decode and verify JWT access token.

    Args:
        token: JWT token to decode.
        settings: Provides the verification secret and algorithm.

    Returns:
        User id from token or None if invalid or expired.
    """
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except jwt.InvalidTokenError:
        return None
    sub = payload.get("sub")
    return str(sub) if sub else None


def bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization or not authorization.lower().startswith("bearer "):
        return None
    return authorization.split(" ", 1)[1].strip() or None


def resolve_actor(token: Optional[str], settings: Settings, store: RecordStore) -> Actor:
    """Map a token to the live user it names.

    Raises:
        AuthenticationError: Missing/invalid token, or the user is unknown or
            soft-deleted.
    """
    if not token:
        raise AuthenticationError("Missing token")
    user_id = decode_access_token(token, settings)
    if user_id is None:
        raise AuthenticationError("Invalid token")
    user = store.find_unique(ENTITY_USER, user_id)
    if user is None:
        raise AuthenticationError("User not found")
    return Actor.from_user(user)

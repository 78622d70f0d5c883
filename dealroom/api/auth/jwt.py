"""
JWT Token Handling

Verify bearer tokens carrying the subject's identity and role.
Tokens are issued by the identity provider; create_access_token exists
for service-to-service callers and tests.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from jwt.exceptions import ExpiredSignatureError, InvalidTokenError

from dealroom.api.config import settings


def create_access_token(
    identity: str,
    role: str,
    expires_minutes: Optional[int] = None,
) -> str:
    """
    Create a new access token.

    Args:
        identity: Verified subject identity (e.g. email)
        role: Subject role (ISSUER, ADMIN, MARKET_MAKER, INVESTOR, EXTERNAL)
        expires_minutes: Override for the configured lifetime

    Returns:
        Encoded JWT access token
    """
    now = datetime.now(timezone.utc)
    expire = now + timedelta(
        minutes=expires_minutes if expires_minutes is not None else settings.ACCESS_TOKEN_EXPIRE_MINUTES
    )

    payload = {
        "sub": identity,
        "role": role,
        "iat": now,
        "exp": expire,
        "type": "access",
    }

    return jwt.encode(
        payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM
    )


def verify_token(token: str, token_type: str = "access") -> Optional[dict]:
    """
    Verify and decode a JWT token.

    Returns:
        Decoded payload if valid, None otherwise
    """
    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM],
        )

        if payload.get("type") != token_type:
            return None
        if not payload.get("sub") or not payload.get("role"):
            return None

        return payload

    except ExpiredSignatureError:
        return None
    except InvalidTokenError:
        return None

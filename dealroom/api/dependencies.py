"""
FastAPI Dependencies

Common dependencies for dependency injection.
"""

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from shared.dealroom_core.engine import AccessDecisionEngine
from shared.dealroom_core.exceptions import InvalidInputError
from shared.dealroom_core.models import Role, Subject

from dealroom.api.auth.jwt import verify_token
from dealroom.api.services.data_room import get_data_room


security = HTTPBearer()


def get_engine() -> AccessDecisionEngine:
    """The process-wide access engine."""
    return get_data_room()


async def get_current_subject(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> Subject:
    """
    Verified subject from the bearer token.

    Raises:
        HTTPException: If token is invalid or carries an unknown role
    """
    payload = verify_token(credentials.credentials, "access")

    if not payload:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        return Subject.of(payload["sub"], payload["role"])
    except InvalidInputError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token carries an unknown role",
            headers={"WWW-Authenticate": "Bearer"},
        )


async def get_manager_subject(
    subject: Subject = Depends(get_current_subject),
) -> Subject:
    """
    Require ISSUER or ADMIN.

    Raises:
        HTTPException: If subject is neither
    """
    if subject.role not in (Role.ISSUER, Role.ADMIN):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Issuer or admin access required",
        )
    return subject


async def get_admin_subject(
    subject: Subject = Depends(get_current_subject),
) -> Subject:
    """
    Require ADMIN.

    Raises:
        HTTPException: If subject is not an admin
    """
    if subject.role != Role.ADMIN:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return subject

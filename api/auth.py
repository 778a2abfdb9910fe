"""
Bearer token authentication for the booking API.

Tokens are HS256 JWTs issued by the auth provider and verified with
JWT_SECRET. Claims used:
    sub         user id (UUID)
    role        client | staff | manager | admin (profile role when absent)
    email       optional
    session_id  optional, identifies the authentication event (jti otherwise)
"""

import logging
from typing import Annotated, Any
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from booking.errors import StoreError
from booking.session import SessionContext
from database.connection import get_async_session
from database.models import Profile, UserRole
from shared.config import get_settings

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)

JWT_ALGORITHM = "HS256"


def get_jwt_secret() -> str:
    """
    Get JWT secret from settings.

    Raises:
        RuntimeError: If JWT_SECRET is not set in environment
    """
    secret = get_settings().JWT_SECRET
    if not secret:
        raise RuntimeError(
            "JWT_SECRET must be set in environment variables. "
            "Generate a secure secret with: openssl rand -hex 32"
        )
    return secret


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def _optional_uuid(value: Any) -> UUID | None:
    if value is None:
        return None
    try:
        return UUID(str(value))
    except ValueError:
        return None


def verify_token(token: str) -> dict[str, Any]:
    """Verify JWT signature and expiry and return the payload."""
    try:
        return jwt.decode(token, get_jwt_secret(), algorithms=[JWT_ALGORITHM])
    except JWTError as e:
        raise _unauthorized(f"Invalid token: {str(e)}")


async def load_profile_role(user_id: UUID) -> UserRole | None:
    try:
        async with get_async_session() as session:
            result = await session.execute(select(Profile.role).where(Profile.id == user_id))
            return result.scalar_one_or_none()
    except SQLAlchemyError as e:
        logger.error(f"Error loading profile role: {e}", extra={"user_id": str(user_id)})
        raise StoreError(str(e)) from e


async def session_from_payload(payload: dict[str, Any]) -> SessionContext:
    """Build a SessionContext from verified token claims."""
    user_id = _optional_uuid(payload.get("sub"))
    if user_id is None:
        raise _unauthorized("Token subject is not a user id")

    raw_role = payload.get("role")
    if raw_role is None:
        role = await load_profile_role(user_id)
        if role is None:
            raise _unauthorized("No profile for token subject")
    else:
        try:
            role = UserRole(raw_role)
        except ValueError:
            raise _unauthorized(f"Unknown role: {raw_role}")

    return SessionContext.authenticated(
        user_id=user_id,
        role=role,
        email=payload.get("email"),
        auth_event_id=_optional_uuid(payload.get("session_id") or payload.get("jti")),
    )


async def get_current_session(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)] = None,
) -> SessionContext:
    """Dependency: authenticated SessionContext for the request, 401 otherwise."""
    if credentials is None:
        raise _unauthorized("Not authenticated")
    return await session_from_payload(verify_token(credentials.credentials))


CurrentSession = Annotated[SessionContext, Depends(get_current_session)]

"""
Authentication dependencies for JWT validation.

This module exposes:
- CurrentUser
- get_current_user / CurrentUserDep (HTTP bearer)
- authenticate_token (used by the push WebSocket, which carries the token
  as a query parameter)
"""

from __future__ import annotations

from typing import Annotated
from uuid import UUID

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, ConfigDict, Field

from callsync.auth.jwt import JWTService
from callsync.config import Settings, get_settings
from callsync.shared.exceptions import AuthenticationError, InvalidTokenError
from callsync.shared.logging import get_logger

logger = get_logger(__name__)
security = HTTPBearer(auto_error=False)


class CurrentUser(BaseModel):
    """Current authenticated user information."""

    model_config = ConfigDict(frozen=True)

    id: UUID = Field(..., description="User ID")
    email: str = Field(default="", description="User email")
    role: str = Field(default="user", description="User role")


def authenticate_token(token: str, settings: Settings | None = None) -> CurrentUser:
    """Validate an access token and build the CurrentUser it identifies.

    Raises:
        AuthenticationError: If the token is invalid or expired.
    """
    payload = JWTService(settings).validate_access_token(token)
    try:
        user_id = UUID(str(payload["user_id"]))
    except ValueError as e:
        raise InvalidTokenError(
            "Token user_id is not a UUID",
            details={"user_id": payload.get("user_id")},
        ) from e

    return CurrentUser(
        id=user_id,
        email=payload.get("email", "") or "",
        role=payload.get("role", "user") or "user",
    )


async def get_current_user(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)] = None,
    settings: Settings = Depends(get_settings),
) -> CurrentUser:
    """Extract and validate the current user from the bearer token."""
    if credentials is None:
        logger.warning(
            "Missing authentication credentials",
            extra={
                "endpoint": str(request.url.path),
                "method": request.method,
                "client_ip": request.client.host if request.client else "unknown",
            },
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={
                "code": "MISSING_CREDENTIALS",
                "message": "Authentication credentials required",
            },
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        return authenticate_token(credentials.credentials, settings)
    except AuthenticationError as e:
        logger.warning(
            "Authentication failed",
            extra={"endpoint": str(request.url.path), "code": e.code},
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"code": e.code, "message": e.message},
            headers={"WWW-Authenticate": "Bearer"},
        ) from e


CurrentUserDep = Annotated[CurrentUser, Depends(get_current_user)]

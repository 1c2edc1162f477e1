"""JWT token handling for dashboard sessions."""

from datetime import datetime, timedelta, timezone
from typing import Any
from uuid import UUID

import jwt
from jwt.exceptions import ExpiredSignatureError, InvalidTokenError as PyJWTInvalidTokenError

from callsync.config import Settings, get_settings
from callsync.shared.exceptions import InvalidTokenError, TokenExpiredError
from callsync.shared.logging import get_logger

logger = get_logger(__name__)


class JWTService:
    """Creates and validates access tokens."""

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings or get_settings()

    def create_access_token(
        self,
        user_id: UUID,
        email: str,
        role: str = "user",
        additional_claims: dict[str, Any] | None = None,
    ) -> str:
        """Create a new access token."""
        now = datetime.now(timezone.utc)
        expires = now + timedelta(minutes=self._settings.jwt_access_token_expire_minutes)

        payload: dict[str, Any] = {
            "sub": str(user_id),
            "user_id": str(user_id),
            "email": email,
            "role": role,
            "type": "access",
            "iat": now,
            "exp": expires,
        }

        if additional_claims:
            payload.update(additional_claims)

        return jwt.encode(
            payload,
            self._settings.jwt_secret_key,
            algorithm=self._settings.jwt_algorithm,
        )

    def validate_access_token(self, token: str) -> dict[str, Any]:
        """Decode an access token and return its claims.

        Raises:
            TokenExpiredError: If the token has expired.
            InvalidTokenError: If the token is malformed, badly signed or not
                an access token.
        """
        try:
            payload = jwt.decode(
                token,
                self._settings.jwt_secret_key,
                algorithms=[self._settings.jwt_algorithm],
            )
        except ExpiredSignatureError as e:
            logger.warning("Token expired")
            raise TokenExpiredError() from e
        except PyJWTInvalidTokenError as e:
            logger.warning("Invalid token", extra={"error": str(e)})
            raise InvalidTokenError(details={"error": str(e)}) from e

        if payload.get("type") != "access":
            raise InvalidTokenError(
                "Invalid token type",
                details={"expected": "access", "got": payload.get("type")},
            )
        if not payload.get("user_id"):
            raise InvalidTokenError(
                "Token missing user_id",
                details={"payload_keys": list(payload.keys())},
            )
        return payload

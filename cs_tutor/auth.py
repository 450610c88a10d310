"""
Bearer token verification.

Tokens are HS256 JWTs issued elsewhere; this service only verifies them.
The `sub` claim is the user id used for entitlements and chat history.

Usage:
    @app.get("/api/usage")
    def usage(user: AuthenticatedUser = Depends(get_current_user)):
        return {"user_id": user.id}
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from pydantic import BaseModel

from cs_tutor.config import get_settings
from cs_tutor.exceptions import AuthenticationError
from cs_tutor.logging_config import get_logger

logger = get_logger("auth")

security = HTTPBearer(auto_error=False)


class AuthenticatedUser(BaseModel):
    """Identity taken from a verified token."""

    id: str
    email: Optional[str] = None


def verify_token(token: str) -> AuthenticatedUser:
    """
    Verify a bearer token and return its subject.

    Raises:
        AuthenticationError: If the token is invalid, expired or has no `sub`
    """
    settings = get_settings()
    try:
        claims = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
        )
    except JWTError as e:
        logger.info(f"Token rejected: {e}", extra={"component": "auth", "event": "token_rejected"})
        raise AuthenticationError(f"Invalid token: {e}") from e

    sub = claims.get("sub")
    if not sub:
        raise AuthenticationError("Invalid token: no sub claim")

    return AuthenticatedUser(id=str(sub), email=claims.get("email"))


def create_access_token(user_id: str, email: Optional[str] = None, expires_in_seconds: int = 3600) -> str:
    """Issue a token for local development and tests."""
    settings = get_settings()
    claims = {
        "sub": user_id,
        "exp": datetime.now(timezone.utc) + timedelta(seconds=expires_in_seconds),
    }
    if email:
        claims["email"] = email
    return jwt.encode(claims, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> AuthenticatedUser:
    """
    FastAPI dependency: verify the bearer token.
    Raises 401 if the token is missing or invalid.
    """
    if not credentials:
        raise AuthenticationError()
    return verify_token(credentials.credentials)


async def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Optional[AuthenticatedUser]:
    """
    Same as get_current_user but returns None instead of 401.
    Used to key rate limits on endpoints that also serve anonymous callers.
    """
    if not credentials:
        return None
    try:
        return verify_token(credentials.credentials)
    except AuthenticationError:
        return None

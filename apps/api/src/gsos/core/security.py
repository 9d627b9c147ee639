"""
Security Utilities

JWT creation and validation for staff and guardian access tokens.
Login and identity management live outside this service; these helpers
only sign and verify the tokens it consumes.
"""

import logging
from datetime import UTC, datetime, timedelta
from typing import Any

from jose import JWTError, jwt

from gsos.core.config import settings

logger = logging.getLogger(__name__)


def create_access_token(
    subject: str,
    *,
    email: str,
    role: str,
    school_id: str | None = None,
    permissions: list[str] | None = None,
    expires_delta: timedelta | None = None,
) -> str:
    """
    Create a signed access token.

    Args:
        subject: User identifier stored in the `sub` claim
        email: User email
        role: User role (see gsos.core.auth.UserRole)
        school_id: Tenant the user belongs to (None for platform admins)
        permissions: Extra permissions granted on top of the role defaults
        expires_delta: Token lifetime (defaults to settings)

    Returns:
        Encoded JWT string
    """
    expire = datetime.now(UTC) + (
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    )
    claims: dict[str, Any] = {
        "sub": subject,
        "email": email,
        "role": role,
        "school_id": school_id,
        "permissions": permissions or [],
        "type": "access",
        "exp": expire,
    }
    return jwt.encode(claims, settings.secret_key, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> dict[str, Any] | None:
    """
    Decode and verify a JWT.

    Returns:
        The claims dict, or None if the token is invalid or expired
    """
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError as e:
        logger.debug(f"Token rejected: {e}")
        return None

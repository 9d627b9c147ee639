"""
Authentication and Authorization Module

Provides authentication dependencies for FastAPI endpoints.
This module validates bearer tokens (see security.py) and enforces
role/permission checks and tenant scoping for admissions endpoints.

SECURITY NOTE:
- Development mode auth bypass is ONLY enabled when PYTHON_ENV=development
- Production environments MUST set PYTHON_ENV=production to disable test tokens
- The is_production check provides an additional safety layer
"""

import logging
import os
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from gsos.core.config import settings
from gsos.core.security import decode_token

logger = logging.getLogger(__name__)

# Security scheme for OpenAPI documentation
security = HTTPBearer(
    auto_error=True,
    description="JWT Bearer token for authentication",
)


class UserRole(str, Enum):
    """User roles in the system."""

    SUPER_ADMIN = "super_admin"
    SCHOOL_ADMIN = "school_admin"
    ADMISSIONS_OFFICER = "admissions_officer"
    TEACHER = "teacher"
    PARENT = "parent"
    STUDENT = "student"


class Permission(str, Enum):
    """Permissions checked by admissions and student endpoints."""

    READ_ADMISSIONS = "read_admissions"
    DECIDE_ADMISSIONS = "decide_admissions"
    ASSESS_ADMISSIONS = "assess_admissions"
    CONVERT_ADMISSIONS = "convert_admissions"
    MANAGE_ADMISSIONS = "manage_admissions"
    READ_STUDENT_DATA = "read_student_data"


STAFF_ROLES = {
    UserRole.SUPER_ADMIN,
    UserRole.SCHOOL_ADMIN,
    UserRole.ADMISSIONS_OFFICER,
    UserRole.TEACHER,
}

ROLE_PERMISSIONS: dict[UserRole, set[Permission]] = {
    UserRole.SUPER_ADMIN: set(Permission),
    UserRole.SCHOOL_ADMIN: set(Permission),
    UserRole.ADMISSIONS_OFFICER: {
        Permission.READ_ADMISSIONS,
        Permission.DECIDE_ADMISSIONS,
        Permission.ASSESS_ADMISSIONS,
        Permission.CONVERT_ADMISSIONS,
        Permission.READ_STUDENT_DATA,
    },
    UserRole.TEACHER: {
        Permission.READ_ADMISSIONS,
        Permission.ASSESS_ADMISSIONS,
        Permission.READ_STUDENT_DATA,
    },
    # Guardians and students only reach their own records
    UserRole.PARENT: set(),
    UserRole.STUDENT: set(),
}


@dataclass
class CurrentUser:
    """
    Represents an authenticated caller.

    Populated from JWT claims after token validation.

    Attributes:
        id: User's unique identifier
        email: User's email address (guardians are matched on it)
        role: User's role
        school_id: Tenant the user belongs to (None for platform admins)
        permissions: Extra permissions granted on top of the role defaults
    """

    id: str
    email: str
    role: UserRole
    school_id: str | None = None
    permissions: set[Permission] = field(default_factory=set)

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES

    def has_permission(self, permission: Permission) -> bool:
        return permission in self.permissions or permission in ROLE_PERMISSIONS.get(
            self.role, set()
        )

    def can_access_school(self, school_id: str) -> bool:
        return self.role == UserRole.SUPER_ADMIN or self.school_id == school_id

    def __str__(self) -> str:
        return f"CurrentUser(id={self.id}, role={self.role.value}, school={self.school_id})"


def _is_dev_mode_safe() -> bool:
    """
    Check if development mode is safe to enable.

    All of these must hold:
    1. settings.is_development is True (PYTHON_ENV=development)
    2. settings.is_production is False
    3. the raw PYTHON_ENV variable is not production or staging
    """
    env_var = os.getenv("PYTHON_ENV", "").lower()

    is_safe = (
        settings.is_development
        and not settings.is_production
        and env_var != "production"
        and env_var != "staging"
    )

    if is_safe:
        logger.warning(
            "SECURITY: Development auth mode is ENABLED. This MUST NOT be used in production!"
        )

    return is_safe


# Development mode flag - allows mock authentication for LOCAL testing ONLY
_DEVELOPMENT_MODE = _is_dev_mode_safe()

_DEV_USERS = {
    "dev-token": CurrentUser(
        id="00000000-0000-0000-0000-000000000001",
        email="admin@gsos.dev",
        role=UserRole.SUPER_ADMIN,
    ),
    "dev-parent-token": CurrentUser(
        id="00000000-0000-0000-0000-000000000002",
        email="parent@gsos.dev",
        role=UserRole.PARENT,
        school_id="school-dev",
    ),
}


def _credentials_error(error: str, message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={"error": error, "message": message},
        headers={"WWW-Authenticate": "Bearer"},
    )


def user_from_claims(payload: dict) -> CurrentUser:
    """
    Build a CurrentUser from decoded token claims.

    Raises:
        HTTPException 401: If required claims are missing or malformed
    """
    if payload.get("type", "access") != "access":
        logger.warning(f"Invalid token type: {payload.get('type')}")
        raise _credentials_error("INVALID_TOKEN_TYPE", "This endpoint requires an access token.")

    try:
        user_id = payload.get("sub")
        if not user_id:
            raise ValueError("Missing 'sub' claim in token")

        role = UserRole(payload.get("role", ""))
        permissions = set()
        for raw in payload.get("permissions") or []:
            try:
                permissions.add(Permission(raw))
            except ValueError:
                # Permissions for other services share the token
                continue

        return CurrentUser(
            id=str(user_id),
            email=str(payload.get("email", "")).lower(),
            role=role,
            school_id=payload.get("school_id"),
            permissions=permissions,
        )
    except (ValueError, KeyError) as e:
        logger.warning(f"Invalid token claims: {e}")
        raise _credentials_error(
            "INVALID_TOKEN_CLAIMS", "Token contains invalid or missing claims."
        ) from e


async def _validate_jwt_token(token: str) -> CurrentUser:
    """
    Validate a bearer token and return the caller.

    Raises:
        HTTPException 401: If token is invalid or expired
    """
    if _DEVELOPMENT_MODE and token in _DEV_USERS:
        logger.debug("Development mode: Using test token")
        return _DEV_USERS[token]

    payload = decode_token(token)

    if payload is None:
        logger.warning("Invalid or expired JWT token")
        raise _credentials_error("INVALID_TOKEN", "Invalid or expired authentication token.")

    return user_from_claims(payload)


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> CurrentUser:
    """
    FastAPI dependency that validates the bearer token and returns the caller.

    Raises:
        HTTPException 401: If token is missing, invalid, or expired
    """
    user = await _validate_jwt_token(credentials.credentials)
    logger.debug(f"Authenticated user: {user}")
    return user


async def get_staff_user(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    """
    Dependency requiring a staff role.

    Raises:
        HTTPException 403: If the caller is a guardian or student
    """
    if not user.is_staff:
        logger.warning(f"Access denied: {user} is not staff")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={
                "error": "STAFF_ACCESS_REQUIRED",
                "message": "Staff access is required for this endpoint.",
            },
        )
    return user


def require_permission(permission: Permission) -> Callable[..., Awaitable[CurrentUser]]:
    """
    Build a dependency requiring a staff user with the given permission.

    Usage:
        @router.post("/{admission_id}/convert")
        async def convert(
            staff: CurrentUser = Depends(require_permission(Permission.CONVERT_ADMISSIONS)),
        ): ...
    """

    async def dependency(user: CurrentUser = Depends(get_staff_user)) -> CurrentUser:
        if not user.has_permission(permission):
            logger.warning(f"Access denied: {user} lacks permission '{permission.value}'")
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail={
                    "error": "PERMISSION_DENIED",
                    "message": f"Permission '{permission.value}' is required for this endpoint.",
                },
            )
        return user

    return dependency


def ensure_school_access(user: CurrentUser, school_id: str) -> None:
    """
    Check the caller belongs to the tenant in the request path.

    Raises:
        HTTPException 403: If the user belongs to a different school
    """
    if not user.can_access_school(school_id):
        logger.warning(f"Tenant mismatch: {user} requested school {school_id}")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={
                "error": "SCHOOL_ACCESS_DENIED",
                "message": "You do not have access to this school.",
            },
        )


__all__ = [
    "CurrentUser",
    "Permission",
    "UserRole",
    "ensure_school_access",
    "get_current_user",
    "get_staff_user",
    "require_permission",
    "user_from_claims",
]

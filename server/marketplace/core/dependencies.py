"""FastAPI dependencies for database sessions, authentication, and idempotency."""

import hashlib
from dataclasses import dataclass
from enum import Enum
from typing import Optional
from uuid import UUID

import jwt
from fastapi import Depends, Header
from jwt import PyJWTError

from .config import settings
from .database import get_db
from .exceptions import AuthenticationError, AuthorizationError, ValidationError


class Role(str, Enum):
    """Roles carried in bearer tokens."""
    USER = "user"
    ADMIN = "admin"
    SELLER = "seller"
    SUBSCRIBER = "subscriber"


STAFF_ROLES = frozenset({Role.ADMIN, Role.SELLER})


@dataclass(frozen=True)
class AuthContext:
    """Authenticated caller, decoded from the bearer token."""

    user_id: UUID
    role: Role

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES


def create_access_token(user_id: UUID | str, role: Role | str, secret: Optional[str] = None) -> str:
    """Issue an HS256 bearer token for ``user_id`` with ``role``."""
    payload = {"sub": str(user_id), "role": Role(role).value}
    return jwt.encode(payload, secret or settings.bearer_token_secret, algorithm="HS256")


def decode_access_token(token: str) -> AuthContext:
    """
    Decode a bearer token into an AuthContext.

    Raises:
        AuthenticationError: If the token is invalid, expired or incomplete
    """
    try:
        payload = jwt.decode(token, settings.bearer_token_secret, algorithms=["HS256"])
    except PyJWTError as e:
        raise AuthenticationError(detail=f"Token validation failed: {str(e)}") from e

    subject = payload.get("sub")
    role = payload.get("role")
    if role is None and payload.get("roles"):
        role = payload["roles"][0]

    if subject is None or role is None:
        raise AuthenticationError(detail="Invalid token payload")

    try:
        return AuthContext(user_id=UUID(str(subject)), role=Role(role))
    except ValueError as e:
        raise AuthenticationError(detail="Invalid token subject or role") from e


def _extract_bearer_token(authorization: str) -> str:
    try:
        scheme, token = authorization.split()
    except ValueError as e:
        raise AuthenticationError(detail="Invalid authorization header format") from e
    if scheme.lower() != "bearer":
        raise AuthenticationError(detail="Invalid authentication scheme")
    return token


async def get_current_user(
    authorization: Optional[str] = Header(None, alias="Authorization")
) -> AuthContext:
    """
    Authentication dependency that validates Bearer tokens.

    Args:
        authorization: Authorization header with Bearer token

    Returns:
        AuthContext: Caller identity from the validated token

    Raises:
        AuthenticationError: If token is invalid or missing
    """
    if not authorization:
        raise AuthenticationError(detail="Authorization header missing")
    return decode_access_token(_extract_bearer_token(authorization))


async def get_optional_user(
    authorization: Optional[str] = Header(None, alias="Authorization")
) -> Optional[AuthContext]:
    """Like get_current_user, but anonymous callers yield None."""
    if not authorization:
        return None
    return decode_access_token(_extract_bearer_token(authorization))


def require_roles(*roles: Role):
    """Build a dependency that admits only callers holding one of ``roles``."""
    allowed = frozenset(roles)

    async def dependency(auth: AuthContext = Depends(get_current_user)) -> AuthContext:
        if auth.role not in allowed:
            raise AuthorizationError(
                detail=f"Role '{auth.role.value}' may not perform this operation",
                required_roles=sorted(role.value for role in allowed),
            )
        return auth

    return dependency


async def get_idempotency_key(
    idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key")
) -> Optional[str]:
    """
    Extract and validate idempotency key from request headers.

    Args:
        idempotency_key: Idempotency key from header

    Returns:
        str: Hashed idempotency key or None if not provided

    Raises:
        ValidationError: If idempotency key format is invalid
    """
    if idempotency_key is None:
        return None

    if len(idempotency_key) < 1 or len(idempotency_key) > 255:
        raise ValidationError(detail="Idempotency key must be between 1 and 255 characters")

    return hashlib.sha256(idempotency_key.encode()).hexdigest()


DatabaseSession = Depends(get_db)
RequiredAuth = Depends(get_current_user)
OptionalAuth = Depends(get_optional_user)
StaffOnly = Depends(require_roles(Role.ADMIN, Role.SELLER))
AdminOnly = Depends(require_roles(Role.ADMIN))
IdempotencyKey = Depends(get_idempotency_key)

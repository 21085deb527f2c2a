"""
Security utilities for HERA authentication.

Passwords are hashed with bcrypt. Access tokens carry the caller's tenant
context: the default organization, the role held there and every organization
with an active membership. Those claims describe the session only; each
organization-scoped request still checks the membership in the database.
"""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional
from uuid import UUID

import bcrypt
from jose import jwt

from hera_erp.config.settings import get_settings

settings = get_settings()


def hash_password(password: str) -> str:
    """
    Hash a password using bcrypt.

    Args:
        password: Plain text password

    Returns:
        Hashed password as string
    """
    hashed = bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt())
    return hashed.decode("utf-8")


def verify_password(password: str, hashed_password: str) -> bool:
    """Check a password against its bcrypt hash; malformed hashes never match."""
    try:
        return bcrypt.checkpw(password.encode("utf-8"), hashed_password.encode("utf-8"))
    except ValueError:
        return False


def _encode_token(claims: dict, token_type: str, lifetime: timedelta) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        **claims,
        "type": token_type,
        "iat": now,
        "exp": now + lifetime,
        "jti": str(uuid.uuid4()),
    }
    return jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def create_access_token(
    user_id: UUID,
    organization_id: Optional[UUID],
    email: str,
    role: Optional[str] = None,
    organizations: Optional[Iterable[UUID]] = None,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """
    Create a JWT access token.

    Args:
        user_id: User UUID
        organization_id: Default organization (None until the user joins one)
        email: User email
        role: Role held in the default organization
        organizations: Every organization with an active membership; defaults
            to the default organization alone
        expires_delta: Optional custom expiration time

    Returns:
        Encoded JWT token string
    """
    if organizations is None:
        organizations = [organization_id] if organization_id else []

    claims = {
        "sub": str(user_id),
        "email": email,
        "org_id": str(organization_id) if organization_id else None,
        "role": role if organization_id else None,
        "orgs": [str(org) for org in organizations],
    }
    lifetime = expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    return _encode_token(claims, "access", lifetime)


def create_refresh_token(user_id: UUID, expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a JWT refresh token.

    Refresh tokens carry no tenant claims: the tenant context is rebuilt from
    the current memberships when the access token is reissued.
    """
    lifetime = expires_delta or timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)
    return _encode_token({"sub": str(user_id)}, "refresh", lifetime)


def verify_token(token: str, token_type: str = "access") -> dict:
    """
    Verify and decode a JWT token.

    Args:
        token: JWT token string
        token_type: Expected token type ("access" or "refresh")

    Returns:
        Decoded token payload

    Raises:
        JWTError: If token is invalid or expired
        ValueError: If token type doesn't match
    """
    payload = jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])

    if payload.get("type") != token_type:
        raise ValueError(f"Invalid token type. Expected {token_type}, got {payload.get('type')}")

    return payload

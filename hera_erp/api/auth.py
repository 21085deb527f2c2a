"""
Authentication API routes.

Provides endpoints for:
- User registration (optionally creating an organization)
- User login (JWT generation)
- Token refresh
- Current user profile
"""

import logging
import re
from datetime import datetime, timezone
from typing import List, Optional
from uuid import UUID, uuid4

from fastapi import APIRouter, Depends, HTTPException, status
from jose import JWTError
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from hera_erp.config.settings import get_settings
from hera_erp.database import get_db
from hera_erp.middleware.auth import ROLE_PERMISSIONS, get_current_active_user
from hera_erp.models import Organization, User, UserOrganization
from hera_erp.security import (
    create_access_token,
    create_refresh_token,
    hash_password,
    verify_password,
    verify_token,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/auth", tags=["authentication"])


# Pydantic schemas
class LoginRequest(BaseModel):
    """Schema for login request."""

    email: EmailStr
    password: str = Field(..., min_length=1, max_length=72)


class TokenResponse(BaseModel):
    """Schema for token response."""

    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int  # seconds


class RefreshTokenRequest(BaseModel):
    """Schema for refresh token request."""

    refresh_token: str


class RegisterRequest(BaseModel):
    """Schema for user registration request."""

    email: EmailStr
    full_name: str = Field(..., min_length=1, max_length=255)
    password: str = Field(..., min_length=8, max_length=72)
    organization_name: Optional[str] = Field(None, min_length=1, max_length=255)
    industry: Optional[str] = Field(None, max_length=100)


class RegisterResponse(BaseModel):
    """Schema for registration response."""

    id: UUID
    email: str
    full_name: str
    organization_id: Optional[UUID] = None
    message: str = "User registered successfully"


def slugify(name: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")
    return slug[:80] or "organization"


def active_memberships(user: User) -> List[UserOrganization]:
    """Active memberships, oldest first; the first one is the default organization."""
    return sorted((m for m in user.memberships if m.is_active), key=lambda m: m.created_at)


def _issue_tokens(user: User) -> TokenResponse:
    settings = get_settings()
    active = active_memberships(user)
    return TokenResponse(
        access_token=create_access_token(
            user_id=user.id,
            organization_id=active[0].organization_id if active else None,
            email=user.email,
            role=active[0].role if active else None,
            organizations=[m.organization_id for m in active],
        ),
        refresh_token=create_refresh_token(user_id=user.id),
        token_type="bearer",
        expires_in=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,  # Convert to seconds
    )


async def _load_user(db: AsyncSession, **criteria) -> Optional[User]:
    stmt = select(User).options(selectinload(User.memberships)).filter_by(**criteria)
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


@router.post("/register", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED)
async def register(register_data: RegisterRequest, db: AsyncSession = Depends(get_db)):
    """
    Register a new user.

    When organization_name is given, a new organization is created and the
    user becomes its owner.

    Raises:
        HTTPException: If registration is disabled or the email already exists
    """
    if not get_settings().enable_registration:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Registration is disabled")

    email = register_data.email.lower()
    result = await db.execute(select(User).where(User.email == email))
    if result.scalar_one_or_none():
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"User with email '{email}' already exists",
        )

    new_user = User(
        email=email,
        full_name=register_data.full_name,
        hashed_password=hash_password(register_data.password),
        is_active=True,
    )
    db.add(new_user)

    organization = None
    if register_data.organization_name:
        slug = slugify(register_data.organization_name)
        taken = await db.execute(select(Organization.id).where(Organization.slug == slug))
        if taken.first() is not None:
            slug = f"{slug}-{uuid4().hex[:6]}"

        organization = Organization(
            name=register_data.organization_name,
            slug=slug,
            industry=register_data.industry,
        )
        db.add(organization)
        await db.flush()
        db.add(UserOrganization(user_id=new_user.id, organization_id=organization.id, role="owner"))

    await db.commit()
    await db.refresh(new_user)

    logger.info(
        f"Registered user {new_user.id}"
        + (f" as owner of organization {organization.id}" if organization else "")
    )

    return RegisterResponse(
        id=new_user.id,
        email=new_user.email,
        full_name=new_user.full_name,
        organization_id=organization.id if organization else None,
        message="User registered successfully. You can now login.",
    )


@router.post("/login", response_model=TokenResponse)
async def login(login_data: LoginRequest, db: AsyncSession = Depends(get_db)):
    """
    Authenticate user and return JWT tokens.

    Raises:
        HTTPException: If credentials are invalid or the account is disabled
    """
    user = await _load_user(db, email=login_data.email.lower())

    if not user or not verify_password(login_data.password, user.hashed_password):
        logger.warning(f"Failed login attempt for {login_data.email}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account is disabled")

    user.last_login_at = datetime.now(timezone.utc)
    await db.commit()

    return _issue_tokens(user)


@router.post("/refresh", response_model=TokenResponse)
async def refresh_token(refresh_data: RefreshTokenRequest, db: AsyncSession = Depends(get_db)):
    """
    Refresh access token using refresh token.

    Raises:
        HTTPException: If refresh token is invalid
    """
    invalid = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid refresh token",
        headers={"WWW-Authenticate": "Bearer"},
    )

    try:
        payload = verify_token(refresh_data.refresh_token, token_type="refresh")
        user_id = UUID(payload.get("sub") or "")
    except (JWTError, ValueError):
        raise invalid

    user = await _load_user(db, id=user_id)
    if not user:
        raise invalid

    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account is disabled")

    return _issue_tokens(user)


@router.get("/me", response_model=dict)
async def get_current_user_info(
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Get current authenticated user information.

    Returns:
        User profile with active memberships and the permissions each role grants
    """
    result = await db.execute(
        select(UserOrganization, Organization)
        .join(Organization, Organization.id == UserOrganization.organization_id)
        .where(
            UserOrganization.user_id == current_user.id,
            UserOrganization.is_active.is_(True),
            Organization.deleted_at.is_(None),
        )
        .order_by(UserOrganization.created_at)
    )

    memberships = [
        {
            "organization_id": str(org.id),
            "organization_name": org.name,
            "role": membership.role,
            "permissions": sorted(ROLE_PERMISSIONS.get(membership.role, set())),
        }
        for membership, org in result.all()
    ]

    return {
        "id": str(current_user.id),
        "email": current_user.email,
        "full_name": current_user.full_name,
        "is_active": current_user.is_active,
        "default_organization_id": memberships[0]["organization_id"] if memberships else None,
        "memberships": memberships,
    }

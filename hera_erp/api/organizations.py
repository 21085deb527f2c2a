"""
Organization management API routes.

Organizations are the tenants; membership rows decide who may act inside
each one and with which role.
"""

import logging
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hera_erp.database import get_db
from hera_erp.middleware.auth import (
    TenantContext,
    get_current_active_user,
    require_org_access,
    require_org_owner,
    require_permissions,
)
from hera_erp.models import MEMBERSHIP_ROLES, Organization, User, UserOrganization

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/organizations", tags=["organizations"])

ROLE_PATTERN = "^(" + "|".join(MEMBERSHIP_ROLES) + ")$"


# Pydantic schemas
class OrganizationUpdate(BaseModel):
    """Schema for updating an organization."""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    industry: Optional[str] = Field(None, max_length=100)
    plan: Optional[str] = Field(None, pattern=r"^(trial|starter|professional|enterprise)$")


class OrganizationResponse(BaseModel):
    """Schema for organization response."""
    id: UUID
    name: str
    slug: str
    industry: Optional[str]
    plan: str
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True


class MembershipOrganizationResponse(OrganizationResponse):
    """Organization as seen by one of its members."""
    role: str


class MemberCreate(BaseModel):
    """Schema for adding an existing user to an organization."""
    email: EmailStr
    role: str = Field(default="staff", pattern=ROLE_PATTERN)


class MemberResponse(BaseModel):
    """Schema for membership response."""
    user_id: UUID
    email: str
    full_name: str
    role: str
    is_active: bool
    joined_at: datetime


async def _get_organization(db: AsyncSession, organization_id: UUID) -> Organization:
    result = await db.execute(
        select(Organization).where(
            Organization.id == organization_id,
            Organization.deleted_at.is_(None),
        )
    )
    organization = result.scalar_one_or_none()
    if not organization:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Organization {organization_id} not found",
        )
    return organization


@router.get("", response_model=List[MembershipOrganizationResponse])
async def list_organizations(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    """
    List organizations the caller belongs to.

    Only active memberships of organizations that are not deleted are returned.
    """
    result = await db.execute(
        select(Organization, UserOrganization.role)
        .join(UserOrganization, UserOrganization.organization_id == Organization.id)
        .where(
            UserOrganization.user_id == current_user.id,
            UserOrganization.is_active.is_(True),
            Organization.deleted_at.is_(None),
        )
        .order_by(Organization.name)
    )

    return [
        MembershipOrganizationResponse(
            **OrganizationResponse.model_validate(org).model_dump(),
            role=role,
        )
        for org, role in result.all()
    ]


@router.get("/{organization_id}", response_model=OrganizationResponse)
async def get_organization(
    organization_id: UUID,
    db: AsyncSession = Depends(get_db),
    tenant: TenantContext = Depends(require_org_access),
):
    """Get organization by ID (members only)."""
    return await _get_organization(db, organization_id)


@router.put("/{organization_id}", response_model=OrganizationResponse)
async def update_organization(
    organization_id: UUID,
    organization_update: OrganizationUpdate,
    db: AsyncSession = Depends(get_db),
    tenant: TenantContext = Depends(require_org_owner),
):
    """
    Update organization.

    Only owners may change name, industry or plan.
    """
    organization = await _get_organization(db, organization_id)

    for field, value in organization_update.model_dump(exclude_unset=True).items():
        setattr(organization, field, value)

    await db.commit()
    await db.refresh(organization)

    logger.info(f"Organization {organization_id} updated by {tenant.user.id}")
    return organization


@router.get("/{organization_id}/members", response_model=List[MemberResponse])
async def list_members(
    organization_id: UUID,
    include_inactive: bool = False,
    db: AsyncSession = Depends(get_db),
    tenant: TenantContext = Depends(require_org_access),
):
    """List members of the organization."""
    query = (
        select(UserOrganization, User)
        .join(User, User.id == UserOrganization.user_id)
        .where(UserOrganization.organization_id == organization_id)
        .order_by(UserOrganization.created_at)
    )
    if not include_inactive:
        query = query.where(UserOrganization.is_active.is_(True))

    result = await db.execute(query)
    return [
        MemberResponse(
            user_id=user.id,
            email=user.email,
            full_name=user.full_name,
            role=membership.role,
            is_active=membership.is_active,
            joined_at=membership.created_at,
        )
        for membership, user in result.all()
    ]


@router.post(
    "/{organization_id}/members",
    response_model=MemberResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_member(
    organization_id: UUID,
    member: MemberCreate,
    db: AsyncSession = Depends(get_db),
    tenant: TenantContext = Depends(require_permissions("members:manage")),
):
    """
    Add an existing user to the organization.

    A previously removed member is reactivated with the new role.

    Raises:
        HTTPException: 404 if no user has the email, 409 if already an active member
    """
    result = await db.execute(select(User).where(User.email == member.email.lower()))
    user = result.scalar_one_or_none()
    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"User with email '{member.email}' not found",
        )

    result = await db.execute(
        select(UserOrganization).where(
            UserOrganization.user_id == user.id,
            UserOrganization.organization_id == organization_id,
        )
    )
    membership = result.scalar_one_or_none()

    if membership and membership.is_active:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"User '{member.email}' is already a member of this organization",
        )

    if membership:
        membership.is_active = True
        membership.role = member.role
    else:
        membership = UserOrganization(
            user_id=user.id,
            organization_id=organization_id,
            role=member.role,
        )
        db.add(membership)

    await db.commit()
    await db.refresh(membership)

    logger.info(f"User {user.id} added to organization {organization_id} as {member.role}")

    return MemberResponse(
        user_id=user.id,
        email=user.email,
        full_name=user.full_name,
        role=membership.role,
        is_active=membership.is_active,
        joined_at=membership.created_at,
    )


@router.delete("/{organization_id}/members/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_member(
    organization_id: UUID,
    user_id: UUID,
    db: AsyncSession = Depends(get_db),
    tenant: TenantContext = Depends(require_permissions("members:manage")),
):
    """
    Deactivate a membership.

    Raises:
        HTTPException: 400 when an owner removes themselves, 404 if not a member
    """
    if user_id == tenant.user.id and tenant.role == "owner":
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Owners cannot remove their own membership",
        )

    result = await db.execute(
        select(UserOrganization).where(
            UserOrganization.user_id == user_id,
            UserOrganization.organization_id == organization_id,
            UserOrganization.is_active.is_(True),
        )
    )
    membership = result.scalar_one_or_none()
    if not membership:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"User {user_id} is not a member of this organization",
        )

    membership.is_active = False
    await db.commit()

    logger.info(f"User {user_id} removed from organization {organization_id}")
    return None

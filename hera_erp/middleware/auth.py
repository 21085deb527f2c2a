"""
JWT authentication and tenant authorization middleware.

Provides FastAPI dependencies for:
- JWT token validation
- User authentication
- Organization membership checks (multi-tenant isolation)
- Role-based permission checks within an organization
"""

from dataclasses import dataclass
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from hera_erp.database import get_db
from hera_erp.models import Organization, User, UserOrganization
from hera_erp.security import verify_token

# HTTP Bearer token scheme
security = HTTPBearer()

READ_ONLY = {
    "entities:read",
    "gl:read",
    "receiving:read",
    "templates:read",
}

ROLE_PERMISSIONS: dict[str, set[str]] = {
    "owner": {
        "entities:read", "entities:write",
        "gl:read", "gl:write", "gl:validate",
        "anomalies:read", "schema:read",
        "receiving:read", "receiving:write",
        "templates:read", "templates:deploy",
        "members:manage",
    },
    "manager": {
        "entities:read", "entities:write",
        "gl:read", "gl:validate",
        "anomalies:read", "schema:read",
        "receiving:read", "receiving:write",
        "templates:read", "templates:deploy",
    },
    "accountant": {
        "entities:read",
        "gl:read", "gl:write", "gl:validate",
        "anomalies:read",
        "receiving:read",
        "templates:read",
    },
    "staff": {
        "entities:read", "entities:write",
        "receiving:read", "receiving:write",
        "templates:read",
    },
    "viewer": set(READ_ONLY),
}


@dataclass
class TenantContext:
    """Authenticated user scoped to one organization."""

    user: User
    organization_id: UUID
    role: str

    @property
    def permissions(self) -> set[str]:
        return ROLE_PERMISSIONS.get(self.role, set())


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Validate JWT token and return current user.

    Args:
        credentials: HTTP Authorization header with Bearer token
        db: Database session

    Returns:
        Authenticated user

    Raises:
        HTTPException: If token is invalid or user not found
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    try:
        payload = verify_token(credentials.credentials, token_type="access")
        user_id = UUID(payload.get("sub") or "")
    except (JWTError, ValueError):
        raise credentials_exception

    stmt = (
        select(User)
        .options(selectinload(User.memberships))
        .where(User.id == user_id)
    )
    result = await db.execute(stmt)
    user = result.scalar_one_or_none()

    if user is None:
        raise credentials_exception

    return user


async def get_current_active_user(
    current_user: User = Depends(get_current_user),
) -> User:
    """
    Get current user and verify they are active.

    Raises:
        HTTPException: If user is inactive
    """
    if not current_user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Inactive user",
        )
    return current_user


class OrganizationAccessChecker:
    """
    Dependency class for organization-level access control.

    Ensures the user holds an active membership in the organization named by
    the organization_id path parameter, and that the organization exists.

    Usage:
        @router.get("/organizations/{organization_id}/entities")
        async def list_entities(
            organization_id: UUID,
            tenant: TenantContext = Depends(require_org_access),
        ):
            ...
    """

    async def __call__(
        self,
        organization_id: UUID,
        current_user: User = Depends(get_current_active_user),
        db: AsyncSession = Depends(get_db),
    ) -> TenantContext:
        result = await db.execute(
            select(UserOrganization)
            .join(Organization, Organization.id == UserOrganization.organization_id)
            .where(
                UserOrganization.user_id == current_user.id,
                UserOrganization.organization_id == organization_id,
                UserOrganization.is_active.is_(True),
                Organization.deleted_at.is_(None),
            )
        )
        membership = result.scalar_one_or_none()

        if membership is None:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Access denied: You do not belong to this organization",
            )

        return TenantContext(user=current_user, organization_id=organization_id, role=membership.role)


# Create singleton instance for use as dependency
require_org_access = OrganizationAccessChecker()


def require_permissions(*permission_names: str):
    """
    Dependency factory for permission-based authorization inside an organization.

    Usage:
        @router.post("/gl/validation")
        async def run_validation(tenant: TenantContext = Depends(require_permissions("gl:validate"))):
            ...

    Args:
        *permission_names: Required permission names (e.g., "gl:validate")

    Returns:
        FastAPI dependency function

    Raises:
        HTTPException: If the member's role lacks a required permission
    """

    async def permission_checker(
        tenant: TenantContext = Depends(require_org_access),
    ) -> TenantContext:
        for required_permission in permission_names:
            if required_permission not in tenant.permissions:
                raise HTTPException(
                    status_code=status.HTTP_403_FORBIDDEN,
                    detail=f"Permission denied: {required_permission} required",
                )
        return tenant

    return permission_checker


async def require_org_owner(
    tenant: TenantContext = Depends(require_org_access),
) -> TenantContext:
    """
    Require the user to be an owner of the organization.

    Raises:
        HTTPException: If the member is not an owner
    """
    if tenant.role != "owner":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Organization owner access required",
        )
    return tenant

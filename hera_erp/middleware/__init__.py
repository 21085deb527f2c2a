"""
Authentication and authorization middleware for the HERA API.
"""

from .auth import (
    ROLE_PERMISSIONS,
    OrganizationAccessChecker,
    TenantContext,
    get_current_active_user,
    get_current_user,
    require_org_access,
    require_org_owner,
    require_permissions,
)

__all__ = [
    "ROLE_PERMISSIONS",
    "OrganizationAccessChecker",
    "TenantContext",
    "get_current_user",
    "get_current_active_user",
    "require_org_access",
    "require_org_owner",
    "require_permissions",
]

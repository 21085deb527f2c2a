"""
Database models for the universal schema.

- Organizations (tenants) and users with per-organization roles
- core_entities / core_dynamic_data
- core_metadata
- core_relationships
- universal_transactions
"""

from hera_erp.models.base import Base
from hera_erp.models.entity import CoreDynamicData, CoreEntity
from hera_erp.models.metadata import CoreMetadata
from hera_erp.models.organization import Organization
from hera_erp.models.relationship import CoreRelationship
from hera_erp.models.transaction import UniversalTransaction
from hera_erp.models.user import MEMBERSHIP_ROLES, User, UserOrganization

__all__ = [
    "Base",
    "Organization",
    "User",
    "UserOrganization",
    "MEMBERSHIP_ROLES",
    "CoreEntity",
    "CoreDynamicData",
    "CoreMetadata",
    "CoreRelationship",
    "UniversalTransaction",
]

"""
Schema governance API routes.
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hera_erp.database import get_db
from hera_erp.middleware.auth import TenantContext, require_permissions
from hera_erp.models import CoreDynamicData, CoreEntity
from hera_erp.services import schema_governance
from hera_erp.services.schema_governance import EntityRecord, FieldRecord

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/organizations/{organization_id}/schema", tags=["schema-governance"])


@router.get("/governance")
async def get_governance_report(
    organization_id: UUID,
    db: AsyncSession = Depends(get_db),
    tenant: TenantContext = Depends(require_permissions("schema:read")),
):
    """
    Analyze naming, usage and duplication across the tenant's entities
    and dynamic fields.
    """
    logger.info(f"Running schema governance for organization {organization_id}")

    result = await db.execute(
        select(CoreEntity)
        .where(CoreEntity.organization_id == organization_id)
        .order_by(CoreEntity.created_at)
    )
    entities = result.scalars().all()

    result = await db.execute(
        select(CoreDynamicData, CoreEntity.entity_type)
        .join(CoreEntity, CoreEntity.id == CoreDynamicData.entity_id)
        .where(CoreDynamicData.organization_id == organization_id)
    )
    fields = []
    names_by_entity: dict[UUID, list[str]] = {}
    for row, entity_type in result.all():
        fields.append(FieldRecord(row.field_name, row.field_type, row.entity_id, entity_type))
        names_by_entity.setdefault(row.entity_id, []).append(row.field_name)

    records = [
        EntityRecord(
            id=entity.id,
            entity_type=entity.entity_type,
            created_at=entity.created_at,
            field_names=names_by_entity.get(entity.id, []),
        )
        for entity in entities
    ]

    report = schema_governance.governance_report(records, fields)

    logger.info(
        f"Schema governance completed: {len(records)} entities, {len(fields)} fields, "
        f"compliance {report['naming_compliance']['compliance_score']}%"
    )

    return {
        "organization_id": str(organization_id),
        "totals": {"entities": len(records), "fields": len(fields)},
        **report,
    }

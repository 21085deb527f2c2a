"""
Universal entity API routes.

Any business object (supplier, menu item, account, ...) is a core_entities row
with its custom attributes in core_dynamic_data. Relationships link two
entities of the same organization.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID, uuid4

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from hera_erp.database import get_db
from hera_erp.middleware.auth import TenantContext, require_permissions
from hera_erp.models import CoreDynamicData, CoreEntity, CoreRelationship
from hera_erp.services.universal import encode_field_value, flatten_fields, infer_field_type

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/organizations/{organization_id}", tags=["entities"])


# Pydantic schemas
class EntityCreate(BaseModel):
    """Schema for creating an entity with dynamic fields."""
    entity_type: str = Field(..., min_length=1, max_length=100)
    entity_name: str = Field(..., min_length=1, max_length=255)
    entity_code: Optional[str] = Field(None, max_length=100)
    status: Optional[str] = Field(None, max_length=50)
    fields: Dict[str, Any] = Field(default_factory=dict)


class EntityUpdate(BaseModel):
    """Schema for updating an entity; fields are upserted by name."""
    entity_name: Optional[str] = Field(None, min_length=1, max_length=255)
    status: Optional[str] = Field(None, max_length=50)
    fields: Dict[str, Any] = Field(default_factory=dict)


class EntityResponse(BaseModel):
    """Schema for entity response."""
    id: UUID
    organization_id: UUID
    entity_type: str
    entity_code: Optional[str]
    entity_name: str
    status: Optional[str]
    is_active: bool
    created_at: datetime
    updated_at: datetime
    fields: Dict[str, Any] = Field(default_factory=dict)


class RelationshipCreate(BaseModel):
    """Schema for linking two entities."""
    parent_entity_id: UUID
    child_entity_id: UUID
    relationship_type: str = Field(..., min_length=1, max_length=100)
    relationship_data: Optional[Dict[str, Any]] = None


class RelationshipResponse(BaseModel):
    """Schema for relationship response."""
    id: UUID
    parent_entity_id: UUID
    child_entity_id: UUID
    relationship_type: str
    relationship_data: Optional[Dict[str, Any]]
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True


# Query helpers shared with other routers
async def fetch_fields(db: AsyncSession, entity_ids: List[UUID]) -> Dict[UUID, Dict[str, Any]]:
    """Decoded dynamic fields keyed by entity id."""
    if not entity_ids:
        return {}
    result = await db.execute(
        select(CoreDynamicData)
        .where(CoreDynamicData.entity_id.in_(entity_ids))
        .order_by(CoreDynamicData.created_at)
    )
    rows_by_entity: Dict[UUID, list] = {}
    for row in result.scalars().all():
        rows_by_entity.setdefault(row.entity_id, []).append(row)
    return {entity_id: flatten_fields(rows) for entity_id, rows in rows_by_entity.items()}


async def get_tenant_entity(
    db: AsyncSession,
    organization_id: UUID,
    entity_id: UUID,
    entity_type: Optional[str] = None,
) -> CoreEntity:
    """Active entity owned by the organization, or 404."""
    query = select(CoreEntity).where(
        CoreEntity.id == entity_id,
        CoreEntity.organization_id == organization_id,
        CoreEntity.is_active.is_(True),
    )
    if entity_type:
        query = query.where(CoreEntity.entity_type == entity_type)

    result = await db.execute(query)
    entity = result.scalar_one_or_none()
    if not entity:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Entity {entity_id} not found",
        )
    return entity


async def upsert_fields(db: AsyncSession, entity: CoreEntity, fields: Dict[str, Any]) -> None:
    """Insert or overwrite dynamic fields of an entity (not committed)."""
    if not fields:
        return
    result = await db.execute(
        select(CoreDynamicData).where(
            CoreDynamicData.entity_id == entity.id,
            CoreDynamicData.field_name.in_(list(fields)),
        )
    )
    existing = {row.field_name: row for row in result.scalars().all()}

    for name, value in fields.items():
        field_type = infer_field_type(value)
        row = existing.get(name)
        if row is None:
            db.add(
                CoreDynamicData(
                    entity_id=entity.id,
                    organization_id=entity.organization_id,
                    field_name=name,
                    field_type=field_type,
                    field_value=encode_field_value(value, field_type),
                )
            )
        else:
            row.field_type = field_type
            row.field_value = encode_field_value(value, field_type)


async def create_entity(
    db: AsyncSession,
    organization_id: UUID,
    entity_type: str,
    entity_name: str,
    entity_code: Optional[str] = None,
    fields: Optional[Dict[str, Any]] = None,
    status_value: Optional[str] = None,
    created_by: Optional[UUID] = None,
) -> CoreEntity:
    """Stage an entity and its fields in the session (not committed)."""
    entity = CoreEntity(
        id=uuid4(),
        organization_id=organization_id,
        entity_type=entity_type,
        entity_code=entity_code,
        entity_name=entity_name,
        status=status_value,
        is_active=True,
        created_by=created_by,
    )
    db.add(entity)
    await upsert_fields(db, entity, fields or {})
    return entity


def entity_payload(entity: CoreEntity, fields: Optional[Dict[str, Any]] = None) -> EntityResponse:
    return EntityResponse(
        id=entity.id,
        organization_id=entity.organization_id,
        entity_type=entity.entity_type,
        entity_code=entity.entity_code,
        entity_name=entity.entity_name,
        status=entity.status,
        is_active=entity.is_active,
        created_at=entity.created_at,
        updated_at=entity.updated_at,
        fields=fields or {},
    )


async def code_in_use(
    db: AsyncSession, organization_id: UUID, entity_type: str, entity_code: str
) -> bool:
    result = await db.execute(
        select(CoreEntity.id).where(
            CoreEntity.organization_id == organization_id,
            CoreEntity.entity_type == entity_type,
            CoreEntity.entity_code == entity_code,
            CoreEntity.is_active.is_(True),
        )
    )
    return result.first() is not None


# Entities
@router.post("/entities", response_model=EntityResponse, status_code=status.HTTP_201_CREATED)
async def create_entity_endpoint(
    organization_id: UUID,
    entity_data: EntityCreate,
    db: AsyncSession = Depends(get_db),
    tenant: TenantContext = Depends(require_permissions("entities:write")),
):
    """
    Create an entity with its dynamic fields.

    Field types are inferred from the JSON values.

    Raises:
        HTTPException: 409 if an active entity of the same type already uses the code
    """
    if entity_data.entity_code and await code_in_use(
        db, organization_id, entity_data.entity_type, entity_data.entity_code
    ):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"{entity_data.entity_type} with code '{entity_data.entity_code}' already exists",
        )

    entity = await create_entity(
        db,
        organization_id,
        entity_type=entity_data.entity_type,
        entity_name=entity_data.entity_name,
        entity_code=entity_data.entity_code,
        fields=entity_data.fields,
        status_value=entity_data.status,
        created_by=tenant.user.id,
    )
    await db.commit()
    await db.refresh(entity)

    logger.info(f"Created {entity.entity_type} entity {entity.id} in organization {organization_id}")

    fields = await fetch_fields(db, [entity.id])
    return entity_payload(entity, fields.get(entity.id))


@router.get("/entities", response_model=List[EntityResponse])
async def list_entities(
    organization_id: UUID,
    entity_type: Optional[str] = None,
    search: Optional[str] = None,
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    tenant: TenantContext = Depends(require_permissions("entities:read")),
):
    """List active entities with their dynamic fields."""
    query = select(CoreEntity).where(
        CoreEntity.organization_id == organization_id,
        CoreEntity.is_active.is_(True),
    )
    if entity_type:
        query = query.where(CoreEntity.entity_type == entity_type)
    if search:
        pattern = f"%{search}%"
        query = query.where(
            or_(CoreEntity.entity_name.ilike(pattern), CoreEntity.entity_code.ilike(pattern))
        )

    query = query.order_by(CoreEntity.entity_name).offset(offset).limit(limit)
    result = await db.execute(query)
    entities = result.scalars().all()

    fields = await fetch_fields(db, [e.id for e in entities])
    return [entity_payload(e, fields.get(e.id)) for e in entities]


@router.get("/entities/{entity_id}", response_model=EntityResponse)
async def get_entity(
    organization_id: UUID,
    entity_id: UUID,
    db: AsyncSession = Depends(get_db),
    tenant: TenantContext = Depends(require_permissions("entities:read")),
):
    """Get one entity of the organization."""
    entity = await get_tenant_entity(db, organization_id, entity_id)
    fields = await fetch_fields(db, [entity.id])
    return entity_payload(entity, fields.get(entity.id))


@router.patch("/entities/{entity_id}", response_model=EntityResponse)
async def update_entity(
    organization_id: UUID,
    entity_id: UUID,
    entity_update: EntityUpdate,
    db: AsyncSession = Depends(get_db),
    tenant: TenantContext = Depends(require_permissions("entities:write")),
):
    """Update name or status and upsert dynamic fields."""
    entity = await get_tenant_entity(db, organization_id, entity_id)

    if entity_update.entity_name is not None:
        entity.entity_name = entity_update.entity_name
    if entity_update.status is not None:
        entity.status = entity_update.status
    await upsert_fields(db, entity, entity_update.fields)

    await db.commit()
    await db.refresh(entity)

    fields = await fetch_fields(db, [entity.id])
    return entity_payload(entity, fields.get(entity.id))


@router.delete("/entities/{entity_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_entity(
    organization_id: UUID,
    entity_id: UUID,
    db: AsyncSession = Depends(get_db),
    tenant: TenantContext = Depends(require_permissions("entities:write")),
):
    """Soft delete (deactivate) an entity."""
    entity = await get_tenant_entity(db, organization_id, entity_id)
    entity.deactivate()
    await db.commit()

    logger.info(f"Deactivated entity {entity_id} in organization {organization_id}")
    return None


# Relationships
@router.post(
    "/relationships",
    response_model=RelationshipResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_relationship(
    organization_id: UUID,
    relationship_data: RelationshipCreate,
    db: AsyncSession = Depends(get_db),
    tenant: TenantContext = Depends(require_permissions("entities:write")),
):
    """
    Link two entities of the organization.

    Raises:
        HTTPException: 404 if either entity is not owned by the organization
    """
    await get_tenant_entity(db, organization_id, relationship_data.parent_entity_id)
    await get_tenant_entity(db, organization_id, relationship_data.child_entity_id)

    relationship = CoreRelationship(
        organization_id=organization_id,
        parent_entity_id=relationship_data.parent_entity_id,
        child_entity_id=relationship_data.child_entity_id,
        relationship_type=relationship_data.relationship_type,
        relationship_data=relationship_data.relationship_data,
        is_active=True,
    )
    db.add(relationship)
    await db.commit()
    await db.refresh(relationship)

    return relationship


@router.get("/relationships", response_model=List[RelationshipResponse])
async def list_relationships(
    organization_id: UUID,
    relationship_type: Optional[str] = None,
    entity_id: Optional[UUID] = None,
    db: AsyncSession = Depends(get_db),
    tenant: TenantContext = Depends(require_permissions("entities:read")),
):
    """List active relationships, optionally those touching one entity."""
    query = select(CoreRelationship).where(
        CoreRelationship.organization_id == organization_id,
        CoreRelationship.is_active.is_(True),
    )
    if relationship_type:
        query = query.where(CoreRelationship.relationship_type == relationship_type)
    if entity_id:
        query = query.where(
            or_(
                CoreRelationship.parent_entity_id == entity_id,
                CoreRelationship.child_entity_id == entity_id,
            )
        )

    result = await db.execute(query.order_by(CoreRelationship.created_at))
    return result.scalars().all()

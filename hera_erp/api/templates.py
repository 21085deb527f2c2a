"""
ERP module template API routes.

Templates are shared by the system organization or owned by the tenant.
Deploying one copies it into the tenant as a deployed_erp_module and can seed
chart-of-account and workflow entities.
"""

import logging
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from uuid import UUID, uuid4

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from hera_erp import SYSTEM_ORGANIZATION_ID
from hera_erp.api.entities import code_in_use, create_entity, fetch_fields
from hera_erp.api.gl_accounts import CHART_OF_ACCOUNT, chart_codes
from hera_erp.database import get_db
from hera_erp.middleware.auth import TenantContext, require_permissions
from hera_erp.models import CoreEntity, CoreRelationship, UniversalTransaction
from hera_erp.services import deployment

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/organizations/{organization_id}/templates", tags=["templates"])

BUSINESS_WORKFLOW = "business_workflow"


class DeployRequest(BaseModel):
    """Schema for deploying a module template."""
    setup_chart_of_accounts: bool = True
    create_workflows: bool = True
    configuration: Dict[str, Any] = Field(default_factory=dict)


async def _deployed_template_codes(db: AsyncSession, organization_id: UUID) -> set[str]:
    result = await db.execute(
        select(CoreEntity.entity_code).where(
            CoreEntity.organization_id == organization_id,
            CoreEntity.entity_type == deployment.DEPLOYED_ENTITY_TYPE,
            CoreEntity.is_active.is_(True),
        )
    )
    return {deployment.template_code_of(code) for code in result.scalars().all() if code}


async def _dependencies(db: AsyncSession, module_ids: List[UUID]) -> Dict[UUID, List[UUID]]:
    if not module_ids:
        return {}
    result = await db.execute(
        select(CoreRelationship.parent_entity_id, CoreRelationship.child_entity_id).where(
            CoreRelationship.parent_entity_id.in_(module_ids),
            CoreRelationship.relationship_type == deployment.DEPENDENCY_RELATIONSHIP,
            CoreRelationship.is_active.is_(True),
        )
    )
    found: Dict[UUID, List[UUID]] = {}
    for parent_id, child_id in result.all():
        found.setdefault(parent_id, []).append(child_id)
    return found


async def _mark_failed(db: AsyncSession, transaction_id: UUID, errors: List[str]) -> None:
    """Record the failure in a separate session; the request session is rolled back."""
    async with AsyncSession(db.bind, expire_on_commit=False) as session:
        transaction = await session.get(UniversalTransaction, transaction_id)
        if transaction is None:
            return
        transaction.transaction_status = "failed"
        transaction.transaction_data = {
            **(transaction.transaction_data or {}),
            "errors": errors,
            "failed_at": datetime.now(timezone.utc).isoformat(),
        }
        await session.commit()


@router.get("/modules")
async def list_modules(
    organization_id: UUID,
    category: Optional[str] = None,
    functional_area: Optional[str] = None,
    include_system: bool = True,
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    tenant: TenantContext = Depends(require_permissions("templates:read")),
):
    """
    List module templates available to the organization.

    Category and functional area are matched against the templates'
    module_category and functional_area fields.
    """
    owners = [organization_id]
    if include_system:
        owners.append(SYSTEM_ORGANIZATION_ID)

    result = await db.execute(
        select(CoreEntity)
        .where(
            CoreEntity.organization_id.in_(owners),
            CoreEntity.entity_type.in_(deployment.TEMPLATE_ENTITY_TYPES),
            CoreEntity.is_active.is_(True),
        )
        .order_by(CoreEntity.entity_code)
    )
    modules = result.scalars().all()
    fields = await fetch_fields(db, [m.id for m in modules])

    def matches(module: CoreEntity) -> bool:
        module_fields = fields.get(module.id, {})
        if category and module_fields.get("module_category") != category:
            return False
        if functional_area and module_fields.get("functional_area") != functional_area:
            return False
        return True

    selected = [m for m in modules if matches(m)]
    page = selected[offset : offset + limit]

    dependencies = await _dependencies(db, [m.id for m in page])
    deployed = await _deployed_template_codes(db, organization_id)

    data = [
        deployment.describe_module(
            module,
            fields.get(module.id, {}),
            [str(d) for d in dependencies.get(module.id, [])],
            deployed,
        )
        for module in page
    ]

    return {
        "data": data,
        "total": len(selected),
        "limit": limit,
        "offset": offset,
        "metadata": {
            "include_system": include_system,
            "category": category,
            "functional_area": functional_area,
            "deployed_count": sum(1 for d in data if d["is_deployed"]),
        },
    }


@router.post("/modules/{module_id}/deploy", status_code=status.HTTP_201_CREATED)
async def deploy_module(
    organization_id: UUID,
    module_id: UUID,
    request: DeployRequest,
    db: AsyncSession = Depends(get_db),
    tenant: TenantContext = Depends(require_permissions("templates:deploy")),
):
    """
    Deploy a module template into the organization.

    Raises:
        HTTPException: 404 if the module is not accessible, 409 if already
            deployed, 500 if the deployment fails part way
    """
    started = time.perf_counter()

    result = await db.execute(
        select(CoreEntity).where(
            CoreEntity.id == module_id,
            CoreEntity.entity_type.in_(deployment.TEMPLATE_ENTITY_TYPES),
            CoreEntity.organization_id.in_([organization_id, SYSTEM_ORGANIZATION_ID]),
            CoreEntity.is_active.is_(True),
        )
    )
    module = result.scalar_one_or_none()
    if not module:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Module {module_id} not found or not accessible",
        )

    deployed = await _deployed_template_codes(db, organization_id)
    if module.entity_code in deployed:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Module {module.entity_code} is already deployed",
        )

    now = datetime.now(timezone.utc)
    transaction = UniversalTransaction(
        id=uuid4(),
        organization_id=organization_id,
        transaction_type="module_deployment",
        transaction_number=deployment.deployment_number(organization_id, now),
        transaction_date=now.date(),
        total_amount=0,
        transaction_status="processing",
        transaction_data={
            "module_id": str(module.id),
            "module_code": module.entity_code,
            "configuration": request.configuration,
            "options": {
                "setup_chart_of_accounts": request.setup_chart_of_accounts,
                "create_workflows": request.create_workflows,
            },
        },
        created_by=tenant.user.id,
    )
    db.add(transaction)
    await db.commit()

    logger.info(
        f"Deploying module {module.entity_code} to organization {organization_id} "
        f"({transaction.transaction_number})"
    )

    # rollback expires every instance; the failure path only reads these
    module_code = module.entity_code
    transaction_id = transaction.id

    warnings: List[str] = []
    accounts_created: List[dict] = []
    workflows_created: List[dict] = []

    try:
        template_fields = await fetch_fields(db, [module.id])
        deployed_fields = {
            **template_fields.get(module.id, {}),
            "deployed_at": now.isoformat(),
            "deployed_by": str(tenant.user.id),
            "deployment_transaction_id": str(transaction.id),
            "source_template_id": str(module.id),
        }
        if request.configuration:
            deployed_fields["deployment_configuration"] = request.configuration

        deployed_entity = await create_entity(
            db,
            organization_id,
            entity_type=deployment.DEPLOYED_ENTITY_TYPE,
            entity_name=module.entity_name,
            entity_code=deployment.deployed_code(module.entity_code),
            fields=deployed_fields,
            status_value="active",
            created_by=tenant.user.id,
        )

        dependencies = await _dependencies(db, [module.id])
        if dependencies.get(module.id):
            result = await db.execute(
                select(CoreEntity.entity_code).where(CoreEntity.id.in_(dependencies[module.id]))
            )
            for code in result.scalars().all():
                if code not in deployed:
                    warnings.append(f"Dependency {code} is not deployed")

        if request.setup_chart_of_accounts:
            existing = await chart_codes(db, organization_id)
            patterns = deployment.ACCOUNT_PATTERNS.get(module.entity_code or "", ())
            plan = deployment.account_plan(module.entity_code, existing)
            if not patterns:
                warnings.append(f"No chart of accounts pattern for module {module.entity_code}")
            elif len(plan) < len(patterns):
                skipped = sorted(p.code for p in patterns if p.code in existing)
                warnings.append(f"Skipped existing accounts: {', '.join(skipped)}")

            for account in plan:
                entity = await create_entity(
                    db,
                    organization_id,
                    entity_type=CHART_OF_ACCOUNT,
                    entity_name=account.name,
                    entity_code=account.code,
                    fields={
                        "account_type": account.account_type,
                        "current_balance": 0.0,
                        "source_module": module.entity_code,
                    },
                    created_by=tenant.user.id,
                )
                accounts_created.append({
                    "id": str(entity.id),
                    "account_code": account.code,
                    "account_name": account.name,
                    "account_type": account.account_type,
                })

        if request.create_workflows:
            for workflow in deployment.workflow_plan(module.entity_code):
                if await code_in_use(db, organization_id, BUSINESS_WORKFLOW, workflow.code):
                    warnings.append(f"Workflow {workflow.code} already exists")
                    continue
                entity = await create_entity(
                    db,
                    organization_id,
                    entity_type=BUSINESS_WORKFLOW,
                    entity_name=workflow.name,
                    entity_code=workflow.code,
                    fields={
                        "workflow_steps": list(workflow.steps),
                        "source_module": module.entity_code,
                    },
                    status_value="active",
                    created_by=tenant.user.id,
                )
                workflows_created.append({
                    "id": str(entity.id),
                    "workflow_code": workflow.code,
                    "workflow_name": workflow.name,
                    "workflow_steps": list(workflow.steps),
                })

        elapsed_ms = round((time.perf_counter() - started) * 1000, 2)
        transaction.transaction_status = "completed"
        transaction.posted_at = datetime.now(timezone.utc)
        transaction.transaction_data = {
            **(transaction.transaction_data or {}),
            "deployment_result": {
                "deployed_entity_id": str(deployed_entity.id),
                "accounts_created": len(accounts_created),
                "workflows_created": len(workflows_created),
                "warnings": warnings,
                "deployment_time_ms": elapsed_ms,
            },
        }
        await db.commit()

    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"Deployment of module {module_code} failed: {e}", exc_info=True)
        await _mark_failed(db, transaction_id, [str(e)])
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"message": "Module deployment failed", "errors": [str(e)]},
        )

    logger.info(
        f"Module {module.entity_code} deployed to organization {organization_id}: "
        f"{len(accounts_created)} accounts, {len(workflows_created)} workflows, {len(warnings)} warnings"
    )

    return {
        "data": {
            "deployment_id": str(transaction.id),
            "deployment_number": transaction.transaction_number,
            "status": transaction.transaction_status,
            "module": {
                "id": str(module.id),
                "entity_code": module.entity_code,
                "entity_name": module.entity_name,
            },
            "deployed_entity": {
                "id": str(deployed_entity.id),
                "entity_code": deployed_entity.entity_code,
                "entity_name": deployed_entity.entity_name,
            },
            "accounts_created": accounts_created,
            "workflows_created": workflows_created,
            "warnings": warnings,
            "deployment_time_ms": elapsed_ms,
        },
        "message": f"Module {module.entity_name} deployed successfully",
    }

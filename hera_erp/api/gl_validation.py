"""
GL validation API routes.

GET returns the validation queue; POST runs the validation rules (with
optional auto-fix) over a set of transactions and persists the outcome.
"""

import logging
import time
from datetime import datetime, timedelta, timezone
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from hera_erp.api.gl_accounts import chart_codes
from hera_erp.config.settings import get_settings
from hera_erp.database import get_db
from hera_erp.middleware.auth import TenantContext, require_permissions
from hera_erp.models import UniversalTransaction
from hera_erp.services import gl_validation

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/organizations/{organization_id}/gl", tags=["gl-validation"])

PENDING_STATUSES = ("pending", "draft")


class ValidationRequest(BaseModel):
    """Schema for a validation run."""
    transaction_ids: Optional[List[UUID]] = None
    auto_fix_enabled: bool = True
    confidence_threshold: float = Field(default=0.8, ge=0, le=1)
    include_recommendations: bool = True


def _snapshot(transaction: UniversalTransaction) -> dict:
    return {
        "id": transaction.id,
        "transaction_number": transaction.transaction_number,
        "transaction_type": transaction.transaction_type,
        "transaction_date": transaction.transaction_date.isoformat(),
        "total_amount": transaction.total_amount,
        "posting_status": transaction.posting_status,
        "entries": transaction.entries,
        "updated_at": transaction.updated_at.isoformat() if transaction.updated_at else None,
    }


def _pending_filter():
    return or_(
        UniversalTransaction.posting_status.is_(None),
        UniversalTransaction.posting_status.in_(PENDING_STATUSES),
    )


async def _duplicate_numbers(db: AsyncSession, organization_id: UUID, numbers: set[str]) -> set[str]:
    """Transaction numbers used by more than one transaction of the organization."""
    if not numbers:
        return set()
    result = await db.execute(
        select(UniversalTransaction.transaction_number)
        .where(
            UniversalTransaction.organization_id == organization_id,
            UniversalTransaction.transaction_number.in_(sorted(numbers)),
        )
        .group_by(UniversalTransaction.transaction_number)
        .having(func.count(UniversalTransaction.id) > 1)
    )
    return set(result.scalars().all())


@router.get("/validation")
async def get_validation_queue(
    organization_id: UUID,
    validation_scope: str = Query("pending", pattern="^(pending|recent|all|errors_only)$"),
    include_metrics: bool = False,
    db: AsyncSession = Depends(get_db),
    tenant: TenantContext = Depends(require_permissions("gl:read")),
):
    """
    Get the validation queue.

    Scopes:
        pending: posting status empty, pending or draft
        recent: created in the last 7 days
        errors_only: posting status error
        all: every validated transaction type
    """
    started = time.perf_counter()
    settings = get_settings()

    query = select(UniversalTransaction).where(
        UniversalTransaction.organization_id == organization_id,
        UniversalTransaction.transaction_type.in_(gl_validation.VALIDATED_TRANSACTION_TYPES),
    )
    if validation_scope == "pending":
        query = query.where(_pending_filter())
    elif validation_scope == "errors_only":
        query = query.where(UniversalTransaction.posting_status == "error")
    elif validation_scope == "recent":
        since = datetime.now(timezone.utc) - timedelta(days=7)
        query = query.where(UniversalTransaction.created_at >= since)

    query = query.order_by(UniversalTransaction.created_at.desc()).limit(settings.validation_queue_limit)
    result = await db.execute(query)
    transactions = result.scalars().all()

    items = [gl_validation.queue_item(_snapshot(t)) for t in transactions]
    summary = gl_validation.summarize_queue(items)
    accounts = await chart_codes(db, organization_id)

    return {
        "organization_id": str(organization_id),
        "validation_summary": summary,
        "validation_queue": items,
        "system_metrics": gl_validation.system_metrics(items, summary) if include_metrics else None,
        "metadata": {
            "validation_scope": validation_scope,
            "accounts_available": len(accounts),
            "processing_time_ms": round((time.perf_counter() - started) * 1000, 2),
            "generated_at": datetime.now(timezone.utc).isoformat(),
        },
    }


@router.post("/validation")
async def run_validation(
    organization_id: UUID,
    request: ValidationRequest,
    db: AsyncSession = Depends(get_db),
    tenant: TenantContext = Depends(require_permissions("gl:validate")),
):
    """
    Validate transactions and apply auto-fixes.

    Without transaction_ids, every pending transaction of a validated type is
    processed. Results are written back to posting_status and
    transaction_data["validation"].
    """
    started = time.perf_counter()
    settings = get_settings()

    query = select(UniversalTransaction).where(UniversalTransaction.organization_id == organization_id)
    if request.transaction_ids:
        query = query.where(UniversalTransaction.id.in_(request.transaction_ids))
    else:
        query = query.where(
            UniversalTransaction.transaction_type.in_(gl_validation.VALIDATED_TRANSACTION_TYPES),
            _pending_filter(),
        )
    query = query.order_by(UniversalTransaction.created_at.desc()).limit(settings.validation_queue_limit)

    result = await db.execute(query)
    transactions = result.scalars().all()

    logger.info(
        f"Validating {len(transactions)} transactions for organization {organization_id} "
        f"(auto_fix={request.auto_fix_enabled})"
    )

    accounts = await chart_codes(db, organization_id)
    duplicates = await _duplicate_numbers(
        db, organization_id, {t.transaction_number for t in transactions}
    )

    results = []
    for transaction in transactions:
        outcome = gl_validation.validate_transaction(
            _snapshot(transaction),
            accounts,
            is_duplicate=transaction.transaction_number in duplicates,
            auto_fix_enabled=request.auto_fix_enabled,
            confidence_threshold=request.confidence_threshold,
        )
        results.append(outcome)

        data = dict(transaction.transaction_data or {})
        if "entries" in data or outcome.corrected_entries:
            data["entries"] = outcome.corrected_entries
        data["validation"] = outcome.audit_record()
        transaction.transaction_data = data
        transaction.posting_status = outcome.posting_status

    await db.commit()

    summary = gl_validation.summarize_results(results)
    items = [r.to_dict() for r in results]

    logger.info(
        f"GL validation completed: {summary['validated']} validated, "
        f"{summary['errors']} errors, {summary['auto_fixed_count']} auto-fixed"
    )

    return {
        "organization_id": str(organization_id),
        "validation_summary": summary,
        "transactions": items,
        "auto_fix_recommendations": (
            gl_validation.build_recommendations(results) if request.include_recommendations else []
        ),
        "system_metrics": gl_validation.system_metrics(items, summary),
        "performance_metrics": {
            "processing_time_ms": round((time.perf_counter() - started) * 1000, 2),
        },
    }

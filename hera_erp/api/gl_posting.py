"""
GL posting API routes.

GET returns the posting queue; POST posts a batch of validated transactions
to the general ledger.
"""

import logging
import time
from datetime import date, datetime, timezone
from typing import Dict, List, Optional
from uuid import UUID, uuid4

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from hera_erp.api.gl_accounts import CHART_OF_ACCOUNT
from hera_erp.config.settings import get_settings
from hera_erp.database import get_db
from hera_erp.middleware.auth import TenantContext, require_permissions
from hera_erp.models import CoreEntity, UniversalTransaction
from hera_erp.services import gl_posting
from hera_erp.services.gl_validation import VALIDATED_TRANSACTION_TYPES

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/organizations/{organization_id}/gl", tags=["gl-posting"])

PERIOD_PATTERN = r"^\d{4}-(0[1-9]|1[0-2])$"
RESULT_LIMIT = 50


class PostingRequest(BaseModel):
    """Schema for a posting batch."""
    transaction_ids: Optional[List[UUID]] = None
    posting_date: Optional[date] = None
    posting_period: Optional[str] = Field(None, pattern=PERIOD_PATTERN)
    allow_partial_posting: bool = True
    dry_run: bool = False
    posting_description: Optional[str] = Field(None, max_length=500)


def _snapshot(transaction: UniversalTransaction) -> dict:
    return {
        "id": transaction.id,
        "transaction_number": transaction.transaction_number,
        "transaction_type": transaction.transaction_type,
        "transaction_date": transaction.transaction_date.isoformat(),
        "total_amount": transaction.total_amount,
        "posting_status": transaction.posting_status,
        "posted_at": transaction.posted_at.isoformat() if transaction.posted_at else None,
        "entries": transaction.entries,
    }


def _status_filter(status_name: str):
    statuses = gl_posting.STATUS_FILTERS[status_name]
    known = [s for s in statuses if s is not None]
    if None in statuses:
        return or_(UniversalTransaction.posting_status.is_(None), UniversalTransaction.posting_status.in_(known))
    return UniversalTransaction.posting_status.in_(known)


def _period_bounds(period: str) -> tuple[date, date]:
    year, month = (int(part) for part in period.split("-"))
    start = date(year, month, 1)
    end = date(year + 1, 1, 1) if month == 12 else date(year, month + 1, 1)
    return start, end


async def _account_names(db: AsyncSession, organization_id: UUID) -> Dict[str, str]:
    result = await db.execute(
        select(CoreEntity.entity_code, CoreEntity.entity_name).where(
            CoreEntity.organization_id == organization_id,
            CoreEntity.entity_type == CHART_OF_ACCOUNT,
            CoreEntity.is_active.is_(True),
        )
    )
    return {code: name for code, name in result.all() if code}


@router.get("/posting")
async def get_posting_queue(
    organization_id: UUID,
    status: Optional[str] = Query(None, pattern="^(ready|posted|pending|failed)$"),
    period: Optional[str] = Query(None, pattern=PERIOD_PATTERN),
    include_details: bool = False,
    db: AsyncSession = Depends(get_db),
    tenant: TenantContext = Depends(require_permissions("gl:read")),
):
    """
    Get the posting queue, newest first.

    Status filters:
        ready: validated and not yet posted
        posted: already in the ledger
        pending: posting status empty, pending or draft
        failed: posting status error
    """
    started = time.perf_counter()

    query = select(UniversalTransaction).where(
        UniversalTransaction.organization_id == organization_id,
        UniversalTransaction.transaction_type.in_(VALIDATED_TRANSACTION_TYPES),
    )
    if status:
        query = query.where(_status_filter(status))
    if period:
        start, end = _period_bounds(period)
        query = query.where(
            UniversalTransaction.transaction_date >= start,
            UniversalTransaction.transaction_date < end,
        )
    query = query.order_by(UniversalTransaction.created_at.desc()).limit(get_settings().posting_queue_limit)

    result = await db.execute(query)
    transactions = result.scalars().all()
    account_names = await _account_names(db, organization_id)

    items = [gl_posting.queue_item(_snapshot(t), account_names, include_details) for t in transactions]
    last_posted = max((i["posted_at"] for i in items if i["posted_at"]), default=None)

    return {
        "organization_id": str(organization_id),
        "posting_queue": items,
        "summary": gl_posting.summarize_queue(items),
        "filters": {"status": status, "period": period, "include_details": include_details},
        "current_period": datetime.now(timezone.utc).strftime("%Y-%m"),
        "last_successful_post": last_posted,
        "metadata": {
            "processing_time_ms": round((time.perf_counter() - started) * 1000, 2),
            "generated_at": datetime.now(timezone.utc).isoformat(),
        },
    }


@router.post("/posting")
async def post_transactions(
    organization_id: UUID,
    request: PostingRequest,
    db: AsyncSession = Depends(get_db),
    tenant: TenantContext = Depends(require_permissions("gl:write")),
):
    """
    Post transactions to the general ledger.

    Without transaction_ids every ready transaction is posted. Transactions
    whose entries do not check out are skipped; with allow_partial_posting
    off they fail the whole batch and nothing is posted.
    """
    started = time.perf_counter()
    now = datetime.now(timezone.utc)
    posting_date = (request.posting_date or now.date()).isoformat()
    posting_period = request.posting_period or posting_date[:7]
    batch_id = str(uuid4())

    query = select(UniversalTransaction).where(
        UniversalTransaction.organization_id == organization_id,
        UniversalTransaction.transaction_type.in_(VALIDATED_TRANSACTION_TYPES),
    )
    if request.transaction_ids:
        query = query.where(UniversalTransaction.id.in_(request.transaction_ids))
    else:
        query = query.where(_status_filter("ready"))
    query = query.order_by(UniversalTransaction.created_at.desc()).limit(get_settings().posting_batch_limit)

    result = await db.execute(query)
    transactions = result.scalars().all()

    logger.info(
        f"Posting batch {batch_id}: {len(transactions)} transactions for organization {organization_id} "
        f"(dry_run={request.dry_run})"
    )

    account_names = await _account_names(db, organization_id)
    checks = []
    for transaction in transactions:
        check = gl_posting.check_entries(transaction.entries, account_names)
        if transaction.posting_status == "posted":
            check.errors.insert(0, "Transaction is already posted")
        checks.append((transaction, check))

    aborted = not request.allow_partial_posting and any(check.errors for _, check in checks)

    results = []
    for transaction, check in checks:
        snapshot = _snapshot(transaction)
        if check.errors:
            status_value = "skipped" if request.allow_partial_posting else "failed"
            results.append(
                gl_posting.posting_result(
                    snapshot, check, status_value, batch_id, posting_date,
                    audit_trail=["Transaction validation failed", f"Posting {status_value}"],
                )
            )
            continue

        if aborted:
            results.append(
                gl_posting.posting_result(
                    snapshot, check, "skipped", batch_id, posting_date,
                    audit_trail=["Transaction validated successfully", "Batch aborted by failed transactions"],
                )
            )
            continue

        journal_entry_id = None
        if not request.dry_run:
            journal_entry_id = str(uuid4())
            transaction.posting_status = "posted"
            transaction.posted_at = now
            transaction.transaction_data = {
                **(transaction.transaction_data or {}),
                "posting": {
                    "batch_id": batch_id,
                    "journal_entry_id": journal_entry_id,
                    "posting_date": posting_date,
                    "posting_period": posting_period,
                    "description": request.posting_description,
                    "posted_by": str(tenant.user.id),
                },
            }
        results.append(
            gl_posting.posting_result(
                snapshot, check, "posted", batch_id, posting_date,
                journal_entry_id=journal_entry_id,
                audit_trail=[
                    "Transaction validated successfully",
                    "Dry run, nothing posted" if request.dry_run else "Posted to general ledger",
                    f"GL accounts updated: {len(check.mappings)}",
                ],
            )
        )

    if not request.dry_run and not aborted:
        await db.commit()

    summary = gl_posting.summarize_batch(
        results,
        batch_id=batch_id,
        organization_id=str(organization_id),
        posting_date=posting_date,
        posting_period=posting_period,
        dry_run=request.dry_run,
        aborted=aborted,
    )

    if aborted:
        logger.warning(f"Posting batch {batch_id} aborted: {summary['failed_posts']} transactions failed")
    else:
        logger.info(
            f"Posting batch {batch_id} completed: {summary['successful_posts']} posted, "
            f"{summary['skipped_posts']} skipped"
        )

    return {
        "summary": summary,
        "results": results[:RESULT_LIMIT],
        "metadata": {
            "processing_time_ms": round((time.perf_counter() - started) * 1000, 2),
            "generated_at": datetime.now(timezone.utc).isoformat(),
        },
    }

"""
General ledger API routes: chart of accounts and journal entries.

Accounts are chart_of_account entities; journal entries are universal
transactions whose lines live in transaction_data["entries"].
"""

import logging
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional
from uuid import UUID, uuid4

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from hera_erp.api.entities import code_in_use, create_entity, fetch_fields
from hera_erp.database import get_db
from hera_erp.middleware.auth import TenantContext, require_permissions
from hera_erp.models import CoreEntity, UniversalTransaction
from hera_erp.services.accounts import resolve_account_type, validate_account_code
from hera_erp.services.errors import ValidationRuleError
from hera_erp.services.universal import to_float

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/organizations/{organization_id}/gl", tags=["general-ledger"])

CHART_OF_ACCOUNT = "chart_of_account"


# Pydantic schemas
class AccountCreate(BaseModel):
    """Schema for creating a GL account."""
    account_code: str = Field(..., min_length=1, max_length=20)
    account_name: str = Field(..., min_length=1, max_length=255)
    account_type: Optional[str] = None
    description: Optional[str] = None
    current_balance: float = 0.0


class AccountResponse(BaseModel):
    """Schema for GL account response."""
    id: UUID
    account_code: str
    account_name: str
    account_type: Optional[str]
    current_balance: float
    fields: Dict[str, Any] = Field(default_factory=dict)


class JournalLine(BaseModel):
    """One debit or credit line."""
    account_code: str = Field(..., min_length=1, max_length=20)
    debit: float = Field(default=0.0, ge=0)
    credit: float = Field(default=0.0, ge=0)
    description: Optional[str] = None


class JournalEntryCreate(BaseModel):
    """Schema for creating a draft journal entry."""
    transaction_date: Optional[date] = None
    transaction_number: Optional[str] = Field(None, max_length=100)
    transaction_type: str = Field(default="journal_entry", max_length=100)
    description: Optional[str] = None
    currency: str = Field(default="USD", min_length=3, max_length=3)
    entries: List[JournalLine] = Field(..., min_length=1)


class JournalEntryResponse(BaseModel):
    """Schema for journal entry response."""
    id: UUID
    transaction_number: str
    transaction_type: str
    transaction_date: date
    total_amount: Optional[float]
    currency: str
    posting_status: Optional[str]
    entries: List[Dict[str, Any]]
    created_at: datetime


def generate_journal_number(today: date) -> str:
    return f"JE-{today:%Y%m%d}-{uuid4().hex[:6].upper()}"


def _account_payload(entity: CoreEntity, fields: Dict[str, Any]) -> AccountResponse:
    return AccountResponse(
        id=entity.id,
        account_code=entity.entity_code or "",
        account_name=entity.entity_name,
        account_type=fields.get("account_type"),
        current_balance=to_float(fields.get("current_balance")),
        fields=fields,
    )


def _journal_payload(transaction: UniversalTransaction) -> JournalEntryResponse:
    return JournalEntryResponse(
        id=transaction.id,
        transaction_number=transaction.transaction_number,
        transaction_type=transaction.transaction_type,
        transaction_date=transaction.transaction_date,
        total_amount=transaction.total_amount,
        currency=transaction.currency,
        posting_status=transaction.posting_status,
        entries=transaction.entries,
        created_at=transaction.created_at,
    )


async def chart_codes(db: AsyncSession, organization_id: UUID) -> set[str]:
    """Codes of the organization's active accounts."""
    result = await db.execute(
        select(CoreEntity.entity_code).where(
            CoreEntity.organization_id == organization_id,
            CoreEntity.entity_type == CHART_OF_ACCOUNT,
            CoreEntity.is_active.is_(True),
        )
    )
    return {code for code in result.scalars().all() if code}


@router.get("/accounts", response_model=List[AccountResponse])
async def list_accounts(
    organization_id: UUID,
    db: AsyncSession = Depends(get_db),
    tenant: TenantContext = Depends(require_permissions("gl:read")),
):
    """List the active chart of accounts ordered by code."""
    result = await db.execute(
        select(CoreEntity)
        .where(
            CoreEntity.organization_id == organization_id,
            CoreEntity.entity_type == CHART_OF_ACCOUNT,
            CoreEntity.is_active.is_(True),
        )
        .order_by(CoreEntity.entity_code)
    )
    accounts = result.scalars().all()
    fields = await fetch_fields(db, [a.id for a in accounts])
    return [_account_payload(a, fields.get(a.id, {})) for a in accounts]


@router.post("/accounts", response_model=AccountResponse, status_code=status.HTTP_201_CREATED)
async def create_account(
    organization_id: UUID,
    account: AccountCreate,
    db: AsyncSession = Depends(get_db),
    tenant: TenantContext = Depends(require_permissions("gl:write")),
):
    """
    Create a GL account.

    The account type is inferred from the first digit of the code when not given.

    Raises:
        HTTPException: 400 for an invalid code or type, 409 for a duplicate code
    """
    try:
        code = validate_account_code(account.account_code)
        account_type = resolve_account_type(code, account.account_type)
    except ValidationRuleError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    if await code_in_use(db, organization_id, CHART_OF_ACCOUNT, code):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Account {code} already exists",
        )

    fields: Dict[str, Any] = {"account_type": account_type, "current_balance": account.current_balance}
    if account.description:
        fields["description"] = account.description

    entity = await create_entity(
        db,
        organization_id,
        entity_type=CHART_OF_ACCOUNT,
        entity_name=account.account_name,
        entity_code=code,
        fields=fields,
        created_by=tenant.user.id,
    )
    await db.commit()

    logger.info(f"Created account {code} ({account_type}) in organization {organization_id}")

    stored = await fetch_fields(db, [entity.id])
    return _account_payload(entity, stored.get(entity.id, {}))


@router.post(
    "/journal-entries",
    response_model=JournalEntryResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_journal_entry(
    organization_id: UUID,
    journal_entry: JournalEntryCreate,
    db: AsyncSession = Depends(get_db),
    tenant: TenantContext = Depends(require_permissions("gl:write")),
):
    """
    Create a draft journal entry.

    The total amount is the sum of debits. Balance and account checks are
    left to the validation endpoint.
    """
    today = datetime.now(timezone.utc).date()
    entries = [line.model_dump(exclude_none=True) for line in journal_entry.entries]

    transaction = UniversalTransaction(
        organization_id=organization_id,
        transaction_type=journal_entry.transaction_type,
        transaction_number=journal_entry.transaction_number or generate_journal_number(today),
        transaction_date=journal_entry.transaction_date or today,
        total_amount=round(sum(line.debit for line in journal_entry.entries), 2),
        currency=journal_entry.currency.upper(),
        posting_status="draft",
        transaction_data={"description": journal_entry.description, "entries": entries},
        created_by=tenant.user.id,
    )
    db.add(transaction)
    await db.commit()
    await db.refresh(transaction)

    logger.info(
        f"Created journal entry {transaction.transaction_number} "
        f"({len(entries)} lines, total {transaction.total_amount}) in organization {organization_id}"
    )
    return _journal_payload(transaction)


@router.get("/journal-entries", response_model=List[JournalEntryResponse])
async def list_journal_entries(
    organization_id: UUID,
    posting_status: Optional[str] = None,
    limit: int = Query(50, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
    tenant: TenantContext = Depends(require_permissions("gl:read")),
):
    """List journal entries, newest first."""
    query = select(UniversalTransaction).where(
        UniversalTransaction.organization_id == organization_id,
        func.lower(UniversalTransaction.transaction_type).in_(("journal_entry", "ai_journal_entry")),
    )
    if posting_status:
        query = query.where(UniversalTransaction.posting_status == posting_status)

    result = await db.execute(query.order_by(UniversalTransaction.created_at.desc()).limit(limit))
    return [_journal_payload(t) for t in result.scalars().all()]

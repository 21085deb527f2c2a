"""
Goods receiving API routes.

A receipt is stored as a goods_receipt universal transaction. Stock
increases, the supplier's delivery performance and the generated insights are
written to core_metadata alongside it.
"""

import logging
import math
import secrets
from datetime import date, datetime, timezone
from typing import List, Optional
from uuid import UUID, uuid4

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hera_erp.api.entities import fetch_fields, get_tenant_entity
from hera_erp.config.settings import get_settings
from hera_erp.database import get_db
from hera_erp.middleware.auth import TenantContext, require_permissions
from hera_erp.models import CoreEntity, CoreMetadata, UniversalTransaction
from hera_erp.services import receiving

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/organizations/{organization_id}/receiving", tags=["receiving"])

GOODS_RECEIPT = "goods_receipt"
SUPPLIER = "supplier"
RECEIPT_NUMBER_ATTEMPTS = 5


# Pydantic schemas
class ReceivedItem(BaseModel):
    """One received line."""
    item_id: str = Field(..., min_length=1, max_length=100)
    item_name: str = Field(..., min_length=1, max_length=255)
    expected_quantity: float = Field(..., ge=0)
    received_quantity: float = Field(..., ge=0)
    unit_price: float = Field(..., ge=0)
    unit: str = Field(default="each", max_length=50)
    quality_status: str = Field(..., pattern="^(accepted|rejected|partial|damaged)$")
    expiry_date: Optional[date] = None
    batch_number: Optional[str] = Field(None, max_length=100)
    storage_location: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = None


class ReceiptCreate(BaseModel):
    """Schema for recording a goods receipt."""
    supplier_id: UUID
    supplier_name: Optional[str] = Field(None, max_length=255)
    purchase_order_id: Optional[str] = Field(None, max_length=100)
    delivery_date: date
    received_by: str = Field(..., min_length=1, max_length=255)
    items: List[ReceivedItem] = Field(..., min_length=1)
    overall_quality_rating: int = Field(..., ge=1, le=5)
    delivery_rating: int = Field(..., ge=1, le=5)
    packaging_rating: int = Field(..., ge=1, le=5)
    temperature_compliant: Optional[bool] = None
    delivery_notes: Optional[str] = None
    quality_inspection_notes: Optional[str] = None
    receiving_location: Optional[str] = Field(None, max_length=100)
    image_urls: List[str] = Field(default_factory=list)


def generate_receipt_number(today: date) -> str:
    return f"GR-{today:%Y%m%d}-{secrets.randbelow(1_000_000):06d}"


async def unused_receipt_number(db: AsyncSession, organization_id: UUID, today: date) -> str:
    """Draw receipt numbers until one is free in the organization."""
    for _ in range(RECEIPT_NUMBER_ATTEMPTS):
        number = generate_receipt_number(today)
        result = await db.execute(
            select(UniversalTransaction.id).where(
                UniversalTransaction.organization_id == organization_id,
                UniversalTransaction.transaction_type == GOODS_RECEIPT,
                UniversalTransaction.transaction_number == number,
            )
        )
        if result.first() is None:
            return number
        logger.warning(f"Receipt number {number} already used, drawing another")
    raise HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail="Could not allocate a receipt number, please retry",
    )


def _metadata_row(
    organization_id: UUID,
    entity_type: str,
    entity_id: UUID,
    metadata_type: str,
    category: str,
    key: str,
    value: dict,
    created_by: UUID,
) -> CoreMetadata:
    return CoreMetadata(
        organization_id=organization_id,
        entity_type=entity_type,
        entity_id=entity_id,
        metadata_type=metadata_type,
        metadata_category=category,
        metadata_key=key,
        metadata_value=value,
        created_by=str(created_by),
    )


@router.post("/receipts", status_code=status.HTTP_201_CREATED)
async def create_receipt(
    organization_id: UUID,
    request: ReceiptCreate,
    db: AsyncSession = Depends(get_db),
    tenant: TenantContext = Depends(require_permissions("receiving:write")),
):
    """
    Record a goods receipt and generate receiving intelligence.

    Raises:
        HTTPException: 404 if the supplier is not a supplier entity of the organization
    """
    supplier = await get_tenant_entity(db, organization_id, request.supplier_id, SUPPLIER)

    receipt = request.model_dump(mode="json")
    receipt["supplier_name"] = receipt["supplier_name"] or supplier.entity_name
    items = receipt["items"]

    variance = receiving.variance_rate(items)
    score = receiving.quality_score(
        receipt["overall_quality_rating"], receipt["delivery_rating"], receipt["packaging_rating"]
    )
    intelligence = receiving.build_intelligence(receipt)
    performance = receiving.item_performance(items)

    transaction = UniversalTransaction(
        id=uuid4(),
        organization_id=organization_id,
        transaction_type=GOODS_RECEIPT,
        transaction_number=await unused_receipt_number(db, organization_id, datetime.now(timezone.utc).date()),
        transaction_date=request.delivery_date,
        total_amount=round(receiving.receipt_total(items), 2),
        transaction_status="completed",
        procurement_metadata=receiving.procurement_metadata(receipt, variance, score),
        transaction_data={"intelligence": intelligence, "item_performance": performance},
        created_by=tenant.user.id,
    )
    db.add(transaction)
    receipt_id = str(transaction.id)

    for item in items:
        if item["quality_status"] not in receiving.STOCK_INCREASE_STATUSES:
            continue
        db.add(
            _metadata_row(
                organization_id,
                "inventory_adjustment",
                transaction.id,
                "stock_increase",
                "inventory",
                f"stock_{item['item_id']}",
                receiving.stock_adjustment(item, receipt_id),
                tenant.user.id,
            )
        )

    db.add(
        _metadata_row(
            organization_id,
            "supplier_performance",
            supplier.id,
            "delivery_performance",
            "supplier_analytics",
            f"delivery_{transaction.transaction_number}",
            receiving.delivery_performance(receipt),
            tenant.user.id,
        )
    )
    db.add(
        _metadata_row(
            organization_id,
            "ai_insights",
            transaction.id,
            "receiving_intelligence",
            "ai_analytics",
            f"receiving_{transaction.transaction_number}",
            receiving.learning_record(receipt, receipt_id, transaction.transaction_number, intelligence),
            tenant.user.id,
        )
    )

    await db.commit()

    logger.info(
        f"Goods receipt {transaction.transaction_number} recorded for supplier {supplier.id} "
        f"({len(items)} items, quality {score})"
    )
    if intelligence["alerts"]:
        logger.warning(
            f"Goods receipt {transaction.transaction_number} raised {len(intelligence['alerts'])} quality alerts"
        )

    return {
        "data": {
            "receipt_id": receipt_id,
            "receipt_number": transaction.transaction_number,
            "status": transaction.transaction_status,
            "total_amount": transaction.total_amount,
            "variance_rate": variance,
            "quality_score": score,
            "item_performance": performance,
            "intelligence": intelligence,
        },
        "message": "Goods receipt recorded successfully",
    }


@router.get("/receipts")
async def list_receipts(
    organization_id: UUID,
    supplier_id: Optional[UUID] = None,
    purchase_order_id: Optional[str] = None,
    status_filter: Optional[str] = Query(None, alias="status"),
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
    tenant: TenantContext = Depends(require_permissions("receiving:read")),
):
    """
    List goods receipts, newest first, with supplier trend analysis.

    Supplier and purchase order filters match the stored procurement metadata.
    Filters narrow the listing only: supplier trends always compare against
    the supplier's ten previous receipts.
    """
    limit = limit or get_settings().receiving_page_limit

    query = select(UniversalTransaction).where(
        UniversalTransaction.organization_id == organization_id,
        UniversalTransaction.transaction_type == GOODS_RECEIPT,
    )
    result = await db.execute(query.order_by(UniversalTransaction.created_at.desc()))
    receipts = result.scalars().all()

    def matches(receipt: UniversalTransaction) -> bool:
        meta = receipt.procurement_metadata or {}
        if supplier_id and meta.get("supplier_id") != str(supplier_id):
            return False
        if purchase_order_id and meta.get("purchase_order_id") != purchase_order_id:
            return False
        if status_filter and receipt.transaction_status != status_filter:
            return False
        if date_from and receipt.transaction_date < date_from:
            return False
        if date_to and receipt.transaction_date > date_to:
            return False
        return True

    position = {r.id: i for i, r in enumerate(receipts)}
    filtered = [r for r in receipts if matches(r)]
    total = len(filtered)
    page_items = filtered[(page - 1) * limit : page * limit]

    supplier_ids = set()
    for receipt in page_items:
        raw = (receipt.procurement_metadata or {}).get("supplier_id")
        try:
            supplier_ids.add(UUID(str(raw)))
        except ValueError:
            logger.warning(f"Goods receipt {receipt.id} has invalid supplier_id {raw!r}")

    suppliers = {}
    if supplier_ids:
        result = await db.execute(
            select(CoreEntity).where(
                CoreEntity.organization_id == organization_id,
                CoreEntity.id.in_(list(supplier_ids)),
            )
        )
        suppliers = {str(s.id): s for s in result.scalars().all()}
    supplier_fields = await fetch_fields(db, [s.id for s in suppliers.values()])

    data = []
    for receipt in page_items:
        meta = receipt.procurement_metadata or {}
        # receipts are every receipt of the organization, newest first, so later
        # positions are earlier receipts whatever the listing filters are
        history = [
            r.procurement_metadata or {}
            for r in receipts[position[receipt.id] + 1 :]
            if (r.procurement_metadata or {}).get("supplier_id") == meta.get("supplier_id")
        ][:10]

        supplier = suppliers.get(str(meta.get("supplier_id")))
        data.append({
            "id": str(receipt.id),
            "receipt_number": receipt.transaction_number,
            "transaction_date": receipt.transaction_date.isoformat(),
            "status": receipt.transaction_status,
            "total_amount": receipt.total_amount,
            "procurement_metadata": meta,
            "intelligence": (receipt.transaction_data or {}).get("intelligence"),
            "item_performance": (receipt.transaction_data or {}).get("item_performance"),
            "created_at": receipt.created_at.isoformat(),
            "supplier": (
                {
                    "id": str(supplier.id),
                    "entity_name": supplier.entity_name,
                    "entity_code": supplier.entity_code,
                    "fields": supplier_fields.get(supplier.id, {}),
                }
                if supplier
                else None
            ),
            "supplier_analysis": receiving.supplier_trends(meta, history),
        })

    return {
        "data": data,
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "total_pages": math.ceil(total / limit) if total else 0,
        },
    }


@router.get("/suppliers/{supplier_id}/performance")
async def get_supplier_performance(
    organization_id: UUID,
    supplier_id: UUID,
    db: AsyncSession = Depends(get_db),
    tenant: TenantContext = Depends(require_permissions("receiving:read")),
):
    """Aggregate the supplier's delivery performance history."""
    supplier = await get_tenant_entity(db, organization_id, supplier_id, SUPPLIER)

    result = await db.execute(
        select(CoreMetadata.metadata_value)
        .where(
            CoreMetadata.organization_id == organization_id,
            CoreMetadata.entity_type == "supplier_performance",
            CoreMetadata.entity_id == supplier.id,
            CoreMetadata.metadata_type == "delivery_performance",
        )
        .order_by(CoreMetadata.created_at.desc())
    )
    records = [value for value in result.scalars().all() if value]

    return {
        "data": {
            "supplier_id": str(supplier.id),
            "supplier_name": supplier.entity_name,
            **receiving.supplier_performance(records),
        }
    }

"""
Universal transaction model.

Every business event (journal entry, purchase order, goods receipt, module
deployment) is one row. Line detail lives in JSON:
transaction_data["entries"] for GL lines, procurement_metadata for receiving.
"""

from datetime import date, datetime
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import JSON, Date, DateTime, Float, ForeignKey, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from hera_erp.models.base import Base, _utc_now


class UniversalTransaction(Base):
    """Universal transaction row."""

    __tablename__ = "universal_transactions"

    # Primary key
    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    # Foreign keys (multi-tenancy)
    organization_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True
    )

    # Classification
    transaction_type: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    transaction_subtype: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    transaction_number: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    transaction_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)

    # Amounts
    total_amount: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    currency: Mapped[str] = mapped_column(String(3), default="USD")

    # Workflow
    transaction_status: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)  # processing, completed, failed
    posting_status: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)  # draft, pending, ready, posted, error

    # Flexible payloads
    transaction_data: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    procurement_metadata: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)

    created_by: Mapped[Optional[UUID]] = mapped_column(Uuid, nullable=True)
    posted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utc_now, nullable=False, index=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utc_now, onupdate=_utc_now, nullable=False
    )

    def __repr__(self) -> str:
        return (
            f"<UniversalTransaction(id={self.id}, type={self.transaction_type}, "
            f"number={self.transaction_number})>"
        )

    @property
    def entries(self) -> list[dict]:
        """GL entries stored in transaction_data (empty list if none)."""
        return list((self.transaction_data or {}).get("entries") or [])

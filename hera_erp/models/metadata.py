"""
Metadata model for typed annotations.

Used for inventory adjustments, supplier performance snapshots and
analytics produced by the receiving workflow.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import JSON, DateTime, ForeignKey, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from hera_erp.models.base import Base, _utc_now


class CoreMetadata(Base):
    """Typed metadata row attached to an (entity_type, entity_id) pair."""

    __tablename__ = "core_metadata"

    # Primary key
    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    # Foreign keys
    organization_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True
    )

    # Target (not a foreign key: may point at entities or transactions)
    entity_type: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    entity_id: Mapped[UUID] = mapped_column(Uuid, nullable=False, index=True)

    metadata_type: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    metadata_category: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    metadata_key: Mapped[str] = mapped_column(String(100), nullable=False)
    metadata_value: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)

    created_by: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # Timestamp
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utc_now, nullable=False, index=True)

    def __repr__(self) -> str:
        return f"<CoreMetadata(id={self.id}, type={self.metadata_type}, entity_id={self.entity_id})>"

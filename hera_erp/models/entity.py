"""
Universal entity models.

core_entities holds every business object regardless of type; per-type
attributes live in core_dynamic_data as name/value rows.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import Boolean, DateTime, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hera_erp.models.base import Base, _utc_now


class CoreEntity(Base):
    """
    Universal entity.

    Examples of entity_type: chart_of_account, supplier, menu_item,
    erp_module_template, deployed_erp_module, business_workflow.
    """

    __tablename__ = "core_entities"

    # Primary key
    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    # Foreign keys (multi-tenancy)
    organization_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True
    )

    # Entity details
    entity_type: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    entity_code: Mapped[Optional[str]] = mapped_column(String(100), nullable=True, index=True)
    entity_name: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)

    created_by: Mapped[Optional[UUID]] = mapped_column(Uuid, nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utc_now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utc_now, onupdate=_utc_now, nullable=False
    )

    # Relationships
    dynamic_data: Mapped[list["CoreDynamicData"]] = relationship(
        "CoreDynamicData",
        back_populates="entity",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<CoreEntity(id={self.id}, type={self.entity_type}, code={self.entity_code})>"

    def deactivate(self) -> None:
        """Soft delete the entity."""
        self.is_active = False


class CoreDynamicData(Base):
    """
    Custom field value attached to an entity.

    field_value is always stored as text; field_type tells readers how to
    decode it (see hera_erp.services.universal).
    """

    __tablename__ = "core_dynamic_data"

    # Primary key
    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    # Foreign keys
    entity_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("core_entities.id", ondelete="CASCADE"), nullable=False, index=True
    )
    organization_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True
    )

    field_name: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    field_type: Mapped[str] = mapped_column(String(20), nullable=False, default="text")  # text, number, boolean, json, date
    field_value: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utc_now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utc_now, onupdate=_utc_now, nullable=False
    )

    # Relationships
    entity: Mapped["CoreEntity"] = relationship("CoreEntity", back_populates="dynamic_data")

    def __repr__(self) -> str:
        return f"<CoreDynamicData(entity_id={self.entity_id}, {self.field_name}={self.field_value!r})>"

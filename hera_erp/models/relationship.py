"""
Relationship model linking two universal entities.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from hera_erp.models.base import Base, _utc_now


class CoreRelationship(Base):
    """
    Directed link parent -> child.

    Examples of relationship_type: module_depends_on, supplier_supplies_item,
    recipe_uses_ingredient.
    """

    __tablename__ = "core_relationships"

    # Primary key
    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    # Foreign keys
    organization_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    parent_entity_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("core_entities.id", ondelete="CASCADE"), nullable=False, index=True
    )
    child_entity_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("core_entities.id", ondelete="CASCADE"), nullable=False, index=True
    )

    relationship_type: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    relationship_data: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)

    # Timestamp
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utc_now, nullable=False)

    def __repr__(self) -> str:
        return (
            f"<CoreRelationship({self.parent_entity_id} -{self.relationship_type}-> "
            f"{self.child_entity_id})>"
        )

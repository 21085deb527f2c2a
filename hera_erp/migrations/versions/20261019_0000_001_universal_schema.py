"""Universal schema

Revision ID: 001
Revises:
Create Date: 2026-10-19 00:00:00.000000

Creates the PostgreSQL schema for the HERA universal ERP:
- Organizations (tenants), users and memberships
- core_entities / core_dynamic_data
- core_metadata
- core_relationships
- universal_transactions
"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Create organizations table
    op.create_table(
        "organizations",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("slug", sa.String(100), nullable=False, unique=True),
        sa.Column("industry", sa.String(100), nullable=True),
        sa.Column("plan", sa.String(50), nullable=False, server_default="trial"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_organizations_name", "organizations", ["name"])
    op.create_index("ix_organizations_slug", "organizations", ["slug"])
    op.create_index("ix_organizations_is_active", "organizations", ["is_active"])

    # Create users table
    op.create_table(
        "users",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("hashed_password", sa.String(255), nullable=False),
        sa.Column("full_name", sa.String(255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column("last_login_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_users_email", "users", ["email"])
    op.create_index("ix_users_is_active", "users", ["is_active"])

    # Create user_organizations (membership) table
    op.create_table(
        "user_organizations",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("organization_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("role", sa.String(50), nullable=False, server_default="staff"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["organization_id"], ["organizations.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("user_id", "organization_id", name="uq_user_organization"),
    )
    op.create_index("ix_user_organizations_user_id", "user_organizations", ["user_id"])
    op.create_index("ix_user_organizations_organization_id", "user_organizations", ["organization_id"])
    op.create_index("ix_user_organizations_is_active", "user_organizations", ["is_active"])

    # Create core_entities table
    op.create_table(
        "core_entities",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("organization_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("entity_type", sa.String(100), nullable=False),
        sa.Column("entity_code", sa.String(100), nullable=True),
        sa.Column("entity_name", sa.String(255), nullable=False),
        sa.Column("status", sa.String(50), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column("created_by", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["organization_id"], ["organizations.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_core_entities_organization_id", "core_entities", ["organization_id"])
    op.create_index("ix_core_entities_entity_type", "core_entities", ["entity_type"])
    op.create_index("ix_core_entities_entity_code", "core_entities", ["entity_code"])
    op.create_index("ix_core_entities_is_active", "core_entities", ["is_active"])

    # Create core_dynamic_data table
    op.create_table(
        "core_dynamic_data",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("entity_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("organization_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("field_name", sa.String(100), nullable=False),
        sa.Column("field_type", sa.String(20), nullable=False, server_default="text"),
        sa.Column("field_value", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["entity_id"], ["core_entities.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["organization_id"], ["organizations.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_core_dynamic_data_entity_id", "core_dynamic_data", ["entity_id"])
    op.create_index("ix_core_dynamic_data_organization_id", "core_dynamic_data", ["organization_id"])
    op.create_index("ix_core_dynamic_data_field_name", "core_dynamic_data", ["field_name"])

    # Create core_metadata table
    op.create_table(
        "core_metadata",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("organization_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("entity_type", sa.String(100), nullable=False),
        sa.Column("entity_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("metadata_type", sa.String(100), nullable=False),
        sa.Column("metadata_category", sa.String(100), nullable=True),
        sa.Column("metadata_key", sa.String(100), nullable=False),
        sa.Column("metadata_value", postgresql.JSONB(), nullable=True),
        sa.Column("created_by", sa.String(255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["organization_id"], ["organizations.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_core_metadata_organization_id", "core_metadata", ["organization_id"])
    op.create_index("ix_core_metadata_entity_type", "core_metadata", ["entity_type"])
    op.create_index("ix_core_metadata_entity_id", "core_metadata", ["entity_id"])
    op.create_index("ix_core_metadata_metadata_type", "core_metadata", ["metadata_type"])
    op.create_index("ix_core_metadata_created_at", "core_metadata", ["created_at"])

    # Create core_relationships table
    op.create_table(
        "core_relationships",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("organization_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("parent_entity_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("child_entity_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("relationship_type", sa.String(100), nullable=False),
        sa.Column("relationship_data", postgresql.JSONB(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["organization_id"], ["organizations.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["parent_entity_id"], ["core_entities.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["child_entity_id"], ["core_entities.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_core_relationships_organization_id", "core_relationships", ["organization_id"])
    op.create_index("ix_core_relationships_parent_entity_id", "core_relationships", ["parent_entity_id"])
    op.create_index("ix_core_relationships_child_entity_id", "core_relationships", ["child_entity_id"])
    op.create_index("ix_core_relationships_relationship_type", "core_relationships", ["relationship_type"])
    op.create_index("ix_core_relationships_is_active", "core_relationships", ["is_active"])

    # Create universal_transactions table
    op.create_table(
        "universal_transactions",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("organization_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("transaction_type", sa.String(100), nullable=False),
        sa.Column("transaction_subtype", sa.String(100), nullable=True),
        sa.Column("transaction_number", sa.String(100), nullable=False),
        sa.Column("transaction_date", sa.Date(), nullable=False),
        sa.Column("total_amount", sa.Float(), nullable=True),
        sa.Column("currency", sa.String(3), nullable=False, server_default="USD"),
        sa.Column("transaction_status", sa.String(50), nullable=True),
        sa.Column("posting_status", sa.String(50), nullable=True),
        sa.Column("transaction_data", postgresql.JSONB(), nullable=True),
        sa.Column("procurement_metadata", postgresql.JSONB(), nullable=True),
        sa.Column("created_by", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("posted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["organization_id"], ["organizations.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_universal_transactions_organization_id", "universal_transactions", ["organization_id"])
    op.create_index("ix_universal_transactions_transaction_type", "universal_transactions", ["transaction_type"])
    op.create_index("ix_universal_transactions_transaction_number", "universal_transactions", ["transaction_number"])
    op.create_index("ix_universal_transactions_transaction_date", "universal_transactions", ["transaction_date"])
    op.create_index("ix_universal_transactions_created_at", "universal_transactions", ["created_at"])

    # Seed the system organization that owns shared module templates
    op.execute(
        """
        INSERT INTO organizations (id, name, slug, industry, plan, is_active, created_at, updated_at)
        VALUES ('00000000-0000-0000-0000-000000000001', 'HERA System', 'hera-system', NULL, 'enterprise', true, NOW(), NOW())
        """
    )


def downgrade() -> None:
    # Drop tables in reverse order (respecting foreign keys)
    op.drop_table("universal_transactions")
    op.drop_table("core_relationships")
    op.drop_table("core_metadata")
    op.drop_table("core_dynamic_data")
    op.drop_table("core_entities")
    op.drop_table("user_organizations")
    op.drop_table("users")
    op.drop_table("organizations")

"""
Seed data script for local development.

Creates the system organization with the shared ERP module templates, and a
demo restaurant tenant with an owner, a supplier and a starter chart of
accounts.
"""

import asyncio
from uuid import uuid4

from sqlalchemy import select

from hera_erp import SYSTEM_ORGANIZATION_ID
from hera_erp.api.entities import create_entity
from hera_erp.database import AsyncSessionLocal, init_db
from hera_erp.models import CoreRelationship, Organization, User, UserOrganization
from hera_erp.security import hash_password
from hera_erp.services.deployment import DEPENDENCY_RELATIONSHIP

MODULE_TEMPLATES = [
    {
        "code": "SYS-GL-CORE",
        "name": "General Ledger Core",
        "fields": {
            "description": "Chart of accounts, journal entries and GL validation",
            "module_category": "finance",
            "functional_area": "accounting",
            "is_core": True,
            "deployment_time_minutes": 10,
            "requires_setup": True,
        },
        "depends_on": [],
    },
    {
        "code": "SYS-AR-MGMT",
        "name": "Accounts Receivable",
        "fields": {
            "description": "Customer invoicing and collections",
            "module_category": "finance",
            "functional_area": "accounting",
            "deployment_time_minutes": 15,
            "has_ui_components": True,
        },
        "depends_on": ["SYS-GL-CORE"],
    },
    {
        "code": "SYS-INVENTORY",
        "name": "Inventory Management",
        "fields": {
            "description": "Stock levels, goods receiving and valuation",
            "module_category": "operations",
            "functional_area": "supply_chain",
            "deployment_time_minutes": 20,
            "data_migration_required": True,
        },
        "depends_on": ["SYS-GL-CORE"],
    },
    {
        "code": "SYS-PROCURE",
        "name": "Procurement",
        "fields": {
            "description": "Purchase requests, approvals and purchase orders",
            "module_category": "operations",
            "functional_area": "supply_chain",
            "deployment_time_minutes": 15,
        },
        "depends_on": ["SYS-INVENTORY"],
    },
    {
        "code": "SYS-HR-CORE",
        "name": "Human Resources Core",
        "fields": {
            "description": "Employee records and onboarding",
            "module_category": "people",
            "functional_area": "human_resources",
            "deployment_time_minutes": 25,
            "has_ui_components": True,
        },
        "depends_on": [],
    },
]

DEMO_ACCOUNTS = [
    ("1001000", "Cash - Operating Account", "ASSET"),
    ("4001000", "Food Sales", "REVENUE"),
    ("5001000", "Cost of Goods Sold", "COST_OF_SALES"),
    ("6001000", "Kitchen Supplies Expense", "EXPENSE"),
]


async def seed_database():
    """Create seed data for development."""

    print("🌱 Seeding database with sample data...")

    async with AsyncSessionLocal() as db:
        # Check if data already exists
        result = await db.execute(select(Organization).where(Organization.slug == "marios-restaurant"))
        if result.scalars().first():
            print("⚠️  Database already has data. Skipping seed.")
            return

        # System organization (owner of shared templates)
        print("\n📦 Creating system organization...")
        system_org = await db.get(Organization, SYSTEM_ORGANIZATION_ID)
        if system_org is None:
            system_org = Organization(
                id=SYSTEM_ORGANIZATION_ID,
                name="HERA System",
                slug="hera-system",
                plan="enterprise",
                is_active=True,
            )
            db.add(system_org)
            await db.commit()
        print(f"  ✅ {system_org.name}")

        # Module templates
        print("\n🧩 Creating module templates...")
        templates = {}
        for template in MODULE_TEMPLATES:
            templates[template["code"]] = await create_entity(
                db,
                SYSTEM_ORGANIZATION_ID,
                entity_type="erp_module_template",
                entity_name=template["name"],
                entity_code=template["code"],
                fields=template["fields"],
                status_value="published",
            )
        await db.flush()

        for template in MODULE_TEMPLATES:
            for dependency in template["depends_on"]:
                db.add(
                    CoreRelationship(
                        organization_id=SYSTEM_ORGANIZATION_ID,
                        parent_entity_id=templates[template["code"]].id,
                        child_entity_id=templates[dependency].id,
                        relationship_type=DEPENDENCY_RELATIONSHIP,
                    )
                )
        await db.commit()
        for code in templates:
            print(f"  ✅ Created template {code}")

        # Demo tenant
        print("\n🏪 Creating demo organization...")
        marios = Organization(
            id=uuid4(),
            name="Mario's Restaurant",
            slug="marios-restaurant",
            industry="restaurant",
            plan="professional",
            is_active=True,
        )
        owner = User(
            id=uuid4(),
            email="mario@example.com",
            full_name="Mario Rossi",
            hashed_password=hash_password("password123"),
            is_active=True,
        )
        accountant = User(
            id=uuid4(),
            email="luisa@example.com",
            full_name="Luisa Bianchi",
            hashed_password=hash_password("password123"),
            is_active=True,
        )
        db.add_all([marios, owner, accountant])
        await db.flush()

        db.add_all([
            UserOrganization(user_id=owner.id, organization_id=marios.id, role="owner"),
            UserOrganization(user_id=accountant.id, organization_id=marios.id, role="accountant"),
        ])
        await db.commit()
        print(f"  ✅ Created {marios.name}")
        print(f"  ✅ Created {owner.email} (owner)")
        print(f"  ✅ Created {accountant.email} (accountant)")

        # Supplier and starter chart of accounts
        print("\n📒 Creating supplier and accounts...")
        supplier = await create_entity(
            db,
            marios.id,
            entity_type="supplier",
            entity_name="Fresh Farms Produce",
            entity_code="SUP-001",
            fields={"contact_email": "orders@freshfarms.example", "payment_terms": "net_30"},
            created_by=owner.id,
        )
        for code, name, account_type in DEMO_ACCOUNTS:
            await create_entity(
                db,
                marios.id,
                entity_type="chart_of_account",
                entity_name=name,
                entity_code=code,
                fields={"account_type": account_type, "current_balance": 0.0},
                created_by=owner.id,
            )
        await db.commit()
        print(f"  ✅ Created supplier {supplier.entity_name}")
        print(f"  ✅ Created {len(DEMO_ACCOUNTS)} accounts")

    print("\n✅ Database seeded successfully!")
    print("\n📊 Summary:")
    print(f"  - {len(MODULE_TEMPLATES)} module templates")
    print("  - 1 demo organization, 2 users, 1 supplier")
    print("\n🔑 Test Credentials:")
    print("  - mario@example.com / password123")
    print("  - luisa@example.com / password123")


async def main():
    """Main entry point."""
    # Initialize database schema
    print("🔧 Initializing database schema...")
    await init_db()
    print("✅ Database schema created")

    # Seed data
    await seed_database()


if __name__ == "__main__":
    asyncio.run(main())

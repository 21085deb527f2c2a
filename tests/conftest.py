"""
Pytest configuration and fixtures for HERA ERP tests.

Provides fixtures for:
- Database session
- Test client
- Organizations, users and memberships (one user per role)
- JWT tokens
- Chart of accounts and supplier entities
"""

import os
from typing import AsyncGenerator

os.environ.setdefault("ENV", "test")
os.environ.setdefault("HERA_DATABASE_URL", "sqlite:///test_db.sqlite")

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from hera_erp import SYSTEM_ORGANIZATION_ID
from hera_erp.api.entities import create_entity
from hera_erp.database import get_db
from hera_erp.main import app
from hera_erp.models import Base, CoreEntity, Organization, User, UserOrganization
from hera_erp.security import create_access_token, create_refresh_token, hash_password

# Test database URL (use file-based SQLite for tests to ensure table persistence)
TEST_DATABASE_URL = "sqlite+aiosqlite:///test_db.sqlite"

ACCOUNTS = [
    ("1001000", "Cash - Operating Account", "ASSET"),
    ("2001000", "Accounts Payable", "LIABILITY"),
    ("4001000", "Food Sales", "REVENUE"),
    ("5001000", "Cost of Goods Sold", "COST_OF_SALES"),
]


@pytest_asyncio.fixture
async def test_engine():
    """Create test database engine."""
    # Remove old test database if exists
    if os.path.exists("test_db.sqlite"):
        os.remove("test_db.sqlite")

    engine = create_async_engine(TEST_DATABASE_URL, poolclass=NullPool, echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()

    # Clean up test database file
    if os.path.exists("test_db.sqlite"):
        os.remove("test_db.sqlite")


@pytest_asyncio.fixture
async def test_db(test_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session."""
    async_session = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)

    async with async_session() as session:
        yield session


@pytest_asyncio.fixture
async def system_organization(test_db: AsyncSession) -> Organization:
    """Create the system organization that owns shared templates."""
    org = Organization(
        id=SYSTEM_ORGANIZATION_ID,
        name="HERA System",
        slug="hera-system",
        plan="enterprise",
        is_active=True,
    )
    test_db.add(org)
    await test_db.commit()
    return org


@pytest_asyncio.fixture
async def test_organization(test_db: AsyncSession) -> Organization:
    """Create test organization."""
    org = Organization(
        name="Test Restaurant",
        slug="test-restaurant",
        industry="restaurant",
        plan="professional",
        is_active=True,
    )
    test_db.add(org)
    await test_db.commit()
    await test_db.refresh(org)
    return org


@pytest_asyncio.fixture
async def other_organization(test_db: AsyncSession) -> Organization:
    """Create a second tenant for isolation tests."""
    org = Organization(name="Other Bistro", slug="other-bistro", plan="starter", is_active=True)
    test_db.add(org)
    await test_db.commit()
    await test_db.refresh(org)
    return org


async def _create_member(
    db: AsyncSession,
    organization: Organization,
    email: str,
    password: str,
    role: str,
    is_active: bool = True,
) -> User:
    user = User(
        email=email,
        full_name=email.split("@")[0].title(),
        hashed_password=hash_password(password),
        is_active=is_active,
    )
    db.add(user)
    await db.flush()

    db.add(UserOrganization(user_id=user.id, organization_id=organization.id, role=role))
    await db.commit()
    await db.refresh(user)
    return user


@pytest_asyncio.fixture
async def test_owner(test_db: AsyncSession, test_organization: Organization) -> User:
    """Create the organization owner."""
    return await _create_member(test_db, test_organization, "owner@test.com", "owner1234", "owner")


@pytest_asyncio.fixture
async def test_accountant(test_db: AsyncSession, test_organization: Organization) -> User:
    """Create an accountant member."""
    return await _create_member(
        test_db, test_organization, "accountant@test.com", "accountant123", "accountant"
    )


@pytest_asyncio.fixture
async def test_staff(test_db: AsyncSession, test_organization: Organization) -> User:
    """Create a staff member."""
    return await _create_member(test_db, test_organization, "staff@test.com", "staff1234", "staff")


@pytest_asyncio.fixture
async def test_viewer(test_db: AsyncSession, test_organization: Organization) -> User:
    """Create a read-only member."""
    return await _create_member(test_db, test_organization, "viewer@test.com", "viewer123", "viewer")


@pytest_asyncio.fixture
async def test_outsider(test_db: AsyncSession, other_organization: Organization) -> User:
    """Create an owner of another organization."""
    return await _create_member(
        test_db, other_organization, "outsider@other.com", "outsider123", "owner"
    )


@pytest_asyncio.fixture
async def test_user_inactive(test_db: AsyncSession, test_organization: Organization) -> User:
    """Create inactive test user."""
    return await _create_member(
        test_db, test_organization, "inactive@test.com", "inactive123", "staff", is_active=False
    )


def _bearer(user: User, organization: Organization) -> dict:
    token = create_access_token(user_id=user.id, organization_id=organization.id, email=user.email)
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture
async def owner_headers(test_owner: User, test_organization: Organization) -> dict:
    return _bearer(test_owner, test_organization)


@pytest_asyncio.fixture
async def accountant_headers(test_accountant: User, test_organization: Organization) -> dict:
    return _bearer(test_accountant, test_organization)


@pytest_asyncio.fixture
async def staff_headers(test_staff: User, test_organization: Organization) -> dict:
    return _bearer(test_staff, test_organization)


@pytest_asyncio.fixture
async def viewer_headers(test_viewer: User, test_organization: Organization) -> dict:
    return _bearer(test_viewer, test_organization)


@pytest_asyncio.fixture
async def outsider_headers(test_outsider: User, other_organization: Organization) -> dict:
    return _bearer(test_outsider, other_organization)


@pytest_asyncio.fixture
async def owner_refresh_token(test_owner: User) -> str:
    """Create refresh token for the owner."""
    return create_refresh_token(user_id=test_owner.id)


@pytest_asyncio.fixture
async def chart_of_accounts(
    test_db: AsyncSession, test_organization: Organization, test_owner: User
) -> list[CoreEntity]:
    """Create a small chart of accounts for the test organization."""
    accounts = []
    for code, name, account_type in ACCOUNTS:
        accounts.append(
            await create_entity(
                test_db,
                test_organization.id,
                entity_type="chart_of_account",
                entity_name=name,
                entity_code=code,
                fields={"account_type": account_type, "current_balance": 0.0},
                created_by=test_owner.id,
            )
        )
    await test_db.commit()
    return accounts


@pytest_asyncio.fixture
async def test_supplier(
    test_db: AsyncSession, test_organization: Organization, test_owner: User
) -> CoreEntity:
    """Create a supplier entity."""
    supplier = await create_entity(
        test_db,
        test_organization.id,
        entity_type="supplier",
        entity_name="Fresh Farms Produce",
        entity_code="SUP-001",
        fields={"payment_terms": "net_30"},
        created_by=test_owner.id,
    )
    await test_db.commit()
    return supplier


@pytest_asyncio.fixture
async def client(test_db: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create test HTTP client with database session override."""

    async def override_get_db():
        yield test_db

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()

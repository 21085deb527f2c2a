"""
Integration tests for service endpoints and cross-tenant isolation.
"""

import pytest
from httpx import AsyncClient

from hera_erp.models import Organization


class TestServiceEndpoints:
    @pytest.mark.asyncio
    async def test_health(self, client: AsyncClient):
        response = await client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["service"] == "hera-erp-service"

    @pytest.mark.asyncio
    async def test_root(self, client: AsyncClient):
        response = await client.get("/")

        assert response.status_code == 200
        assert response.json()["health"] == "/health"


class TestTenantIsolation:
    """Every organization-scoped router rejects non-members."""

    PATHS = [
        "/entities",
        "/relationships",
        "/gl/accounts",
        "/gl/journal-entries",
        "/gl/validation",
        "/gl/posting",
        "/gl/anomalies",
        "/schema/governance",
        "/receiving/receipts",
        "/templates/modules",
    ]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("path", PATHS)
    async def test_outsider_denied(
        self,
        client: AsyncClient,
        outsider_headers: dict,
        test_organization: Organization,
        path: str,
    ):
        response = await client.get(
            f"/api/v1/organizations/{test_organization.id}{path}", headers=outsider_headers
        )

        assert response.status_code == 403
        assert response.json()["detail"] == "Access denied: You do not belong to this organization"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("path", PATHS)
    async def test_anonymous_denied(
        self, client: AsyncClient, test_organization: Organization, path: str
    ):
        response = await client.get(f"/api/v1/organizations/{test_organization.id}{path}")

        assert response.status_code in (401, 403)

    @pytest.mark.asyncio
    async def test_inactive_member_denied(
        self, client: AsyncClient, test_user_inactive, test_organization: Organization
    ):
        from hera_erp.security import create_access_token

        token = create_access_token(
            user_id=test_user_inactive.id,
            organization_id=test_organization.id,
            email=test_user_inactive.email,
        )

        response = await client.get(
            f"/api/v1/organizations/{test_organization.id}/entities",
            headers={"Authorization": f"Bearer {token}"},
        )

        assert response.status_code == 403
        assert response.json()["detail"] == "Inactive user"

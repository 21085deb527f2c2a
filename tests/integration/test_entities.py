"""
Integration tests for universal entity and relationship endpoints.
"""

import pytest
from httpx import AsyncClient

from hera_erp.models import CoreEntity, Organization


def _base(organization: Organization) -> str:
    return f"/api/v1/organizations/{organization.id}"


class TestEntityEndpoints:
    """Test entity CRUD with dynamic fields."""

    @pytest.mark.asyncio
    async def test_create_entity_with_typed_fields(
        self, client: AsyncClient, staff_headers: dict, test_organization: Organization
    ):
        response = await client.post(
            f"{_base(test_organization)}/entities",
            headers=staff_headers,
            json={
                "entity_type": "menu_item",
                "entity_name": "Margherita Pizza",
                "entity_code": "MENU-001",
                "status": "active",
                "fields": {
                    "price": 12.5,
                    "prep_minutes": 15,
                    "vegetarian": True,
                    "allergens": ["gluten", "dairy"],
                    "description": "Tomato, mozzarella, basil",
                },
            },
        )

        assert response.status_code == 201
        data = response.json()
        assert data["entity_type"] == "menu_item"
        assert data["organization_id"] == str(test_organization.id)
        assert data["fields"] == {
            "price": 12.5,
            "prep_minutes": 15,
            "vegetarian": True,
            "allergens": ["gluten", "dairy"],
            "description": "Tomato, mozzarella, basil",
        }

    @pytest.mark.asyncio
    async def test_duplicate_code_rejected(
        self,
        client: AsyncClient,
        owner_headers: dict,
        test_supplier: CoreEntity,
        test_organization: Organization,
    ):
        response = await client.post(
            f"{_base(test_organization)}/entities",
            headers=owner_headers,
            json={"entity_type": "supplier", "entity_name": "Copy", "entity_code": "SUP-001"},
        )

        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_list_entities_filters(
        self,
        client: AsyncClient,
        viewer_headers: dict,
        chart_of_accounts: list,
        test_supplier: CoreEntity,
        test_organization: Organization,
    ):
        base = f"{_base(test_organization)}/entities"

        response = await client.get(base, headers=viewer_headers, params={"entity_type": "supplier"})
        assert response.status_code == 200
        data = response.json()
        assert [e["entity_code"] for e in data] == ["SUP-001"]
        assert data[0]["fields"] == {"payment_terms": "net_30"}

        response = await client.get(base, headers=viewer_headers, params={"search": "cash"})
        assert [e["entity_code"] for e in response.json()] == ["1001000"]

    @pytest.mark.asyncio
    async def test_update_upserts_fields(
        self,
        client: AsyncClient,
        owner_headers: dict,
        test_supplier: CoreEntity,
        test_organization: Organization,
    ):
        response = await client.patch(
            f"{_base(test_organization)}/entities/{test_supplier.id}",
            headers=owner_headers,
            json={
                "entity_name": "Fresh Farms Co-op",
                "fields": {"payment_terms": "net_15", "rating": 4},
            },
        )

        assert response.status_code == 200
        data = response.json()
        assert data["entity_name"] == "Fresh Farms Co-op"
        assert data["fields"] == {"payment_terms": "net_15", "rating": 4}

    @pytest.mark.asyncio
    async def test_delete_deactivates(
        self,
        client: AsyncClient,
        owner_headers: dict,
        test_supplier: CoreEntity,
        test_organization: Organization,
    ):
        url = f"{_base(test_organization)}/entities/{test_supplier.id}"

        response = await client.delete(url, headers=owner_headers)
        assert response.status_code == 204

        response = await client.get(url, headers=owner_headers)
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_viewer_cannot_write(
        self, client: AsyncClient, viewer_headers: dict, test_organization: Organization
    ):
        response = await client.post(
            f"{_base(test_organization)}/entities",
            headers=viewer_headers,
            json={"entity_type": "menu_item", "entity_name": "Sneaky"},
        )

        assert response.status_code == 403
        assert response.json()["detail"] == "Permission denied: entities:write required"

    @pytest.mark.asyncio
    async def test_entity_of_other_tenant_not_visible(
        self,
        client: AsyncClient,
        outsider_headers: dict,
        test_supplier: CoreEntity,
        other_organization: Organization,
    ):
        response = await client.get(
            f"{_base(other_organization)}/entities/{test_supplier.id}", headers=outsider_headers
        )

        assert response.status_code == 404


class TestRelationshipEndpoints:
    @pytest.mark.asyncio
    async def test_create_and_list_relationship(
        self,
        client: AsyncClient,
        owner_headers: dict,
        chart_of_accounts: list,
        test_supplier: CoreEntity,
        test_organization: Organization,
    ):
        payables = chart_of_accounts[1]
        base = _base(test_organization)

        response = await client.post(
            f"{base}/relationships",
            headers=owner_headers,
            json={
                "parent_entity_id": str(test_supplier.id),
                "child_entity_id": str(payables.id),
                "relationship_type": "payable_account",
                "relationship_data": {"default": True},
            },
        )
        assert response.status_code == 201
        assert response.json()["relationship_data"] == {"default": True}

        response = await client.get(
            f"{base}/relationships",
            headers=owner_headers,
            params={"entity_id": str(payables.id)},
        )
        assert response.status_code == 200
        assert [r["relationship_type"] for r in response.json()] == ["payable_account"]

    @pytest.mark.asyncio
    async def test_relationship_across_tenants_rejected(
        self,
        client: AsyncClient,
        outsider_headers: dict,
        test_supplier: CoreEntity,
        other_organization: Organization,
    ):
        """Test that an entity of another organization cannot be linked."""
        response = await client.post(
            f"{_base(other_organization)}/relationships",
            headers=outsider_headers,
            json={
                "parent_entity_id": str(test_supplier.id),
                "child_entity_id": str(test_supplier.id),
                "relationship_type": "self",
            },
        )

        assert response.status_code == 404

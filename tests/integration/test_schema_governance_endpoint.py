"""
Integration tests for the schema governance endpoint.
"""

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from hera_erp.api.entities import create_entity
from hera_erp.models import Organization


def _url(organization: Organization) -> str:
    return f"/api/v1/organizations/{organization.id}/schema/governance"


class TestSchemaGovernance:
    @pytest.mark.asyncio
    async def test_report_flags_naming_and_duplication(
        self,
        client: AsyncClient,
        owner_headers: dict,
        test_db: AsyncSession,
        test_organization: Organization,
    ):
        await create_entity(
            test_db,
            test_organization.id,
            entity_type="customer",
            entity_name="Luigi",
            fields={"email": "luigi@example.com", "custQty": 3},
        )
        await create_entity(
            test_db,
            test_organization.id,
            entity_type="customers",
            entity_name="Peach",
            fields={"order": "A-1"},
        )
        await test_db.commit()

        response = await client.get(_url(test_organization), headers=owner_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["organization_id"] == str(test_organization.id)
        assert data["totals"] == {"entities": 2, "fields": 3}

        compliance = data["naming_compliance"]
        assert compliance["total_fields_analyzed"] == 3
        suggestions = {v["field_name"]: v["suggested_name"] for v in compliance["non_compliant_fields"]}
        assert suggestions["custQty"] == "cust_quantity"
        assert "order" in suggestions

        (risk,) = data["duplication_risks"]
        assert risk["entity_type"] == "customers"
        assert risk["suggested_consolidation"] == "customer"

        reserved = {(v["field_name"], v["severity"]) for v in data["reserved_word_violations"]}
        assert reserved == {("order", "high"), ("order", "medium")}

        registry = data["entity_registry"]
        assert registry["total_types"] == 2
        assert registry["unused_types"] == []

    @pytest.mark.asyncio
    async def test_empty_organization(
        self, client: AsyncClient, owner_headers: dict, test_organization: Organization
    ):
        response = await client.get(_url(test_organization), headers=owner_headers)

        data = response.json()
        assert data["totals"] == {"entities": 0, "fields": 0}
        assert data["naming_compliance"]["compliance_score"] == 100
        assert data["duplication_risks"] == []

    @pytest.mark.asyncio
    async def test_accountant_cannot_read_schema(
        self, client: AsyncClient, accountant_headers: dict, test_organization: Organization
    ):
        response = await client.get(_url(test_organization), headers=accountant_headers)

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_other_tenant_fields_excluded(
        self,
        client: AsyncClient,
        outsider_headers: dict,
        test_db: AsyncSession,
        test_organization: Organization,
        other_organization: Organization,
    ):
        await create_entity(
            test_db, test_organization.id, entity_type="supplier", entity_name="Hidden", fields={"x": 1}
        )
        await test_db.commit()

        response = await client.get(_url(other_organization), headers=outsider_headers)

        assert response.json()["totals"] == {"entities": 0, "fields": 0}

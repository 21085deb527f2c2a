"""
Integration tests for ERP module template listing and deployment.
"""

from uuid import UUID, uuid4

import pytest
import pytest_asyncio
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from hera_erp.api import templates as templates_api
from hera_erp.api.entities import create_entity
from hera_erp.models import CoreEntity, CoreRelationship, Organization, UniversalTransaction


def _url(organization: Organization, path: str = "") -> str:
    return f"/api/v1/organizations/{organization.id}/templates/modules{path}"


@pytest_asyncio.fixture
async def module_templates(
    test_db: AsyncSession,
    system_organization: Organization,
    test_organization: Organization,
    other_organization: Organization,
) -> dict:
    """System templates, one custom template per tenant, and a dependency."""
    gl = await create_entity(
        test_db,
        system_organization.id,
        entity_type="erp_module_template",
        entity_name="General Ledger",
        entity_code="SYS-GL-CORE",
        fields={"module_category": "finance", "functional_area": "accounting", "is_core": True},
    )
    procure = await create_entity(
        test_db,
        system_organization.id,
        entity_type="erp_module_template",
        entity_name="Procurement",
        entity_code="SYS-PROCURE",
        fields={"module_category": "operations", "functional_area": "purchasing"},
    )
    kitchen = await create_entity(
        test_db,
        test_organization.id,
        entity_type="custom_module_template",
        entity_name="Kitchen Display",
        entity_code="CUSTOM-KDS",
        fields={"module_category": "operations", "deployment_time_minutes": 45},
    )
    foreign = await create_entity(
        test_db,
        other_organization.id,
        entity_type="custom_module_template",
        entity_name="Bar Tabs",
        entity_code="CUSTOM-BAR",
    )
    test_db.add(
        CoreRelationship(
            organization_id=system_organization.id,
            parent_entity_id=procure.id,
            child_entity_id=gl.id,
            relationship_type="module_depends_on",
            is_active=True,
        )
    )
    await test_db.commit()
    return {"gl": gl, "procure": procure, "kitchen": kitchen, "foreign": foreign}


class TestListModules:
    """Test GET /templates/modules."""

    @pytest.mark.asyncio
    async def test_lists_system_and_own_templates(
        self,
        client: AsyncClient,
        viewer_headers: dict,
        module_templates: dict,
        test_organization: Organization,
    ):
        response = await client.get(_url(test_organization), headers=viewer_headers)

        assert response.status_code == 200
        body = response.json()
        assert body["total"] == 3
        modules = {m["entity_code"]: m for m in body["data"]}
        assert set(modules) == {"CUSTOM-KDS", "SYS-GL-CORE", "SYS-PROCURE"}

        assert modules["SYS-GL-CORE"]["is_core"] is True
        assert modules["CUSTOM-KDS"]["is_core"] is False
        assert modules["CUSTOM-KDS"]["deployment_time_minutes"] == 45
        assert modules["SYS-PROCURE"]["dependencies"] == [str(module_templates["gl"].id)]
        assert not any(m["is_deployed"] for m in body["data"])

    @pytest.mark.asyncio
    async def test_filters(
        self,
        client: AsyncClient,
        viewer_headers: dict,
        module_templates: dict,
        test_organization: Organization,
    ):
        response = await client.get(
            _url(test_organization), headers=viewer_headers, params={"category": "operations"}
        )
        assert {m["entity_code"] for m in response.json()["data"]} == {"CUSTOM-KDS", "SYS-PROCURE"}

        response = await client.get(
            _url(test_organization), headers=viewer_headers, params={"include_system": False}
        )
        assert [m["entity_code"] for m in response.json()["data"]] == ["CUSTOM-KDS"]

        response = await client.get(
            _url(test_organization), headers=viewer_headers, params={"limit": 1, "offset": 1}
        )
        body = response.json()
        assert body["total"] == 3
        assert [m["entity_code"] for m in body["data"]] == ["SYS-GL-CORE"]


class TestDeployModule:
    """Test POST /templates/modules/{module_id}/deploy."""

    @pytest.mark.asyncio
    async def test_deploy_creates_missing_accounts(
        self,
        client: AsyncClient,
        owner_headers: dict,
        module_templates: dict,
        chart_of_accounts: list,
        test_organization: Organization,
        test_db: AsyncSession,
    ):
        gl = module_templates["gl"]

        response = await client.post(
            _url(test_organization, f"/{gl.id}/deploy"),
            headers=owner_headers,
            json={"configuration": {"fiscal_year_start": "01-01"}},
        )

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["status"] == "completed"
        assert data["deployment_number"].startswith(f"DEPLOY-{str(test_organization.id)[:8]}-")
        assert data["deployed_entity"]["entity_code"] == "SYS-GL-CORE-DEPLOYED"
        assert [a["account_code"] for a in data["accounts_created"]] == ["3001000"]
        assert data["accounts_created"][0]["account_type"] == "EQUITY"
        assert data["workflows_created"] == []
        assert data["warnings"] == ["Skipped existing accounts: 1001000, 2001000, 4001000"]

        transaction = await test_db.get(UniversalTransaction, UUID(data["deployment_id"]))
        assert transaction.transaction_status == "completed"
        assert transaction.transaction_data["deployment_result"]["accounts_created"] == 1

        listing = await client.get(_url(test_organization), headers=owner_headers)
        deployed = {m["entity_code"]: m["is_deployed"] for m in listing.json()["data"]}
        assert deployed["SYS-GL-CORE"] is True

        again = await client.post(_url(test_organization, f"/{gl.id}/deploy"), headers=owner_headers, json={})
        assert again.status_code == 409
        assert again.json()["detail"] == "Module SYS-GL-CORE is already deployed"

    @pytest.mark.asyncio
    async def test_deploy_with_workflows_and_dependency_warning(
        self,
        client: AsyncClient,
        owner_headers: dict,
        module_templates: dict,
        test_organization: Organization,
        test_db: AsyncSession,
    ):
        procure = module_templates["procure"]

        response = await client.post(
            _url(test_organization, f"/{procure.id}/deploy"), headers=owner_headers, json={}
        )

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["accounts_created"] == []
        (workflow,) = data["workflows_created"]
        assert workflow["workflow_code"] == "PROC-APPROVAL"
        assert workflow["workflow_steps"] == ["request", "review", "approve", "purchase"]
        assert "Dependency SYS-GL-CORE is not deployed" in data["warnings"]
        assert "No chart of accounts pattern for module SYS-PROCURE" in data["warnings"]

        result = await test_db.execute(
            select(CoreEntity).where(
                CoreEntity.organization_id == test_organization.id,
                CoreEntity.entity_type == "business_workflow",
            )
        )
        assert [w.entity_code for w in result.scalars().all()] == ["PROC-APPROVAL"]

    @pytest.mark.asyncio
    async def test_deploy_without_account_setup(
        self,
        client: AsyncClient,
        owner_headers: dict,
        module_templates: dict,
        test_organization: Organization,
    ):
        response = await client.post(
            _url(test_organization, f"/{module_templates['gl'].id}/deploy"),
            headers=owner_headers,
            json={"setup_chart_of_accounts": False},
        )

        data = response.json()["data"]
        assert data["accounts_created"] == []
        assert data["warnings"] == []

    @pytest.mark.asyncio
    async def test_custom_module_of_other_tenant_not_accessible(
        self,
        client: AsyncClient,
        owner_headers: dict,
        module_templates: dict,
        test_organization: Organization,
    ):
        foreign = module_templates["foreign"]

        response = await client.post(
            _url(test_organization, f"/{foreign.id}/deploy"), headers=owner_headers, json={}
        )

        assert response.status_code == 404
        assert response.json()["detail"] == f"Module {foreign.id} not found or not accessible"

    @pytest.mark.asyncio
    async def test_unknown_module(
        self, client: AsyncClient, owner_headers: dict, test_organization: Organization
    ):
        response = await client.post(
            _url(test_organization, f"/{uuid4()}/deploy"), headers=owner_headers, json={}
        )

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_accountant_cannot_deploy(
        self,
        client: AsyncClient,
        accountant_headers: dict,
        module_templates: dict,
        test_organization: Organization,
    ):
        response = await client.post(
            _url(test_organization, f"/{module_templates['gl'].id}/deploy"),
            headers=accountant_headers,
            json={},
        )

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_database_failure_marks_deployment_failed(
        self,
        client: AsyncClient,
        owner_headers: dict,
        module_templates: dict,
        test_organization: Organization,
        test_db: AsyncSession,
        monkeypatch: pytest.MonkeyPatch,
    ):
        # the rollback expires fixture instances, so read ids up front
        gl_id = module_templates["gl"].id
        organization_id = test_organization.id

        async def failing_create_entity(*args, **kwargs):
            raise OperationalError("INSERT INTO core_entities", {}, Exception("database is locked"))

        monkeypatch.setattr(templates_api, "create_entity", failing_create_entity)

        response = await client.post(
            f"/api/v1/organizations/{organization_id}/templates/modules/{gl_id}/deploy",
            headers=owner_headers,
            json={},
        )

        assert response.status_code == 500
        detail = response.json()["detail"]
        assert detail["message"] == "Module deployment failed"
        assert "database is locked" in detail["errors"][0]

        result = await test_db.execute(
            select(UniversalTransaction)
            .where(
                UniversalTransaction.organization_id == organization_id,
                UniversalTransaction.transaction_type == "module_deployment",
            )
            .execution_options(populate_existing=True)
        )
        (transaction,) = result.scalars().all()
        assert transaction.transaction_status == "failed"
        assert "database is locked" in transaction.transaction_data["errors"][0]
        assert transaction.transaction_data["module_code"] == "SYS-GL-CORE"

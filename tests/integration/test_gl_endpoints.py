"""
Integration tests for chart of accounts, journal entries and GL validation.
"""

import pytest
from httpx import AsyncClient
from sqlalchemy import select

from hera_erp.models import Organization, UniversalTransaction


def _gl(organization: Organization) -> str:
    return f"/api/v1/organizations/{organization.id}/gl"


async def _journal(client: AsyncClient, organization: Organization, headers: dict, entries, **extra) -> dict:
    response = await client.post(
        f"{_gl(organization)}/journal-entries",
        headers=headers,
        json={"entries": entries, **extra},
    )
    assert response.status_code == 201
    return response.json()


BALANCED = [
    {"account_code": "1001000", "debit": 250.0},
    {"account_code": "4001000", "credit": 250.0},
]


class TestAccountEndpoints:
    """Test chart of accounts management."""

    @pytest.mark.asyncio
    async def test_create_account_infers_type(
        self, client: AsyncClient, accountant_headers: dict, test_organization: Organization
    ):
        response = await client.post(
            f"{_gl(test_organization)}/accounts",
            headers=accountant_headers,
            json={"account_code": "6100000", "account_name": "Rent Expense", "description": "Monthly rent"},
        )

        assert response.status_code == 201
        data = response.json()
        assert data["account_type"] == "EXPENSE"
        assert data["current_balance"] == 0.0
        assert data["fields"]["description"] == "Monthly rent"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("code", ["0100000", "12345", "ABCDEFG"])
    async def test_invalid_account_code(
        self, client: AsyncClient, accountant_headers: dict, test_organization: Organization, code: str
    ):
        response = await client.post(
            f"{_gl(test_organization)}/accounts",
            headers=accountant_headers,
            json={"account_code": code, "account_name": "Bad"},
        )

        assert response.status_code == 400
        assert "7 digits" in response.json()["detail"]

    @pytest.mark.asyncio
    async def test_unknown_account_type(
        self, client: AsyncClient, accountant_headers: dict, test_organization: Organization
    ):
        response = await client.post(
            f"{_gl(test_organization)}/accounts",
            headers=accountant_headers,
            json={"account_code": "1500000", "account_name": "Gadgets", "account_type": "gizmo"},
        )

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_duplicate_account(
        self,
        client: AsyncClient,
        accountant_headers: dict,
        chart_of_accounts: list,
        test_organization: Organization,
    ):
        response = await client.post(
            f"{_gl(test_organization)}/accounts",
            headers=accountant_headers,
            json={"account_code": "1001000", "account_name": "Cash again"},
        )

        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_list_accounts_ordered_by_code(
        self,
        client: AsyncClient,
        viewer_headers: dict,
        chart_of_accounts: list,
        test_organization: Organization,
    ):
        response = await client.get(f"{_gl(test_organization)}/accounts", headers=viewer_headers)

        assert response.status_code == 200
        assert [a["account_code"] for a in response.json()] == ["1001000", "2001000", "4001000", "5001000"]

    @pytest.mark.asyncio
    async def test_staff_cannot_read_gl(
        self, client: AsyncClient, staff_headers: dict, test_organization: Organization
    ):
        response = await client.get(f"{_gl(test_organization)}/accounts", headers=staff_headers)

        assert response.status_code == 403


class TestJournalEntryEndpoints:
    @pytest.mark.asyncio
    async def test_create_draft_entry(
        self, client: AsyncClient, accountant_headers: dict, test_organization: Organization
    ):
        data = await _journal(
            client, test_organization, accountant_headers, BALANCED, description="Lunch sales"
        )

        assert data["posting_status"] == "draft"
        assert data["total_amount"] == 250.0
        assert data["transaction_number"].startswith("JE-")
        assert data["entries"][0] == {"account_code": "1001000", "debit": 250.0, "credit": 0.0}

    @pytest.mark.asyncio
    async def test_entry_requires_lines(
        self, client: AsyncClient, accountant_headers: dict, test_organization: Organization
    ):
        response = await client.post(
            f"{_gl(test_organization)}/journal-entries",
            headers=accountant_headers,
            json={"entries": []},
        )

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_list_entries_by_status(
        self, client: AsyncClient, accountant_headers: dict, test_organization: Organization
    ):
        await _journal(client, test_organization, accountant_headers, BALANCED)

        response = await client.get(
            f"{_gl(test_organization)}/journal-entries",
            headers=accountant_headers,
            params={"posting_status": "draft"},
        )

        assert response.status_code == 200
        assert len(response.json()) == 1


class TestValidationEndpoints:
    """Test GET and POST /gl/validation."""

    @pytest.mark.asyncio
    async def test_validation_run(
        self,
        client: AsyncClient,
        accountant_headers: dict,
        chart_of_accounts: list,
        test_organization: Organization,
        test_db,
    ):
        balanced = await _journal(client, test_organization, accountant_headers, BALANCED)
        unbalanced = await _journal(
            client,
            test_organization,
            accountant_headers,
            [{"account_code": "1001000", "debit": 100.0}, {"account_code": "4001000", "credit": 90.0}],
        )
        fixable = await _journal(
            client,
            test_organization,
            accountant_headers,
            [{"account_code": "9999999", "debit": 40.0}],
            transaction_type="PURCHASE_ORDER",
        )

        response = await client.post(
            f"{_gl(test_organization)}/validation",
            headers=accountant_headers,
            json={"confidence_threshold": 0.5},
        )

        assert response.status_code == 200
        data = response.json()
        summary = data["validation_summary"]
        assert summary["total_transactions"] == 3
        assert summary["validated"] == 1
        assert summary["errors"] == 1
        assert summary["auto_fixed_count"] == 1

        by_id = {t["transaction_id"]: t for t in data["transactions"]}
        assert by_id[balanced["id"]]["validation_status"] == "validated"
        assert by_id[unbalanced["id"]]["errors"][0]["error_type"] == "balance_mismatch"
        assert by_id[fixable["id"]]["validation_status"] == "auto_fixed"

        recommendation = data["auto_fix_recommendations"][0]
        assert recommendation["affected_transactions"] == [fixable["id"]]

        # Outcome is written back to the transactions
        result = await test_db.execute(select(UniversalTransaction))
        stored = {str(t.id): t for t in result.scalars().all()}
        assert stored[balanced["id"]].posting_status == "ready"
        assert stored[unbalanced["id"]].posting_status == "pending"
        assert stored[fixable["id"]].entries[0]["account_code"] == "5001000"
        assert stored[fixable["id"]].transaction_data["validation"]["status"] == "auto_fixed"

    @pytest.mark.asyncio
    async def test_duplicate_numbers_flagged(
        self,
        client: AsyncClient,
        accountant_headers: dict,
        chart_of_accounts: list,
        test_organization: Organization,
    ):
        first = await _journal(client, test_organization, accountant_headers, BALANCED, transaction_number="JE-DUP")
        await _journal(client, test_organization, accountant_headers, BALANCED, transaction_number="JE-DUP")

        response = await client.post(
            f"{_gl(test_organization)}/validation",
            headers=accountant_headers,
            json={"transaction_ids": [first["id"]]},
        )

        transaction = response.json()["transactions"][0]
        assert transaction["validation_status"] == "warning"
        assert transaction["warnings"][0]["error_type"] == "duplicate_entry"

    @pytest.mark.asyncio
    async def test_validation_queue(
        self,
        client: AsyncClient,
        accountant_headers: dict,
        chart_of_accounts: list,
        test_organization: Organization,
    ):
        await _journal(client, test_organization, accountant_headers, BALANCED)

        response = await client.get(
            f"{_gl(test_organization)}/validation",
            headers=accountant_headers,
            params={"include_metrics": True},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["validation_summary"]["total_transactions"] == 1
        assert data["validation_queue"][0]["validation_status"] == "pending"
        assert data["metadata"]["accounts_available"] == 4
        assert data["system_metrics"] is not None

    @pytest.mark.asyncio
    async def test_viewer_cannot_validate(
        self, client: AsyncClient, viewer_headers: dict, test_organization: Organization
    ):
        response = await client.post(f"{_gl(test_organization)}/validation", headers=viewer_headers, json={})

        assert response.status_code == 403

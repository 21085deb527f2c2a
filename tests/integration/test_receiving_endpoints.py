"""
Integration tests for goods receiving endpoints.
"""

from datetime import date, timedelta
from uuid import uuid4

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hera_erp.api import receiving as receiving_api
from hera_erp.models import CoreEntity, CoreMetadata, Organization


def _url(organization: Organization, path: str) -> str:
    return f"/api/v1/organizations/{organization.id}/receiving{path}"


def _receipt(supplier_id, quality=4, delivery=5, packaging=4, **overrides) -> dict:
    payload = {
        "supplier_id": str(supplier_id),
        "delivery_date": "2026-10-19",
        "received_by": "Luisa",
        "overall_quality_rating": quality,
        "delivery_rating": delivery,
        "packaging_rating": packaging,
        "temperature_compliant": True,
        "items": [
            {
                "item_id": "TOM-01",
                "item_name": "Roma Tomatoes",
                "expected_quantity": 20,
                "received_quantity": 20,
                "unit_price": 1.5,
                "unit": "kg",
                "quality_status": "accepted",
                "storage_location": "walk-in",
            },
            {
                "item_id": "BAS-01",
                "item_name": "Fresh Basil",
                "expected_quantity": 5,
                "received_quantity": 3,
                "unit_price": 4.0,
                "quality_status": "rejected",
            },
        ],
    }
    payload.update(overrides)
    return payload


class TestCreateReceipt:
    """Test POST /receiving/receipts."""

    @pytest.mark.asyncio
    async def test_receipt_recorded_with_intelligence(
        self,
        client: AsyncClient,
        staff_headers: dict,
        test_supplier: CoreEntity,
        test_organization: Organization,
        test_db: AsyncSession,
    ):
        response = await client.post(
            _url(test_organization, "/receipts"),
            headers=staff_headers,
            json=_receipt(test_supplier.id),
        )

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["receipt_number"].startswith("GR-")
        assert data["status"] == "completed"
        assert data["total_amount"] == 42.0
        assert data["variance_rate"] == pytest.approx(0.08)
        assert data["quality_score"] == 4.3
        assert data["item_performance"]["rejected_items"] == 1
        assert data["intelligence"]["alerts"][0]["type"] == "quality_rejection"

        result = await test_db.execute(
            select(CoreMetadata).where(CoreMetadata.organization_id == test_organization.id)
        )
        rows = result.scalars().all()
        by_type = {}
        for row in rows:
            by_type.setdefault(row.metadata_type, []).append(row)

        # Only the accepted line increases stock
        (stock,) = by_type["stock_increase"]
        assert stock.metadata_value["item_id"] == "TOM-01"
        assert stock.metadata_value["receipt_id"] == data["receipt_id"]

        (performance,) = by_type["delivery_performance"]
        assert performance.entity_id == test_supplier.id
        assert performance.metadata_key == f"delivery_{data['receipt_number']}"

        assert len(by_type["receiving_intelligence"]) == 1

    @pytest.mark.asyncio
    async def test_unknown_supplier(
        self, client: AsyncClient, staff_headers: dict, test_organization: Organization
    ):
        response = await client.post(
            _url(test_organization, "/receipts"),
            headers=staff_headers,
            json=_receipt(uuid4()),
        )

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_non_supplier_entity_rejected(
        self,
        client: AsyncClient,
        staff_headers: dict,
        chart_of_accounts: list,
        test_organization: Organization,
    ):
        response = await client.post(
            _url(test_organization, "/receipts"),
            headers=staff_headers,
            json=_receipt(chart_of_accounts[0].id),
        )

        assert response.status_code == 404

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "overrides",
        [
            {"overall_quality_rating": 6},
            {"items": []},
            {"delivery_rating": 0},
        ],
    )
    async def test_invalid_payload(
        self,
        client: AsyncClient,
        staff_headers: dict,
        test_supplier: CoreEntity,
        test_organization: Organization,
        overrides: dict,
    ):
        response = await client.post(
            _url(test_organization, "/receipts"),
            headers=staff_headers,
            json=_receipt(test_supplier.id, **overrides),
        )

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_accountant_cannot_receive(
        self,
        client: AsyncClient,
        accountant_headers: dict,
        test_supplier: CoreEntity,
        test_organization: Organization,
    ):
        response = await client.post(
            _url(test_organization, "/receipts"),
            headers=accountant_headers,
            json=_receipt(test_supplier.id),
        )

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_receipt_numbers_are_not_reused(
        self,
        client: AsyncClient,
        staff_headers: dict,
        test_supplier: CoreEntity,
        test_organization: Organization,
        monkeypatch: pytest.MonkeyPatch,
    ):
        drawn = iter(["GR-20261019-000042", "GR-20261019-000042", "GR-20261019-000043"])
        monkeypatch.setattr(receiving_api, "generate_receipt_number", lambda today: next(drawn))

        numbers = []
        for _ in range(2):
            response = await client.post(
                _url(test_organization, "/receipts"),
                headers=staff_headers,
                json=_receipt(test_supplier.id),
            )
            assert response.status_code == 201
            numbers.append(response.json()["data"]["receipt_number"])

        assert numbers == ["GR-20261019-000042", "GR-20261019-000043"]

    @pytest.mark.asyncio
    async def test_receipt_number_exhaustion(
        self,
        client: AsyncClient,
        staff_headers: dict,
        test_supplier: CoreEntity,
        test_organization: Organization,
        monkeypatch: pytest.MonkeyPatch,
    ):
        monkeypatch.setattr(receiving_api, "generate_receipt_number", lambda today: "GR-20261019-000007")

        first = await client.post(
            _url(test_organization, "/receipts"), headers=staff_headers, json=_receipt(test_supplier.id)
        )
        second = await client.post(
            _url(test_organization, "/receipts"), headers=staff_headers, json=_receipt(test_supplier.id)
        )

        assert first.status_code == 201
        assert second.status_code == 503

    def test_generated_number_format(self):
        number = receiving_api.generate_receipt_number(date(2026, 10, 19))

        prefix, day, suffix = number.split("-")
        assert (prefix, day) == ("GR", "20261019")
        assert len(suffix) == 6 and suffix.isdigit()


class TestListReceipts:
    """Test GET /receiving/receipts."""

    @pytest.mark.asyncio
    async def test_list_with_supplier_trends(
        self,
        client: AsyncClient,
        staff_headers: dict,
        test_supplier: CoreEntity,
        test_organization: Organization,
    ):
        for quality in (3, 5):
            response = await client.post(
                _url(test_organization, "/receipts"),
                headers=staff_headers,
                json=_receipt(test_supplier.id, quality=quality),
            )
            assert response.status_code == 201

        response = await client.get(
            _url(test_organization, "/receipts"),
            headers=staff_headers,
            params={"supplier_id": str(test_supplier.id)},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["pagination"] == {"page": 1, "limit": 50, "total": 2, "total_pages": 1}

        newest, oldest = body["data"]
        assert newest["procurement_metadata"]["overall_quality_rating"] == 5
        assert newest["supplier"]["entity_name"] == "Fresh Farms Produce"
        assert newest["supplier"]["fields"] == {"payment_terms": "net_30"}

        trends = newest["supplier_analysis"]["supplier_trends"]
        assert trends["quality_trend"] == "improving"
        assert trends["historical_average_quality"] == 3.0

        assert oldest["supplier_analysis"]["supplier_trends"]["quality_trend"] == "insufficient_history"

    @pytest.mark.asyncio
    async def test_date_filter_keeps_supplier_history(
        self,
        client: AsyncClient,
        staff_headers: dict,
        test_supplier: CoreEntity,
        test_organization: Organization,
    ):
        today = date.today()
        for days_ago, quality in ((20, 2), (10, 2), (0, 5)):
            response = await client.post(
                _url(test_organization, "/receipts"),
                headers=staff_headers,
                json=_receipt(
                    test_supplier.id,
                    quality=quality,
                    delivery_date=(today - timedelta(days=days_ago)).isoformat(),
                ),
            )
            assert response.status_code == 201

        response = await client.get(
            _url(test_organization, "/receipts"),
            headers=staff_headers,
            params={"date_from": (today - timedelta(days=1)).isoformat()},
        )

        body = response.json()
        assert body["pagination"]["total"] == 1
        (receipt,) = body["data"]
        trends = receipt["supplier_analysis"]["supplier_trends"]
        assert trends["quality_trend"] == "improving"
        assert trends["historical_average_quality"] == 2.0

    @pytest.mark.asyncio
    async def test_pagination_and_filters(
        self,
        client: AsyncClient,
        staff_headers: dict,
        test_supplier: CoreEntity,
        test_organization: Organization,
    ):
        for po in ("PO-1", "PO-2", "PO-3"):
            await client.post(
                _url(test_organization, "/receipts"),
                headers=staff_headers,
                json=_receipt(test_supplier.id, purchase_order_id=po),
            )

        response = await client.get(
            _url(test_organization, "/receipts"),
            headers=staff_headers,
            params={"limit": 2, "page": 2},
        )
        body = response.json()
        assert body["pagination"]["total_pages"] == 2
        assert len(body["data"]) == 1

        response = await client.get(
            _url(test_organization, "/receipts"),
            headers=staff_headers,
            params={"purchase_order_id": "PO-2"},
        )
        assert [r["procurement_metadata"]["purchase_order_id"] for r in response.json()["data"]] == ["PO-2"]

        response = await client.get(
            _url(test_organization, "/receipts"),
            headers=staff_headers,
            params={"status": "failed"},
        )
        assert response.json()["data"] == []


class TestSupplierPerformance:
    @pytest.mark.asyncio
    async def test_performance_aggregates_deliveries(
        self,
        client: AsyncClient,
        staff_headers: dict,
        test_supplier: CoreEntity,
        test_organization: Organization,
    ):
        for delivery in (5, 2):
            await client.post(
                _url(test_organization, "/receipts"),
                headers=staff_headers,
                json=_receipt(test_supplier.id, delivery=delivery),
            )

        response = await client.get(
            _url(test_organization, f"/suppliers/{test_supplier.id}/performance"),
            headers=staff_headers,
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["supplier_name"] == "Fresh Farms Produce"
        assert data["total_deliveries"] == 2
        assert data["on_time_deliveries"] == 1
        assert data["on_time_rate"] == 0.5
        assert data["last_delivery_date"] == "2026-10-19"

    @pytest.mark.asyncio
    async def test_supplier_without_deliveries(
        self,
        client: AsyncClient,
        viewer_headers: dict,
        test_supplier: CoreEntity,
        test_organization: Organization,
    ):
        response = await client.get(
            _url(test_organization, f"/suppliers/{test_supplier.id}/performance"),
            headers=viewer_headers,
        )

        assert response.status_code == 200
        assert response.json()["data"]["total_deliveries"] == 0

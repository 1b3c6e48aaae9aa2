"""
HTTP API tests.

Covers:
- Authentication / role checks
- Admin rule CRUD and structured error responses
- Rate resolution and settlement endpoints
- Supplier panel: applicable rules, own overrides, summary
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from src.models import CommissionRule, ScopeTier


async def _create_rule(client, headers, **payload):
    response = await client.post("/api/admin/commission-rules", json=payload, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


# ── Auth ────────────────────────────────────────────────────


class TestAuth:
    @pytest.mark.asyncio
    async def test_no_token(self, client):
        response = await client.get("/api/admin/commission-rules")
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_invalid_token(self, client):
        response = await client.get(
            "/api/admin/commission-rules",
            headers={"Authorization": "Bearer not-a-token"},
        )
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_supplier_cannot_manage_rules(self, client, supplier_headers):
        response = await client.get("/api/admin/commission-rules", headers=supplier_headers)
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_supplier_cannot_settle(self, client, supplier_headers):
        response = await client.post(
            "/api/commission/settlements",
            json={"product_id": 1, "supplier_id": 9, "category_id": 5, "gross_amount": "10.00"},
            headers=supplier_headers,
        )
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_supplier_token_without_supplier_id_rejected(self, client, make_headers):
        response = await client.get(
            "/api/panel/commission/summary", headers=make_headers(20, "supplier")
        )
        assert response.status_code == 401


# ── Admin rules ─────────────────────────────────────────────


class TestAdminRules:
    @pytest.mark.asyncio
    async def test_create_and_get(self, client, admin_headers):
        rule = await _create_rule(client, admin_headers, scope="global", rate="10")
        assert rule["scope"] == "global"
        assert rule["scope_key"] == "global"
        assert rule["rate"] == "10.00"
        assert rule["active"] is True
        assert rule["created_by"] == 1

        response = await client.get(f"/api/admin/commission-rules/{rule['id']}", headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["id"] == rule["id"]

    @pytest.mark.asyncio
    async def test_validation_error_shape(self, client, admin_headers):
        response = await client.post(
            "/api/admin/commission-rules",
            json={"scope": "global", "rate": "15.01"},
            headers=admin_headers,
        )
        assert response.status_code == 422
        detail = response.json()["detail"]
        assert detail["code"] == "validation_error"
        assert detail["errors"][0]["field"] == "rate"

    @pytest.mark.asyncio
    async def test_list_with_filters(self, client, admin_headers):
        await _create_rule(client, admin_headers, scope="global", rate="10")
        await _create_rule(client, admin_headers, scope="category", rate="5", category_id=5)
        await _create_rule(client, admin_headers, scope="category", rate="6", category_id=6)

        response = await client.get(
            "/api/admin/commission-rules", params={"category_id": 5}, headers=admin_headers
        )
        data = response.json()
        # The category 5 rule plus the global one
        assert data["total"] == 2
        assert {r["scope_key"] for r in data["items"]} == {"global", "category:5"}

        response = await client.get(
            "/api/admin/commission-rules", params={"scope": "category"}, headers=admin_headers
        )
        assert response.json()["total"] == 2

    @pytest.mark.asyncio
    async def test_create_supersedes(self, client, admin_headers):
        first = await _create_rule(client, admin_headers, scope="global", rate="10")
        await _create_rule(client, admin_headers, scope="global", rate="8")

        response = await client.get(
            "/api/admin/commission-rules", params={"active": True}, headers=admin_headers
        )
        items = response.json()["items"]
        assert len(items) == 1
        assert items[0]["rate"] == "8.00"

        old = await client.get(f"/api/admin/commission-rules/{first['id']}", headers=admin_headers)
        assert old.json()["active"] is False

    @pytest.mark.asyncio
    async def test_update(self, client, admin_headers):
        rule = await _create_rule(client, admin_headers, scope="supplier", rate="3", supplier_id=9)
        response = await client.put(
            f"/api/admin/commission-rules/{rule['id']}",
            json={"scope": "supplier", "rate": "3.5", "supplier_id": 9, "remarks": "Q3"},
            headers=admin_headers,
        )
        assert response.status_code == 200
        assert response.json()["rate"] == "3.50"
        assert response.json()["remarks"] == "Q3"

    @pytest.mark.asyncio
    async def test_update_missing(self, client, admin_headers):
        response = await client.put(
            "/api/admin/commission-rules/999",
            json={"scope": "global", "rate": "3"},
            headers=admin_headers,
        )
        assert response.status_code == 404
        assert response.json()["detail"]["code"] == "not_found"

    @pytest.mark.asyncio
    async def test_delete_twice(self, client, admin_headers):
        rule = await _create_rule(client, admin_headers, scope="global", rate="10")

        response = await client.delete(f"/api/admin/commission-rules/{rule['id']}", headers=admin_headers)
        assert response.status_code == 200
        assert response.json() == {"success": True, "rule_id": rule["id"]}

        response = await client.delete(f"/api/admin/commission-rules/{rule['id']}", headers=admin_headers)
        assert response.status_code == 404


# ── Resolve / settle ────────────────────────────────────────


class TestResolveAndSettle:
    @pytest.mark.asyncio
    async def test_resolve(self, client, admin_headers, service_headers):
        await _create_rule(client, admin_headers, scope="global", rate="10")
        specific = await _create_rule(
            client, admin_headers, scope="specific", rate="4.5", supplier_id=9, category_id=5
        )

        response = await client.get(
            "/api/commission/resolve",
            params={"product_id": 1, "supplier_id": 9, "category_id": 5},
            headers=service_headers,
        )
        assert response.status_code == 200
        assert response.json() == {
            "rate": "4.50",
            "scope_tier": "specific",
            "rule_id": specific["id"],
        }

    @pytest.mark.asyncio
    async def test_resolve_without_rules(self, client, service_headers):
        response = await client.get(
            "/api/commission/resolve",
            params={"product_id": 1, "supplier_id": 9, "category_id": 5},
            headers=service_headers,
        )
        assert response.status_code == 409
        assert response.json()["detail"]["code"] == "no_applicable_rule"

    @pytest.mark.asyncio
    async def test_supplier_resolves_own_products_only(self, client, admin_headers, supplier_headers):
        await _create_rule(client, admin_headers, scope="global", rate="10")

        own = await client.get(
            "/api/commission/resolve",
            params={"product_id": 1, "supplier_id": 9, "category_id": 5},
            headers=supplier_headers,
        )
        assert own.status_code == 200

        other = await client.get(
            "/api/commission/resolve",
            params={"product_id": 1, "supplier_id": 8, "category_id": 5},
            headers=supplier_headers,
        )
        assert other.status_code == 403

    @pytest.mark.asyncio
    async def test_settle(self, client, admin_headers, service_headers):
        rule = await _create_rule(client, admin_headers, scope="supplier", rate="4.5", supplier_id=9)

        response = await client.post(
            "/api/commission/settlements",
            json={
                "product_id": 1,
                "supplier_id": 9,
                "category_id": 5,
                "gross_amount": "199.99",
                "buyer_id": 77,
            },
            headers=service_headers,
        )
        assert response.status_code == 201, response.text
        sale = response.json()
        assert sale["commission_amount"] == "9.00"
        assert sale["net_amount"] == "190.99"
        assert sale["resolved_rate"] == "4.50"
        assert sale["resolved_scope"] == "supplier"
        assert sale["rule_id"] == rule["id"]

    @pytest.mark.asyncio
    async def test_settle_with_default_rate(self, client, service_headers):
        response = await client.post(
            "/api/commission/settlements",
            json={
                "product_id": 1,
                "supplier_id": 9,
                "category_id": 5,
                "gross_amount": "100.00",
                "default_rate": "2.5",
            },
            headers=service_headers,
        )
        assert response.status_code == 201
        assert response.json()["resolved_scope"] == "default"
        assert response.json()["commission_amount"] == "2.50"

    @pytest.mark.asyncio
    async def test_settle_rejects_bad_amount(self, client, admin_headers, service_headers):
        await _create_rule(client, admin_headers, scope="global", rate="10")
        response = await client.post(
            "/api/commission/settlements",
            json={"product_id": 1, "supplier_id": 9, "category_id": 5, "gross_amount": "-1.00"},
            headers=service_headers,
        )
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_list_settlements_scoped_to_supplier(
        self, client, admin_headers, service_headers, supplier_headers
    ):
        await _create_rule(client, admin_headers, scope="global", rate="10")
        for supplier_id in (9, 9, 8):
            response = await client.post(
                "/api/commission/settlements",
                json={
                    "product_id": 1,
                    "supplier_id": supplier_id,
                    "category_id": 5,
                    "gross_amount": "10.00",
                },
                headers=service_headers,
            )
            assert response.status_code == 201

        own = await client.get("/api/commission/settlements", headers=supplier_headers)
        assert own.json()["total"] == 2

        other = await client.get(
            "/api/commission/settlements", params={"supplier_id": 8}, headers=supplier_headers
        )
        assert other.status_code == 403

        everything = await client.get("/api/commission/settlements", headers=admin_headers)
        assert everything.json()["total"] == 3


# ── Supplier panel ──────────────────────────────────────────


class TestSupplierPanel:
    @pytest.mark.asyncio
    async def test_create_own_override(self, client, supplier_headers):
        response = await client.post(
            "/api/panel/commission/rules",
            json={"scope": "specific", "rate": "1.5", "product_id": 1},
            headers=supplier_headers,
        )
        assert response.status_code == 201, response.text
        assert response.json()["supplier_id"] == 9
        assert response.json()["scope_key"] == "product:1"

    @pytest.mark.asyncio
    async def test_cannot_create_supplier_scope(self, client, supplier_headers):
        response = await client.post(
            "/api/panel/commission/rules",
            json={"scope": "supplier", "rate": "1.5", "supplier_id": 9},
            headers=supplier_headers,
        )
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_cannot_write_for_other_supplier(self, client, supplier_headers):
        response = await client.post(
            "/api/panel/commission/rules",
            json={"scope": "specific", "rate": "1.5", "product_id": 1, "supplier_id": 8},
            headers=supplier_headers,
        )
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_cannot_delete_foreign_rule(self, client, admin_headers, supplier_headers):
        foreign = await _create_rule(
            client, admin_headers, scope="specific", rate="2", supplier_id=8, product_id=3
        )
        response = await client.delete(
            f"/api/panel/commission/rules/{foreign['id']}", headers=supplier_headers
        )
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_update_and_delete_own_override(self, client, supplier_headers):
        created = await client.post(
            "/api/panel/commission/rules",
            json={"scope": "specific", "rate": "1.5", "category_id": 5},
            headers=supplier_headers,
        )
        rule_id = created.json()["id"]

        updated = await client.put(
            f"/api/panel/commission/rules/{rule_id}",
            json={"scope": "specific", "rate": "2", "category_id": 5},
            headers=supplier_headers,
        )
        assert updated.status_code == 200
        assert updated.json()["rate"] == "2.00"

        deleted = await client.delete(f"/api/panel/commission/rules/{rule_id}", headers=supplier_headers)
        assert deleted.status_code == 200

    @pytest.mark.asyncio
    async def test_applicable_rules_by_priority(self, client, admin_headers, supplier_headers):
        await _create_rule(client, admin_headers, scope="global", rate="10")
        await _create_rule(client, admin_headers, scope="category", rate="5", category_id=5)
        await _create_rule(client, admin_headers, scope="category", rate="6", category_id=6)
        await _create_rule(client, admin_headers, scope="supplier", rate="3", supplier_id=9)
        await _create_rule(client, admin_headers, scope="supplier", rate="4", supplier_id=8)

        response = await client.get(
            "/api/panel/commission/rules", params={"category_ids": [5]}, headers=supplier_headers
        )
        assert response.status_code == 200
        rules = response.json()
        assert [r["scope_key"] for r in rules] == ["supplier:9", "category:5", "global"]
        assert [r["priority"] for r in rules] == [2, 3, 4]

    @pytest.mark.asyncio
    async def test_summary(self, client, admin_headers, service_headers, supplier_headers):
        await _create_rule(client, admin_headers, scope="global", rate="10")
        await client.post(
            "/api/commission/settlements",
            json={"product_id": 1, "supplier_id": 9, "category_id": 5, "gross_amount": "100.00"},
            headers=service_headers,
        )

        response = await client.get("/api/panel/commission/summary", headers=supplier_headers)
        assert response.status_code == 200
        summary = response.json()
        assert summary["supplier_id"] == 9
        assert summary["sales_count"] == 1
        assert summary["total_commission"] == "10.00"
        assert summary["avg_rate"] == "10.00"

        admin_view = await client.get("/api/admin/commission-summary/9", headers=admin_headers)
        assert admin_view.json()["total_net"] == "90.00"

    @pytest.mark.asyncio
    async def test_applicable_rules_skip_expired(
        self, client, session_factory, admin_headers, supplier_headers
    ):
        await _create_rule(client, admin_headers, scope="global", rate="10")
        async with session_factory() as session:
            session.add(
                CommissionRule(
                    scope=ScopeTier.SPECIFIC,
                    scope_key="specific:5:9",
                    category_id=5,
                    supplier_id=9,
                    rate=Decimal("2"),
                    active=True,
                    valid_until=datetime.now(timezone.utc).date() - timedelta(days=3),
                )
            )
            await session.commit()

        response = await client.get(
            "/api/panel/commission/rules", params={"category_ids": [5]}, headers=supplier_headers
        )
        assert [r["scope_key"] for r in response.json()] == ["global"]

        summary = await client.get("/api/panel/commission/summary", headers=supplier_headers)
        assert summary.json()["specific_rates_count"] == 0

    @pytest.mark.asyncio
    async def test_summary_end_date_includes_that_day(
        self, client, admin_headers, service_headers, supplier_headers
    ):
        await _create_rule(client, admin_headers, scope="global", rate="10")
        await client.post(
            "/api/commission/settlements",
            json={"product_id": 1, "supplier_id": 9, "category_id": 5, "gross_amount": "100.00"},
            headers=service_headers,
        )

        today = datetime.now(timezone.utc).date().isoformat()
        response = await client.get(
            "/api/admin/commission-summary/9",
            params={"start_date": today, "end_date": today},
            headers=admin_headers,
        )
        assert response.status_code == 200
        summary = response.json()
        assert summary["sales_count"] == 1
        assert summary["end_date"] == today

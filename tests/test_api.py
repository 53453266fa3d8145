"""Tests for the HTTP API."""

import uuid

import pytest
from fastapi.testclient import TestClient

from bakery.app import BakeryShopApp
from bakery.models.order import PaymentStatus
from bakery.services.payment_providers import ProviderResult
from bakery.utils.rate_limiter import RateLimiter
from bakery.utils.security import generate_admin_token

from test_payment_service import FakeProvider


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def shop(db, provider, notifier):
    return BakeryShopApp(db, provider=provider, notifier=notifier, rate_limiter=RateLimiter(2, 600))


@pytest.fixture
def client(shop):
    with TestClient(shop.application) as client:
        yield client


@pytest.fixture
def admin_headers():
    return {"Authorization": f"Bearer {generate_admin_token(uuid.uuid4(), 'ADMIN')}"}


def _order_payload(*lines, **overrides):
    payload = {
        "customer_name": "Awa Ouedraogo",
        "customer_phone": "70123456",
        "items": [{"product_id": str(p.id), "quantity": q} for p, q in lines],
        "is_delivery": False,
        "payment_method": "CASH",
    }
    payload.update(overrides)
    return payload


class TestPublicApi:
    def test_health(self, client):
        assert client.get("/health").json() == {"status": "ok"}

    def test_create_order(self, client, croissant, tarte):
        response = client.post("/api/orders", json=_order_payload(
            (croissant, 2), (tarte, 1), is_delivery=True, delivery_address="Secteur 15",
        ))

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        order = body["data"]
        assert order["subtotal"] == "3100"
        assert order["delivery_fee"] == "2000"
        assert order["total"] == "5100"
        assert order["status"] == "PENDING"
        assert order["payment"]["status"] == "PENDING"

    def test_insufficient_stock_message(self, client, tarte):
        response = client.post("/api/orders", json=_order_payload((tarte, 9)))

        assert response.status_code == 400
        assert response.json() == {
            "success": False,
            "error": "Insufficient stock for Tarte aux pommes. Available: 3",
            "code": "insufficient_stock",
            "product_id": str(tarte.id),
            "available": 3,
            "requested": 9,
        }

    def test_unknown_product_lists_missing_ids(self, client):
        missing = uuid.uuid4()

        response = client.post("/api/orders", json={
            **_order_payload(), "items": [{"product_id": str(missing), "quantity": 1}],
        })

        assert response.status_code == 400
        assert response.json()["missing_ids"] == [str(missing)]

    def test_invalid_payload(self, client):
        response = client.post("/api/orders", json=_order_payload(customer_name="A"))

        assert response.status_code == 400
        assert response.json()["code"] == "validation_failed"
        assert "customer_name" in [d["field"] for d in response.json()["details"]]

    def test_delivery_without_address(self, client, croissant):
        response = client.post("/api/orders", json=_order_payload((croissant, 1), is_delivery=True))

        assert response.status_code == 400

    def test_catalog_hides_archived(self, client, db, croissant, tarte):
        db.state.products[tarte.id]["status"] = "ARCHIVED"

        listing = client.get("/api/products").json()["data"]

        assert [p["slug"] for p in listing["products"]] == ["croissant-beurre"]
        assert client.get(f"/api/products/{tarte.id}").status_code == 404
        assert client.get("/api/products/slug/croissant-beurre").json()["data"]["price"] == "800"

    def test_lookup_is_rate_limited(self, client, croissant):
        order = client.post("/api/orders", json=_order_payload((croissant, 1))).json()["data"]
        params = {"phone": "70123456", "order_number": order["order_number"]}

        found = client.get("/api/orders/lookup", params=params)
        assert found.status_code == 200
        wrong = client.get("/api/orders/lookup", params={**params, "phone": "79999999"})
        assert wrong.status_code == 404
        assert wrong.json()["error"] == "Order not found"

        throttled = client.get("/api/orders/lookup", params=params)
        assert throttled.status_code == 429
        assert int(throttled.headers["Retry-After"]) > 0

    def test_lookup_shows_only_tracking_fields(self, client, croissant):
        order = client.post("/api/orders", json=_order_payload((croissant, 2))).json()["data"]

        found = client.get("/api/orders/lookup", params={
            "phone": "70123456", "order_number": order["order_number"],
        }).json()["data"]

        assert set(found) == {"order_number", "status", "total", "is_delivery", "created_at", "items"}
        assert found["items"] == [{"product_name": "Croissant au beurre", "quantity": 2}]
        assert found["total"] == "1600"

    def test_uses_the_injected_rate_limiter(self, db, provider):
        limiter = RateLimiter(2, 600)

        shop = BakeryShopApp(db, provider=provider, rate_limiter=limiter)

        assert shop.lookup_limiter is limiter

    def test_unknown_order(self, client):
        assert client.get(f"/api/orders/{uuid.uuid4()}").status_code == 404


class TestAdminApi:
    def test_requires_token(self, client):
        assert client.get("/api/admin/orders").status_code == 401
        assert client.get("/api/admin/orders", headers={"Authorization": "Bearer forged"}).status_code == 401

    def test_status_transitions(self, client, admin_headers, db, tarte):
        order = client.post("/api/orders", json=_order_payload((tarte, 2))).json()["data"]
        url = f"/api/admin/orders/{order['id']}/status"

        skipped = client.post(url, json={"status": "READY"}, headers=admin_headers)
        assert skipped.status_code == 409
        assert skipped.json()["error"] == "Invalid status transition: PENDING -> READY"

        cancelled = client.post(url, json={"status": "CANCELLED", "admin_notes": "Rupture"}, headers=admin_headers)
        assert cancelled.status_code == 200
        assert cancelled.json()["data"]["admin_notes"] == "Rupture"
        assert cancelled.json()["data"]["payment"]["status"] == "FAILED"
        assert db.stock(tarte.id) == 3

    def test_status_change_needs_admin(self, client, croissant):
        order = client.post("/api/orders", json=_order_payload((croissant, 1))).json()["data"]

        response = client.post(f"/api/admin/orders/{order['id']}/status", json={"status": "CONFIRMED"})

        assert response.status_code == 401

    def test_listing_and_stats(self, client, admin_headers, croissant):
        client.post("/api/orders", json=_order_payload((croissant, 1)))

        listing = client.get("/api/admin/orders", params={"status": "PENDING"}, headers=admin_headers).json()
        stats = client.get("/api/admin/orders/stats", headers=admin_headers).json()

        assert listing["data"]["pagination"]["total"] == 1
        assert stats["data"] == {
            "total_orders": 1, "pending_orders": 1, "completed_orders": 0, "total_revenue": "0",
        }

    def test_product_crud(self, client, admin_headers):
        created = client.post("/api/admin/products", json={
            "name": "Éclair au café", "category": "PASTRY", "price": "2000", "stock": 20,
        }, headers=admin_headers)
        assert created.status_code == 201
        product = created.json()["data"]
        assert product["slug"] == "eclair-au-cafe"

        updated = client.patch(f"/api/admin/products/{product['id']}", json={"price": "2200"}, headers=admin_headers)
        assert updated.json()["data"]["price"] == "2200"

        archived = client.post(f"/api/admin/products/{product['id']}/archive", headers=admin_headers)
        assert archived.json()["data"]["status"] == "ARCHIVED"

        deleted = client.delete(f"/api/admin/products/{product['id']}", headers=admin_headers)
        assert deleted.json() == {"success": True, "data": {"deleted": True}}

    def test_duplicate_slug(self, client, admin_headers, croissant):
        response = client.post("/api/admin/products", json={
            "name": "Croissant", "slug": "croissant-beurre", "category": "PASTRY", "price": "900",
        }, headers=admin_headers)

        assert response.status_code == 409
        assert response.json()["code"] == "slug_exists"


class TestPaymentApi:
    def _mobile_money_order(self, client, product):
        return client.post("/api/orders", json=_order_payload(
            (product, 1), payment_method="MOBILE_MONEY", phone_number="70123456", operator="ORANGE",
        )).json()["data"]

    def test_init_then_webhook_confirms(self, client, provider, croissant):
        order = self._mobile_money_order(client, croissant)

        init = client.post("/api/payments/init", json={"order_id": order["id"]})
        assert init.status_code == 200
        assert init.json()["data"]["checkout_url"] == "https://pay.test/tx-1"

        provider.verdicts["tx-1"] = ProviderResult("tx-1", PaymentStatus.COMPLETED)
        hook = client.post("/api/webhooks/payment", content=b"tx-1", headers={"x-webhook-signature": "good"})

        assert hook.status_code == 200
        assert hook.json()["data"]["status"] == "CONFIRMED"
        assert hook.json()["data"]["payment_status"] == "COMPLETED"

    def test_cash_order_cannot_pay_online(self, client, croissant):
        order = client.post("/api/orders", json=_order_payload((croissant, 1))).json()["data"]

        response = client.post("/api/payments/init", json={"order_id": order["id"]})

        assert response.status_code == 400
        assert response.json()["code"] == "online_payment_not_supported"

    def test_verify(self, client, provider, croissant):
        order = self._mobile_money_order(client, croissant)
        client.post("/api/payments/init", json={"order_id": order["id"]})
        provider.verdicts["tx-1"] = ProviderResult("tx-1", PaymentStatus.FAILED, failure_reason="Declined")

        response = client.post(f"/api/payments/{order['payment']['id']}/verify")

        assert response.json()["data"]["status"] == "CANCELLED"

    def test_webhook_always_answers_200(self, client, provider):
        provider.verdicts["tx-9"] = ProviderResult("tx-9", PaymentStatus.COMPLETED)
        forged = client.post("/api/webhooks/payment", content=b"tx-1", headers={"x-webhook-signature": "bad"})
        unknown = client.post("/api/webhooks/payment", content=b"tx-9", headers={"x-webhook-signature": "good"})

        assert forged.status_code == 200
        assert forged.json()["success"] is False
        assert unknown.status_code == 200
        assert unknown.json()["data"] == {"processed": False}

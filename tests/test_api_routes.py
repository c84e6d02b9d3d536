"""
Testes HTTP: app real, BD de teste e runtime injetado (sem startup).
"""

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from app.core.config import Settings
from app.domains.catalog.services.sync_coordinator import CatalogSyncCoordinator
from app.domains.shipping.services.quote_aggregator import ShippingQuoteAggregator
from app.external.vendors.base import ProductListing
from app.infra.bootstrap import Runtime
from app.infra.session import get_session
from apps.api_main import app

ORDER_BODY = {
    "items": [{"vendor_product_id": "sku-1", "quantity": 2, "unit_price": "10.00"}],
    "destination": {
        "first_name": "Ana",
        "last_name": "Silva",
        "address1": "Rua Augusta 10",
        "city": "Lisboa",
        "postal_code": "1100-053",
        "country": "PT",
    },
    "buyer": {"name": "Ana Silva", "email": "ana@example.com"},
}


@pytest.fixture
def client(session_factory, registry, vendor, orchestrator):
    def _session():
        with session_factory() as db:
            yield db

    app.dependency_overrides[get_session] = _session
    app.state.runtime = Runtime(
        settings=Settings(),
        registry=registry,
        orchestrator=orchestrator,
        catalog_sync=CatalogSyncCoordinator(registry, max_pages=10, timeout_ceiling_s=5.0),
        shipping=ShippingQuoteAggregator(registry, timeout_s=1.0),
    )
    yield TestClient(app)
    app.dependency_overrides.clear()
    app.state.runtime = None


def _create(client, key="order-1", vendor_id="v1", body=None):
    return client.post(
        "/api/v1/fulfillment/orders",
        params={"vendor_id": vendor_id},
        headers={"Idempotency-Key": key},
        json=body or ORDER_BODY,
    )


def test_create_order_and_replay(client, vendor):
    first = _create(client)
    assert first.status_code == 200
    data = first.json()
    assert data["status"] == "accepted"
    assert data["vendor_order_id"] == "v1-0001"
    assert data["idempotency_key"] == "order-1"
    assert first.headers["Idempotency-Key"] == "order-1"
    assert "X-Request-ID" in first.headers

    again = _create(client)
    assert again.status_code == 200
    assert again.json()["id"] == data["id"]
    assert vendor.calls["create_order"] == 1

    by_key = client.get("/api/v1/fulfillment/orders/by-key/order-1")
    assert by_key.json()["id"] == data["id"]


def test_body_key_takes_precedence(client):
    body = dict(ORDER_BODY, idempotency_key="from-body")
    resp = _create(client, key="from-header", body=body)

    assert resp.json()["idempotency_key"] == "from-body"


def test_missing_idempotency_key(client):
    resp = client.post("/api/v1/fulfillment/orders", params={"vendor_id": "v1"}, json=ORDER_BODY)

    assert resp.status_code == 422
    assert resp.json()["code"] == "VALIDATION_ERROR"


def test_conflicting_replay_is_409(client):
    _create(client)
    body = dict(ORDER_BODY, items=[{"vendor_product_id": "sku-2", "quantity": 1, "unit_price": "5"}])

    resp = _create(client, body=body)

    assert resp.status_code == 409
    assert resp.json()["code"] == "IDEMPOTENCY_CONFLICT"


def test_unknown_vendor_is_404(client):
    resp = _create(client, vendor_id="nope")

    assert resp.status_code == 404
    assert resp.json()["code"] == "VENDOR_NOT_FOUND"


def test_permanent_vendor_failure_is_returned_on_the_order(client, vendor):
    from app.core.errors import VendorPermanentError

    vendor.script_create(VendorPermanentError("out of stock", vendor_id="v1", code="OUT_OF_STOCK"))

    resp = _create(client)

    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "failed"
    assert data["error_kind"] == "vendor_permanent"
    assert data["retryable"] is False


def test_unknown_order_is_404(client):
    resp = client.get("/api/v1/fulfillment/orders/999")

    assert resp.status_code == 404
    assert resp.json()["code"] == "ORDER_NOT_FOUND"


def test_status_updates_and_backward_rejection(client):
    order_id = _create(client).json()["id"]
    url = f"/api/v1/fulfillment/orders/{order_id}/status"

    shipped = client.post(url, json={"status": "shipped", "tracking_number": "TN-1"})
    assert shipped.status_code == 200
    assert shipped.json()["tracking_number"] == "TN-1"

    assert client.post(url, json={"status": "delivered"}).json()["status"] == "delivered"

    back = client.post(url, json={"status": "accepted"})
    assert back.status_code == 409
    assert back.json()["code"] == "INVALID_STATE_TRANSITION"
    assert client.get(f"/api/v1/fulfillment/orders/{order_id}").json()["status"] == "delivered"


def test_cancel_and_list(client):
    order_id = _create(client).json()["id"]
    _create(client, key="order-2")

    cancelled = client.post(f"/api/v1/fulfillment/orders/{order_id}/cancel")
    assert cancelled.json()["status"] == "cancelled"

    listing = client.get("/api/v1/fulfillment/orders", params={"status": "accepted"}).json()
    assert listing["total"] == 1
    assert listing["items"][0]["idempotency_key"] == "order-2"


def test_reconcile_from_vendor(client, vendor):
    data = _create(client).json()
    vendor.set_status(data["vendor_order_id"], "shipped", tracking_number="TN-9")

    resp = client.post(f"/api/v1/fulfillment/orders/{data['id']}/reconcile")

    assert resp.json()["status"] == "shipped"
    assert resp.json()["tracking_number"] == "TN-9"


def test_catalog_sync_and_entries(client, vendor):
    vendor.products = [
        ProductListing(vendor_product_id="p1", title="Mug", price=Decimal("8.00"), stock=3),
        ProductListing(vendor_product_id="p2", title="Tee", price=Decimal("12.00"), stock=0, available=False),
    ]

    sync = client.post("/api/v1/catalog/vendors/v1/sync")
    assert sync.status_code == 200
    assert sync.json()["status"] == "ok"
    assert sync.json()["inserted"] == 2

    entries = client.get("/api/v1/catalog/entries", params={"vendor_id": "v1"}).json()
    assert entries["total"] == 2

    runs = client.get("/api/v1/catalog/runs").json()
    assert runs["items"][0]["status"] == "ok"


def test_shipping_quotes(client):
    body = {
        "items": [{"vendor_product_id": "sku-1", "quantity": 1, "unit_price": "10", "vendor_id": "v1"}],
        "destination": ORDER_BODY["destination"],
    }

    resp = client.post("/api/v1/shipping/quotes", json=body)

    assert resp.status_code == 200
    data = resp.json()
    assert [q["vendor_id"] for q in data["quotes"]] == ["v1"]
    assert data["failed_vendors"] == []


def test_vendor_admin(client):
    vendors = client.get("/api/v1/vendors").json()
    assert vendors[0]["vendor_id"] == "v1"
    assert vendors[0]["display_name"] == "Vendor One"

    disabled = client.post("/api/v1/vendors/v1/disable").json()
    assert disabled["enabled"] is False

    resp = _create(client)
    assert resp.status_code == 400
    assert resp.json()["code"] == "CONFIGURATION_ERROR"

    health = client.get("/api/v1/vendors/health").json()
    assert health == [{"vendor_id": "v1", "status": "disabled", "details": None}]

    assert client.post("/api/v1/vendors/v1/enable").json()["enabled"] is True
    assert client.post("/api/v1/vendors/ghost/enable").status_code == 404


def test_system_health(client):
    _create(client)

    data = client.get("/api/v1/system/health").json()

    assert data["ok"] is True
    assert data["vendors"] == 1
    assert data["orders_by_status"] == {"accepted": 1}


def test_server_binding_from_settings(monkeypatch):
    monkeypatch.setenv("API_PORT", "9100")

    s = Settings(_env_file=None)

    assert s.API_HOST == "127.0.0.1"
    assert s.API_PORT == 9100

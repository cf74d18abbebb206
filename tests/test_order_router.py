from datetime import datetime

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from services.order_service.router import get_store, public_router, router
from shared.security.api_key import INTERNAL_API_KEY

HEADERS = {"X-Internal-API-Key": INTERNAL_API_KEY}


@pytest.fixture
def client(seeded_store):
    app = FastAPI()
    app.include_router(public_router)
    app.include_router(router)
    app.dependency_overrides[get_store] = lambda: seeded_store
    return TestClient(app)


def test_health_is_public(client):
    resp = client.get("/health")

    assert resp.status_code == 200
    assert resp.json() == {"service": "order", "status": "running"}


def test_requires_internal_api_key(client):
    resp = client.get("/abc123")

    assert resp.status_code == 403


def test_get_order_uses_camel_case(client):
    resp = client.get("/abc123", headers=HEADERS)

    assert resp.status_code == 200
    body = resp.json()
    assert body["orderId"] == "abc123"
    assert body["buyerId"] == "u1"
    assert body["totalAmount"] == 250.0


def test_unknown_order_is_404(client):
    resp = client.patch("/ghost/status", json={"status": "SHIPPING"}, headers=HEADERS)

    assert resp.status_code == 404
    assert resp.json()["detail"]["stage"] == "read_order"


def test_update_status(client, seeded_store):
    resp = client.patch("/abc123/status", json={"status": "TO_SHIP", "notes": "Packed"}, headers=HEADERS)

    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "TO_SHIP"
    assert len(body["notifications"]) == 1
    assert seeded_store.children("orders", "abc123", "statusHistory")[0]["notes"] == "Packed"


def test_invalid_status_value_is_422(client):
    resp = client.patch("/abc123/status", json={"status": "TELEPORTED"}, headers=HEADERS)

    assert resp.status_code == 422


def test_cancel_then_update_is_conflict(client):
    resp = client.patch("/abc123/cancel", json={"reason": "Changed my mind"}, headers=HEADERS)
    assert resp.status_code == 200
    assert resp.json()["status"] == "CANCELLED"
    assert len(resp.json()["notifications"]) == 2

    resp = client.patch("/abc123/status", json={"status": "SHIPPING"}, headers=HEADERS)

    assert resp.status_code == 409
    assert resp.json()["detail"]["retryable"] is False


def test_partial_completion_reports_stage(client, seeded_store):
    seeded_store.fail_on("append_child", "statusHistory")

    resp = client.patch("/abc123/cancel", json={"reason": "Changed my mind"}, headers=HEADERS)

    assert resp.status_code == 500
    detail = resp.json()["detail"]
    assert detail["stage"] == "append_status_history"
    assert detail["completed"] == ["write_order"]
    assert detail["retryable"] is False


def test_write_failure_is_retryable(client, seeded_store):
    seeded_store.fail_on("update", "orders")

    resp = client.patch("/abc123/status", json={"status": "SHIPPING"}, headers=HEADERS)

    assert resp.status_code == 502
    assert resp.json()["detail"]["retryable"] is True


def test_create_order_and_read_history(client):
    payload = {
        "buyerId": "u9",
        "sellerId": "s9",
        "items": [{"name": "Corn", "quantity": 2, "price": 30.0}],
        "paymentMethod": "COD",
    }

    resp = client.post("/", json=payload, headers=HEADERS)

    assert resp.status_code == 201
    order = resp.json()
    assert order["status"] == "PAYMENT_RECEIVED"
    assert order["totalAmount"] == 60.0

    resp = client.get(f"/{order['orderId']}/history", headers=HEADERS)

    assert resp.status_code == 200
    assert [e["status"] for e in resp.json()] == ["PAYMENT_RECEIVED"]


def test_create_order_without_items_is_422(client):
    payload = {"buyerId": "u9", "items": [], "paymentMethod": "COD"}

    resp = client.post("/", json=payload, headers=HEADERS)

    assert resp.status_code == 422


def test_legacy_order_maps_owner_to_seller(client, seeded_store):
    seeded_store.seed("orders", "legacy1", {"orderId": "legacy1", "ownerId": "u2", "status": "TO_SHIP"})

    resp = client.get("/legacy1", headers=HEADERS)

    assert resp.status_code == 200
    body = resp.json()
    assert body["buyerId"] is None
    assert body["sellerId"] == "u2"
    assert body["status"] == "TO_SHIP"


def test_order_with_native_timestamp_is_readable(client, seeded_store):
    seeded_store.seed("orders", "ts1", {"buyerId": "u1", "estimatedDelivery": datetime(2024, 1, 1)})

    resp = client.get("/ts1", headers=HEADERS)

    assert resp.status_code == 200
    body = resp.json()
    assert body["orderId"] == "ts1"
    assert body["estimatedDelivery"].startswith("2024-01-01T00:00:00")


def test_history_read_failure_is_503(client, seeded_store):
    seeded_store.fail_on("list_children")

    resp = client.get("/abc123/history", headers=HEADERS)

    assert resp.status_code == 503
    detail = resp.json()["detail"]
    assert detail["stage"] == "read_status_history"
    assert detail["completed"] == []
    assert detail["retryable"] is True

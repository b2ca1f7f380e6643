from __future__ import annotations

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from stockroom.database import Base, get_db, get_read_db
from stockroom.main import app
from stockroom.models import User


@pytest.fixture()
def api():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    TestingSession = sessionmaker(bind=engine, autoflush=False, autocommit=False)

    def override_get_db():
        db = TestingSession()
        try:
            yield db
        finally:
            db.close()

    db = TestingSession()
    user = User(email="api@example.com")
    inactive = User(email="gone@example.com", is_active=False)
    db.add_all([user, inactive])
    db.commit()
    ids = {"active": user.id, "inactive": inactive.id}
    db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_read_db] = override_get_db
    client = TestClient(app)
    client.headers.update({"X-User-Id": ids["active"]})
    try:
        yield client, ids
    finally:
        app.dependency_overrides.clear()
        engine.dispose()


def _product(client, **overrides):
    data = {"name": "P", "sku": "P-1", "price_tax_free": "5.00", "vat_percent": "20", "quantity": 10}
    data.update(overrides)
    response = client.post("/products", json=data)
    assert response.status_code == 201, response.text
    return response.json()


def _prefix(client, prefix="ORD"):
    response = client.post("/order-prefixes", json={"prefix": prefix})
    assert response.status_code == 201, response.text
    return response.json()


def test_health():
    client = TestClient(app)

    assert client.get("/health").json() == {"status": "ok"}


def test_caller_identity_is_required(api):
    client, ids = api

    assert client.get("/orders", headers={"X-User-Id": ""}).status_code == 401
    assert client.get("/orders", headers={"X-User-Id": "nobody"}).status_code == 401
    assert client.get("/orders", headers={"X-User-Id": ids["inactive"]}).status_code == 403


def test_paid_order_flow(api):
    client, _ = api
    product = _product(client)
    prefix = _prefix(client)

    response = client.post(
        "/orders",
        json={
            "prefix_id": prefix["id"],
            "status": "paid",
            "items": [{"product_id": product["id"], "quantity": 1}],
        },
    )

    assert response.status_code == 201, response.text
    order = response.json()
    assert order["reference"] == "ORD-1"
    assert order["status"] == "paid"
    assert order["items"][0]["unit_price_tax_included"] == "6.00"
    assert client.get(f"/products/{product['id']}").json()["quantity"] == 9

    sent = client.post(f"/orders/{order['id']}/sent")
    assert sent.status_code == 200
    assert sent.json()["status"] == "sent"

    again = client.post(f"/orders/{order['id']}/paid")
    assert again.status_code == 409
    assert again.json()["code"] == "invalid_transition"

    next_ref = client.get(f"/order-prefixes/{prefix['id']}/next-reference")
    assert next_ref.json() == {"prefix_id": prefix["id"], "reference": "ORD-2"}


def test_insufficient_stock_maps_to_conflict(api):
    client, _ = api
    product = _product(client, quantity=1)

    response = client.post(
        "/orders",
        json={"reference": "WEB-1", "status": "paid", "items": [{"product_id": product["id"], "quantity": 2}]},
    )

    assert response.status_code == 409
    body = response.json()
    assert body["code"] == "insufficient_stock"
    assert body["entity_id"] == product["id"]
    assert client.get("/orders").json()["total"] == 0


@pytest.mark.parametrize(
    "payload",
    [
        {"reference": "WEB-1", "items": []},
        {"reference": "WEB-1", "items": [{"product_id": "x", "quantity": 0}]},
        {"items": [{"product_id": "x", "quantity": 1}]},
        {"reference": "WEB-1", "status": "shipped", "items": [{"product_id": "x", "quantity": 1}]},
    ],
)
def test_bad_order_requests_are_validation_errors(api, payload):
    client, _ = api

    response = client.post("/orders", json=payload)

    assert response.status_code == 400
    assert response.json()["code"] == "validation_error"


def test_unknown_order_is_not_found(api):
    client, _ = api

    response = client.get("/orders/does-not-exist")

    assert response.status_code == 404
    assert response.json()["code"] == "not_found"


def test_list_and_delete_orders(api):
    client, _ = api
    product = _product(client)
    for reference in ("WEB-1", "WEB-2", "SHOP-1"):
        created = client.post(
            "/orders",
            json={"reference": reference, "items": [{"product_id": product["id"], "quantity": 1}]},
        )
        assert created.status_code == 201, created.text

    page = client.get("/orders", params={"reference": "WEB", "size": 1}).json()
    assert page["total"] == 2
    assert len(page["items"]) == 1

    order_id = page["items"][0]["id"]
    assert client.delete(f"/orders/{order_id}").status_code == 204
    assert client.get(f"/orders/{order_id}").status_code == 404
    assert client.get("/orders").json()["total"] == 2


def test_prefix_and_preset_management(api):
    client, _ = api
    first = _prefix(client, "ORD")

    assert client.delete(f"/order-prefixes/{first['id']}").status_code == 400
    assert client.post("/order-prefixes", json={"prefix": "bad prefix"}).status_code == 400

    renamed = client.patch(f"/order-prefixes/{first['id']}", json={"prefix": "SHOP"})
    assert renamed.json()["prefix"] == "SHOP"

    preset = client.post(
        "/order-presets",
        json={"name": "Loyalty", "type": "decrease", "kind": "relative", "value": "10"},
    )
    assert preset.status_code == 201, preset.text
    preset_id = preset.json()["id"]

    product = _product(client, price_tax_free="20.00", vat_percent="0")
    order = client.post(
        "/orders",
        json={
            "prefix_id": first["id"],
            "items": [{"product_id": product["id"], "quantity": 1, "preset_ids": [preset_id]}],
        },
    ).json()
    assert order["reference"] == "SHOP-1"
    assert order["items"][0]["unit_price_tax_free"] == "18.00"

    updated = client.patch(f"/order-presets/{preset_id}", json={"value": "25"})
    assert updated.json()["value"] == "25.00"
    assert client.delete(f"/order-presets/{preset_id}").status_code == 204
    assert client.get("/order-presets").json() == []

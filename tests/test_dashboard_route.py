import json

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

pytestmark = pytest.mark.anyio


async def _finished_order(client, cashier_headers, catalog, quantity=2):
    resp = await client.post(
        "/api/orders",
        json={
            "channel": "DINE",
            "payment_method": "CASH",
            "lines": [
                {"product_kind": "ITEM", "product_id": catalog["burger"], "quantity": quantity}
            ],
        },
        headers=cashier_headers,
    )
    order = resp.json()["data"]["order"]
    for status in ("PREPARING", "READY", "FINISHED"):
        resp = await client.post(
            f"/api/orders/{order['id']}/status", json={"status": status}, headers=cashier_headers
        )
        assert resp.status_code == 200, resp.text
    return order


async def test_dashboard_reports_completed_revenue(client, cashier_headers, manager_headers, catalog):
    await _finished_order(client, cashier_headers, catalog)
    resp = await client.post(
        "/api/orders",
        json={
            "channel": "TAKEAWAY",
            "lines": [{"product_kind": "ITEM", "product_id": catalog["fries"], "quantity": 1}],
        },
        headers=cashier_headers,
    )
    draft = resp.json()["data"]["order"]
    await client.post(
        f"/api/orders/{draft['id']}/status", json={"status": "CANCELLED"}, headers=manager_headers
    )

    resp = await client.get("/api/dashboard", headers=cashier_headers)
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["overview"]["total_orders"] == 2
    assert data["overview"]["completed_orders"] == 1
    assert data["overview"]["cancelled_orders"] == 1
    assert data["overview"]["total_revenue"] == "19.00"
    assert data["order_summary"]["orders_by_channel"]["TAKEAWAY"] == 0
    assert data["order_summary"]["payment_methods"]["CASH"] == {"amount": "19.00", "count": 1}
    assert data["top_items"][0]["name"] == "Zinger Burger"
    assert data["top_items"][0]["quantity"] == 2
    assert data["top_items"][0]["revenue"] == "19.00"
    assert len(data["recent_orders"]) == 2
    assert data["range"] == {"start": None, "end": None}


async def test_dashboard_is_cached_until_forced(client, cashier_headers, catalog, redis):
    await _finished_order(client, cashier_headers, catalog)
    first = await client.get("/api/dashboard", headers=cashier_headers)
    assert first.json()["data"]["overview"]["total_orders"] == 1
    cached = json.loads(await redis.get("dash:orders:-:-"))
    assert cached["overview"]["total_orders"] == 1

    await _finished_order(client, cashier_headers, catalog)
    stale = await client.get("/api/dashboard", headers=cashier_headers)
    assert stale.json()["data"]["overview"]["total_orders"] == 1
    fresh = await client.get("/api/dashboard?force=true", headers=cashier_headers)
    assert fresh.json()["data"]["overview"]["total_orders"] == 2


async def test_dashboard_survives_redis_outage(client, cashier_headers, catalog, redis, monkeypatch):
    async def broken(*args, **kwargs):
        raise RedisConnectionError("redis down")

    monkeypatch.setattr(redis, "get", broken)
    monkeypatch.setattr(redis, "set", broken)
    await _finished_order(client, cashier_headers, catalog)
    resp = await client.get("/api/dashboard", headers=cashier_headers)
    assert resp.status_code == 200
    assert resp.json()["data"]["overview"]["completed_orders"] == 1


async def test_dashboard_range_validation(client, cashier_headers):
    resp = await client.get(
        "/api/dashboard?start=2026-01-16T00:00:00Z&end=2026-01-15T00:00:00Z",
        headers=cashier_headers,
    )
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "VALIDATION_ERROR"


async def test_dashboard_range_excludes_outside_orders(client, cashier_headers, catalog):
    await _finished_order(client, cashier_headers, catalog)
    resp = await client.get(
        "/api/dashboard?start=2000-01-01T00:00:00Z&end=2000-01-02T00:00:00Z",
        headers=cashier_headers,
    )
    data = resp.json()["data"]
    assert data["overview"]["total_orders"] == 0
    assert data["range"]["start"] == "2000-01-01T00:00:00+00:00"


async def test_dashboard_requires_token(client):
    resp = await client.get("/api/dashboard")
    assert resp.status_code == 401

import pytest

pytestmark = pytest.mark.anyio


def dine_body(catalog, quantity=2):
    return {
        "channel": "DINE",
        "lines": [{"product_kind": "ITEM", "product_id": catalog["burger"], "quantity": quantity}],
    }


async def create(client, headers, body):
    resp = await client.post("/api/orders", json=body, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]["order"]


async def test_health(client):
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"ok": True, "data": {"status": "ok"}}
    assert resp.headers["X-Request-ID"]


async def test_login_and_me(client, manager_headers):
    resp = await client.get("/api/auth/me", headers=manager_headers)
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["username"] == "manager"
    assert data["role"] == "Manager"
    assert data["is_manager"] is True


async def test_login_rejects_bad_password(client):
    resp = await client.post(
        "/api/auth/login", json={"username": "manager", "password": "nope"}
    )
    assert resp.status_code == 401
    body = resp.json()
    assert body["ok"] is False
    assert body["error"]["code"] == 401


async def test_routes_require_token(client):
    resp = await client.get("/api/orders")
    assert resp.status_code == 401
    resp = await client.get("/api/orders", headers={"Authorization": "Bearer garbage"})
    assert resp.status_code == 401
    assert resp.headers["WWW-Authenticate"] == "Bearer"


async def test_catalog_listings(client, cashier_headers):
    resp = await client.get("/api/orders/menu-items", headers=cashier_headers)
    assert resp.status_code == 200
    items = resp.json()["data"]["menu_items"]
    assert [i["name"] for i in items] == ["Zinger Burger", "Soft Drink", "Fries"]
    assert items[0]["price"] == "9.50"

    resp = await client.get("/api/orders/deals", headers=cashier_headers)
    (deal,) = resp.json()["data"]["deals"]
    assert deal["name"] == "Burger Meal"
    assert [c["name"] for c in deal["items"]] == ["Zinger Burger", "Fries", "Soft Drink"]


async def test_create_and_get_order(client, cashier_headers, catalog):
    resp = await client.post("/api/orders", json=dine_body(catalog), headers=cashier_headers)
    assert resp.status_code == 201
    body = resp.json()
    assert body["message"] == "Order created successfully"
    order = body["data"]["order"]
    assert order["order_number"] == "ORD-000001"
    assert order["status"] == "DRAFT"
    assert order["total"] == "19.00"
    assert order["lines"][0]["name_at_sale"] == "Zinger Burger"
    assert order["lines"][0]["line_total"] == "19.00"

    resp = await client.get(f"/api/orders/{order['id']}", headers=cashier_headers)
    assert resp.status_code == 200
    assert resp.json()["data"]["order"]["order_number"] == "ORD-000001"


async def test_create_validation_errors(client, cashier_headers, catalog):
    resp = await client.post("/api/orders", json={"channel": "DINE"}, headers=cashier_headers)
    assert resp.status_code == 422
    assert resp.json()["error"]["code"] == "VALIDATION_ERROR"

    body = dine_body(catalog) | {"channel": "DELIVERY", "customer_name": "Ana"}
    resp = await client.post("/api/orders", json=body, headers=cashier_headers)
    assert resp.status_code == 400
    error = resp.json()["error"]
    assert error["code"] == "DELIVERY_CONTACT_REQUIRED"
    assert error["details"]["missing"] == ["customer_phone", "customer_address"]

    body = dine_body(catalog) | {"channel": "DRIVE_THRU"}
    resp = await client.post("/api/orders", json=body, headers=cashier_headers)
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "UNKNOWN_CHANNEL"

    body = dine_body(catalog) | {"discount": "25.00"}
    resp = await client.post("/api/orders", json=body, headers=cashier_headers)
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "DISCOUNT_TOO_LARGE"


async def test_status_changes_over_http(client, cashier_headers, manager_headers, catalog):
    order = await create(client, cashier_headers, dine_body(catalog))
    url = f"/api/orders/{order['id']}/status"

    resp = await client.post(url, json={"status": "READY"}, headers=cashier_headers)
    assert resp.status_code == 409
    error = resp.json()["error"]
    assert error["code"] == "INVALID_TRANSITION"
    assert error["details"]["allowed_next"] == ["PREPARING"]
    assert error["hint"] == "allowed next statuses: PREPARING"
    assert resp.json()["request_id"] == resp.headers["X-Request-ID"]

    resp = await client.post(url, json={"status": "CANCELLED"}, headers=cashier_headers)
    assert resp.status_code == 403
    assert resp.json()["error"]["code"] == "UNAUTHORIZED"

    resp = await client.post(url, json={"status": "PREPARING"}, headers=cashier_headers)
    assert resp.status_code == 200
    assert resp.json()["message"] == "Order status updated to PREPARING"

    resp = await client.get(f"/api/orders/{order['id']}/next-statuses", headers=manager_headers)
    assert resp.json()["data"] == {
        "order_id": order["id"],
        "next_statuses": ["READY", "CANCELLED", "DRAFT"],
    }

    resp = await client.post(url, json={"status": "CANCELLED"}, headers=manager_headers)
    assert resp.status_code == 200
    resp = await client.post(url, json={"status": "DRAFT"}, headers=manager_headers)
    assert resp.status_code == 409
    assert resp.json()["error"]["code"] == "TERMINAL"

    resp = await client.post(url, json={"status": "LOST"}, headers=manager_headers)
    assert resp.status_code == 400


async def test_patch_order(client, cashier_headers, catalog):
    order = await create(client, cashier_headers, dine_body(catalog))
    url = f"/api/orders/{order['id']}"

    resp = await client.patch(
        url,
        json={"lines": [{"product_kind": "DEAL", "product_id": catalog["meal"], "quantity": 1}]},
        headers=cashier_headers,
    )
    assert resp.status_code == 200
    assert resp.json()["data"]["order"]["total"] == "13.00"

    resp = await client.patch(url, json={"channel": "TAKEAWAY"}, headers=cashier_headers)
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "CHANNEL_IMMUTABLE"

    resp = await client.patch(url, json={"table": 3}, headers=cashier_headers)
    assert resp.status_code == 422

    await client.post(f"{url}/status", json={"status": "PREPARING"}, headers=cashier_headers)
    resp = await client.patch(url, json={"discount": "1.00"}, headers=cashier_headers)
    assert resp.status_code == 409
    assert resp.json()["error"]["code"] == "STATE_ERROR"
    resp = await client.patch(url, json={"payment_status": "PAID"}, headers=cashier_headers)
    assert resp.status_code == 200
    assert resp.json()["data"]["order"]["payment_status"] == "PAID"


async def test_list_orders_filters_and_pages(client, cashier_headers, catalog):
    first = await create(client, cashier_headers, dine_body(catalog))
    for _ in range(2):
        await create(client, cashier_headers, dine_body(catalog) | {"channel": "TAKEAWAY"})
    await client.post(
        f"/api/orders/{first['id']}/status", json={"status": "PREPARING"}, headers=cashier_headers
    )

    resp = await client.get("/api/orders?limit=2", headers=cashier_headers)
    data = resp.json()["data"]
    assert len(data["orders"]) == 2
    assert data["pagination"] == {"page": 1, "limit": 2, "total": 3, "pages": 2}

    resp = await client.get("/api/orders?channel=TAKEAWAY", headers=cashier_headers)
    assert resp.json()["data"]["pagination"]["total"] == 2
    resp = await client.get("/api/orders?status=PREPARING", headers=cashier_headers)
    orders = resp.json()["data"]["orders"]
    assert [o["order_number"] for o in orders] == ["ORD-000001"]

    resp = await client.get("/api/orders?status=LOST", headers=cashier_headers)
    assert resp.status_code == 400
    resp = await client.get("/api/orders?limit=500", headers=cashier_headers)
    assert resp.status_code == 422


async def test_delete_order(client, cashier_headers, manager_headers, catalog):
    order = await create(client, cashier_headers, dine_body(catalog))
    url = f"/api/orders/{order['id']}"

    resp = await client.delete(url, headers=cashier_headers)
    assert resp.status_code == 403
    assert resp.json()["error"]["code"] == "FORBIDDEN"
    assert resp.json()["error"]["message"] == "Manager role required"
    assert (await client.get(url, headers=cashier_headers)).status_code == 200

    resp = await client.delete(url, headers=manager_headers)
    assert resp.status_code == 200
    assert resp.json()["data"]["deleted"]["order_number"] == "ORD-000001"

    resp = await client.get(url, headers=manager_headers)
    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "NOT_FOUND"


async def test_amounts_are_two_decimal_strings(client, cashier_headers, catalog):
    body = dine_body(catalog) | {
        "channel": "DELIVERY",
        "customer_name": "Ana",
        "customer_phone": "0300 1234567",
        "customer_address": "12 Mall Road",
        "delivery_charges": 2.5,
        "discount": "0.5",
    }
    order = await create(client, cashier_headers, body)
    assert order["subtotal"] == "19.00"
    assert order["delivery_charges"] == "2.50"
    assert order["discount"] == "0.50"
    assert order["total"] == "21.00"
    assert order["lines"][0]["unit_price_at_sale"] == "9.50"

    resp = await client.get("/api/orders", headers=cashier_headers)
    listed = resp.json()["data"]["orders"][0]
    assert listed["total"] == "21.00"
    assert listed["lines"][0]["line_total"] == "19.00"

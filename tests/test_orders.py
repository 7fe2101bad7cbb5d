import pytest
from sqlalchemy import select
from storefront.schema.full_schema import Orders, Product
from tests.helpers import admin_headers, place_order, url_prefix, user_headers


@pytest.mark.asyncio
async def test_list_and_read_orders(ac_client, make_product):
    pid = await make_product("Puppy Pads", 1000, 50)
    headers = user_headers(51)
    placed = [await place_order(ac_client, headers, [(pid, n)]) for n in (1, 2, 3)]
    await place_order(ac_client, user_headers(52), [(pid, 1)])

    resp = await ac_client.get(f"{url_prefix}/orders", params={"page": 1, "limit": 2}, headers=headers)
    assert resp.status_code == 200, resp.text
    data = resp.json()["data"]
    assert data["meta"] == {"page": 1, "limit": 2, "total": 3, "total_pages": 2}
    assert [o["id"] for o in data["orders"]] == [placed[2]["id"], placed[1]["id"]]
    assert data["orders"][0]["item_count"] == 3

    resp = await ac_client.get(f"{url_prefix}/orders", params={"page": 2, "limit": 2}, headers=headers)
    assert [o["id"] for o in resp.json()["data"]["orders"]] == [placed[0]["id"]]

    resp = await ac_client.get(f"{url_prefix}/orders/{placed[0]['id']}", headers=headers)
    assert resp.status_code == 200
    order = resp.json()["data"]["order"]
    assert order["order_number"] == placed[0]["order_number"]
    assert order["items"][0]["quantity"] == 1


@pytest.mark.asyncio
async def test_list_filters_by_status(ac_client, make_product):
    pid = await make_product("Goldfish Food", 400, 50)
    headers = user_headers(53)
    first = await place_order(ac_client, headers, [(pid, 1)])
    await place_order(ac_client, headers, [(pid, 1)])
    await ac_client.post(f"{url_prefix}/orders/{first['id']}/cancel", headers=headers)

    resp = await ac_client.get(f"{url_prefix}/orders", params={"status": "cancelled"}, headers=headers)
    orders = resp.json()["data"]["orders"]
    assert [o["id"] for o in orders] == [first["id"]]


@pytest.mark.asyncio
async def test_orders_are_private(ac_client, make_product):
    pid = await make_product("Horse Brush", 1600, 10)
    order = await place_order(ac_client, user_headers(54), [(pid, 1)])

    resp = await ac_client.get(f"{url_prefix}/orders/{order['id']}", headers=user_headers(55))
    assert resp.status_code == 403
    assert resp.json()["error"]["code"] == "AUTHORIZATION_ERROR"

    resp = await ac_client.get(f"{url_prefix}/orders/{order['id']}")
    assert resp.status_code == 401

    resp = await ac_client.get(f"{url_prefix}/orders/424242", headers=user_headers(54))
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_cancel_restocks_and_refunds(ac_client, app, make_product, db_scalar, gateway, notifier):
    pid = await make_product("Cat Fountain", 3900, 10)
    headers = user_headers(56)
    order = await place_order(ac_client, headers, [(pid, 3)])
    assert await db_scalar(select(Product.stock_qty).where(Product.id == pid)) == 7

    resp = await ac_client.post(f"{url_prefix}/orders/{order['id']}/cancel", headers=headers)
    assert resp.status_code == 200, resp.text
    cancelled = resp.json()["data"]["order"]
    assert cancelled["status"] == "cancelled"
    assert cancelled["cancelled_at"] is not None

    assert await db_scalar(select(Product.stock_qty).where(Product.id == pid)) == 10
    assert gateway.refunds == [order["payment_intent_id"]]

    await app.state.notification_worker.queue.join()
    assert [o["order_number"] for o in notifier.cancellations] == [order["order_number"]]

    # cancelling twice is an invalid transition and restocks nothing
    resp = await ac_client.post(f"{url_prefix}/orders/{order['id']}/cancel", headers=headers)
    assert resp.status_code == 409
    assert await db_scalar(select(Product.stock_qty).where(Product.id == pid)) == 10


@pytest.mark.asyncio
async def test_cancel_survives_refund_failure(ac_client, make_product, db_scalar, gateway):
    pid = await make_product("Dog Raincoat", 2800, 4)
    headers = user_headers(57)
    order = await place_order(ac_client, headers, [(pid, 2)])
    gateway.configure(fail_refunds=True)

    resp = await ac_client.post(f"{url_prefix}/orders/{order['id']}/cancel", headers=headers)
    assert resp.status_code == 200, resp.text
    assert resp.json()["data"]["order"]["status"] == "cancelled"
    assert gateway.refunds == []
    assert await db_scalar(select(Product.stock_qty).where(Product.id == pid)) == 4


@pytest.mark.asyncio
async def test_shipped_order_cannot_be_cancelled(ac_client, make_product, db_scalar, gateway):
    pid = await make_product("Bird Cage", 9900, 5)
    headers = user_headers(58)
    order = await place_order(ac_client, headers, [(pid, 1)])

    resp = await ac_client.post(f"{url_prefix}/admin/orders/{order['id']}/ship", headers=admin_headers())
    assert resp.status_code == 200, resp.text

    resp = await ac_client.post(f"{url_prefix}/orders/{order['id']}/cancel", headers=headers)
    assert resp.status_code == 409
    details = resp.json()["error"]["details"]
    assert resp.json()["error"]["code"] == "INVALID_TRANSITION"
    assert details["from_status"] == "shipped"

    assert await db_scalar(select(Product.stock_qty).where(Product.id == pid)) == 4
    assert gateway.refunds == []


@pytest.mark.asyncio
async def test_admin_status_progression(ac_client, make_product, db_scalar):
    pid = await make_product("Hedgehog House", 4500, 5)
    order = await place_order(ac_client, user_headers(59), [(pid, 1)])
    base = f"{url_prefix}/admin/orders/{order['id']}"

    resp = await ac_client.post(f"{base}/process", headers=user_headers(59))
    assert resp.status_code == 403

    for action, expected, stamp in (("process", "processing", "processing_at"),
                                    ("ship", "shipped", "shipped_at"),
                                    ("deliver", "delivered", "delivered_at")):
        resp = await ac_client.post(f"{base}/{action}", headers=admin_headers())
        assert resp.status_code == 200, resp.text
        updated = resp.json()["data"]["order"]
        assert updated["status"] == expected
        assert updated[stamp] is not None

    resp = await ac_client.post(f"{base}/process", headers=admin_headers())
    assert resp.status_code == 409
    assert await db_scalar(select(Orders.status).where(Orders.id == order["id"])) == "delivered"


@pytest.mark.asyncio
async def test_reorder_reports_unavailable_lines(ac_client, make_product, session_factory):
    plenty = await make_product("Chicken Jerky", 1400, 20)
    scarce = await make_product("Salmon Oil", 2200, 10)
    retired = await make_product("Holiday Sweater", 1800, 10)
    sold_out = await make_product("Limited Bowl", 900, 10)
    headers = user_headers(60)
    order = await place_order(ac_client, headers, [(plenty, 2), (scarce, 5), (retired, 1), (sold_out, 1)])

    async with session_factory() as session:
        (await session.get(Product, scarce)).stock_qty = 3
        (await session.get(Product, retired)).is_active = False
        (await session.get(Product, sold_out)).stock_qty = 0
        await session.commit()

    resp = await ac_client.post(f"{url_prefix}/orders/{order['id']}/reorder", headers=headers)
    assert resp.status_code == 200, resp.text
    data = resp.json()["data"]

    added = {it["product_id"]: it["added_quantity"] for it in data["added_items"]}
    assert added == {plenty: 2, scarce: 3}
    reasons = {it["product_id"]: it["reason"] for it in data["unavailable_items"]}
    assert reasons == {retired: "Product no longer available", sold_out: "Out of stock"}

    quantities = {it["product_id"]: it["quantity"] for it in data["cart"]["items"]}
    assert quantities == {plenty: 2, scarce: 3}


@pytest.mark.asyncio
async def test_reorder_someone_elses_order(ac_client, make_product):
    pid = await make_product("Ferret Hammock", 1300, 10)
    order = await place_order(ac_client, user_headers(61), [(pid, 1)])
    resp = await ac_client.post(f"{url_prefix}/orders/{order['id']}/reorder", headers=user_headers(62))
    assert resp.status_code == 403

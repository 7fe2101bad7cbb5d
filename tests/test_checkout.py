import pytest
from sqlalchemy import func, select
from storefront.schema.full_schema import Cart, DiscountType, OrderItem, Orders, Product, PromoCode
from tests.helpers import add_to_cart, address, guest_headers, place_order, url_prefix, user_headers


@pytest.mark.asyncio
async def test_shipping_rates_for_cart(ac_client, make_product):
    pid = await make_product("Kitten Formula", 2600, 10)
    headers = guest_headers("guest-rates")
    await add_to_cart(ac_client, headers, pid, 2)

    resp = await ac_client.post(f"{url_prefix}/checkout/shipping-rates", json={"address": address()}, headers=headers)
    assert resp.status_code == 200, resp.text
    data = resp.json()["data"]
    assert data["subtotal"] == 5200
    rates = {r["id"]: r["price"] for r in data["shipping_options"]}
    assert rates == {"standard": 0, "expedited": 1299}


@pytest.mark.asyncio
async def test_validate_reports_stock_issues(ac_client, make_product, session_factory):
    pid = await make_product("Rabbit Hutch", 12000, 3)
    headers = guest_headers("guest-validate")

    resp = await ac_client.post(f"{url_prefix}/checkout/validate", headers=headers)
    assert resp.json()["data"] == {"valid": False, "is_empty": True, "stock_issues": []}

    await add_to_cart(ac_client, headers, pid, 3)
    resp = await ac_client.post(f"{url_prefix}/checkout/validate", headers=headers)
    assert resp.json()["data"]["valid"] is True

    async with session_factory() as session:
        product = await session.get(Product, pid)
        product.stock_qty = 1
        await session.commit()

    resp = await ac_client.post(f"{url_prefix}/checkout/validate", headers=headers)
    data = resp.json()["data"]
    assert data["valid"] is False
    assert data["stock_issues"][0]["available_quantity"] == 1
    assert data["stock_issues"][0]["requested_quantity"] == 3


@pytest.mark.asyncio
async def test_create_payment_charges_the_total(ac_client, make_product, make_promo, gateway):
    pid = await make_product("Aquarium Heater", 3775, 10)
    await make_promo("SAVE20", DiscountType.PERCENTAGE, 20)
    headers = user_headers(21)
    await add_to_cart(ac_client, headers, pid, 2)

    resp = await ac_client.post(f"{url_prefix}/checkout/create-payment",
                                json={"shipping_method": "standard", "promo_code": "save20"}, headers=headers)
    assert resp.status_code == 201, resp.text
    data = resp.json()["data"]
    assert data["amount"] == 6523
    assert data["breakdown"]["total"] == 6523
    assert data["breakdown"]["discount"] == 1510
    assert data["payment_intent_id"].startswith("pi_fake_")
    assert data["client_secret"]

    call = gateway.calls[-1]
    assert call["amount"] == 6523
    assert call["currency"] == "usd"
    assert call["metadata"]["user_id"] == "21"


@pytest.mark.asyncio
async def test_create_payment_guest_metadata(ac_client, make_product, gateway):
    pid = await make_product("Bully Sticks", 1500, 10)
    headers = guest_headers("guest-pay")
    await add_to_cart(ac_client, headers, pid, 1)

    resp = await ac_client.post(f"{url_prefix}/checkout/create-payment", json={"shipping_method": "expedited"},
                                headers=headers)
    assert resp.status_code == 201, resp.text
    assert resp.json()["data"]["amount"] == 1500 + 1299 + 120
    assert gateway.calls[-1]["metadata"]["user_id"] == "guest"


@pytest.mark.asyncio
async def test_create_payment_gateway_failure(ac_client, make_product, gateway):
    pid = await make_product("Dental Chews", 1200, 10)
    headers = guest_headers("guest-declined")
    await add_to_cart(ac_client, headers, pid, 1)
    gateway.configure(fail_intents=True)

    resp = await ac_client.post(f"{url_prefix}/checkout/create-payment", json={"shipping_method": "standard"},
                                headers=headers)
    assert resp.status_code == 402
    assert resp.json()["error"]["code"] == "PAYMENT_FAILED"


@pytest.mark.asyncio
async def test_create_payment_rejections(ac_client, make_product):
    headers = guest_headers("guest-empty")
    resp = await ac_client.post(f"{url_prefix}/checkout/create-payment", json={"shipping_method": "standard"},
                                headers=headers)
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "CART_EMPTY"

    pid = await make_product("Guinea Pig Hay", 900, 10)
    await add_to_cart(ac_client, headers, pid, 1)
    resp = await ac_client.post(f"{url_prefix}/checkout/create-payment", json={"shipping_method": "teleport"},
                                headers=headers)
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "INVALID_SHIPPING_METHOD"


@pytest.mark.asyncio
async def test_confirm_creates_order(ac_client, app, make_product, make_promo, db_scalar, notifier):
    food = await make_product("Senior Dog Food", 5000, 10)
    toy = await make_product("Feather Wand", 2550, 10)
    promo_id = await make_promo("SAVE20", DiscountType.PERCENTAGE, 20, max_uses=100)
    headers = user_headers(31, email="owner31@example.com")

    order = await place_order(ac_client, headers, [(food, 1), (toy, 1)], promo_code="SAVE20", notes="leave at door")

    assert order["status"] == "pending"
    assert order["email"] == "owner31@example.com"
    assert order["total"] == 6523
    assert order["promo_code"] == "SAVE20"
    assert order["billing_address"] == order["shipping_address"]
    assert {it["product_id"]: it["unit_price"] for it in order["items"]} == {food: 5000, toy: 2550}
    assert order["estimated_delivery"]

    assert await db_scalar(select(Product.stock_qty).where(Product.id == food)) == 9
    assert await db_scalar(select(Product.stock_qty).where(Product.id == toy)) == 9
    assert await db_scalar(select(PromoCode.usage_count).where(PromoCode.id == promo_id)) == 1
    assert await db_scalar(select(Cart.id).where(Cart.user_id == 31)) is None

    await app.state.notification_worker.queue.join()
    assert [o["order_number"] for o in notifier.confirmations] == [order["order_number"]]


@pytest.mark.asyncio
async def test_confirm_replay_returns_same_order(ac_client, app, make_product, make_promo, db_scalar, notifier):
    pid = await make_product("Cat Scratcher", 4000, 10)
    promo_id = await make_promo("WELCOME10", DiscountType.PERCENTAGE, 10)
    headers = user_headers(32)
    order = await place_order(ac_client, headers, [(pid, 2)], promo_code="WELCOME10")

    body = {
        "payment_intent_id": order["payment_intent_id"],
        "shipping_method": "standard",
        "shipping_address": address(),
        "promo_code": "WELCOME10",
    }
    resp = await ac_client.post(f"{url_prefix}/checkout/confirm", json=body, headers=headers)
    assert resp.status_code == 200, resp.text
    data = resp.json()["data"]
    assert data["created"] is False
    assert data["order"]["id"] == order["id"]
    assert data["order"]["order_number"] == order["order_number"]

    assert await db_scalar(select(func.count(Orders.id))) == 1
    assert await db_scalar(select(func.count(OrderItem.id))) == 1
    assert await db_scalar(select(Product.stock_qty).where(Product.id == pid)) == 8
    assert await db_scalar(select(PromoCode.usage_count).where(PromoCode.id == promo_id)) == 1

    await app.state.notification_worker.queue.join()
    assert len(notifier.confirmations) == 1


@pytest.mark.asyncio
async def test_confirm_replay_by_other_user_forbidden(ac_client, make_product):
    pid = await make_product("Pet Carrier", 5500, 5)
    order = await place_order(ac_client, user_headers(33), [(pid, 1)])

    body = {"payment_intent_id": order["payment_intent_id"], "shipping_method": "standard",
            "shipping_address": address()}
    resp = await ac_client.post(f"{url_prefix}/checkout/confirm", json=body, headers=user_headers(34))
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_guest_confirm_needs_email(ac_client, make_product):
    pid = await make_product("Reptile Lamp", 3200, 5)
    headers = guest_headers("guest-confirm")
    await add_to_cart(ac_client, headers, pid, 1)

    body = {"payment_intent_id": "pi_guest_1", "shipping_method": "standard", "shipping_address": address()}
    resp = await ac_client.post(f"{url_prefix}/checkout/confirm", json=body, headers=headers)
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "EMAIL_REQUIRED"

    resp = await ac_client.post(f"{url_prefix}/checkout/confirm", json={**body, "email": "guest@example.com"},
                                headers=headers)
    assert resp.status_code == 201, resp.text
    order = resp.json()["data"]["order"]
    assert order["user_id"] is None
    assert order["email"] == "guest@example.com"


@pytest.mark.asyncio
async def test_confirm_rejects_bad_zip(ac_client, make_product):
    pid = await make_product("Fish Tank", 8000, 5)
    headers = user_headers(35)
    await add_to_cart(ac_client, headers, pid, 1)

    body = {"payment_intent_id": "pi_zip", "shipping_method": "standard", "shipping_address": address(zip_code="ABCDE")}
    resp = await ac_client.post(f"{url_prefix}/checkout/confirm", json=body, headers=headers)
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_confirm_empty_cart(ac_client):
    body = {"payment_intent_id": "pi_empty", "shipping_method": "standard", "shipping_address": address()}
    resp = await ac_client.post(f"{url_prefix}/checkout/confirm", json=body, headers=user_headers(36))
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "CART_EMPTY"


@pytest.mark.asyncio
async def test_confirm_with_stock_gone(ac_client, make_product, session_factory, db_scalar):
    pid = await make_product("Last Bag of Kibble", 3000, 2)
    headers = user_headers(37)
    await add_to_cart(ac_client, headers, pid, 2)

    async with session_factory() as session:
        product = await session.get(Product, pid)
        product.stock_qty = 1
        await session.commit()

    body = {"payment_intent_id": "pi_stock", "shipping_method": "standard", "shipping_address": address()}
    resp = await ac_client.post(f"{url_prefix}/checkout/confirm", json=body, headers=headers)
    assert resp.status_code == 409
    assert resp.json()["error"]["code"] == "INSUFFICIENT_STOCK"

    assert await db_scalar(select(func.count(Orders.id))) == 0
    assert await db_scalar(select(Product.stock_qty).where(Product.id == pid)) == 1
    assert await db_scalar(select(Cart.id).where(Cart.user_id == 37)) is not None

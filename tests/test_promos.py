from datetime import timedelta
import pytest
from sqlalchemy import select
from storefront.common.custom_exceptions import InvalidPromoCode
from storefront.common.utils import now
from storefront.promos.services import check_eligibility, normalize_code
from storefront.schema.full_schema import DiscountType, PromoCode
from tests.helpers import add_to_cart, guest_headers, url_prefix


def promo(**overrides):
    data = {
        "id": 1,
        "code": "WELCOME10",
        "discount_type": DiscountType.PERCENTAGE.value,
        "discount_value": 10,
        "min_order_value": 3000,
        "max_uses": 10,
        "usage_count": 0,
        "is_active": True,
        "starts_at": now() - timedelta(days=1),
        "expires_at": now() + timedelta(days=1),
    }
    data.update(overrides)
    return data


def rejection(p, subtotal):
    with pytest.raises(InvalidPromoCode) as exc_info:
        check_eligibility(p, subtotal)
    return exc_info.value.reason


def test_eligible_promo_passes():
    check_eligibility(promo(), 5000)


def test_rejection_reasons():
    assert rejection(promo(is_active=False), 5000) == "inactive"
    assert rejection(promo(starts_at=now() + timedelta(hours=1)), 5000) == "not_started"
    assert rejection(promo(expires_at=now() - timedelta(seconds=1)), 5000) == "expired"
    assert rejection(promo(usage_count=10), 5000) == "exhausted"
    assert rejection(promo(), 2999) == "below_minimum"


def test_first_failing_check_wins():
    # inactive beats every later check
    assert rejection(promo(is_active=False, usage_count=10, expires_at=now() - timedelta(days=2)), 10) == "inactive"
    assert rejection(promo(expires_at=now() - timedelta(days=2), usage_count=10), 10) == "expired"
    assert rejection(promo(usage_count=10), 10) == "exhausted"


def test_no_limits_when_fields_unset():
    check_eligibility(promo(min_order_value=None, max_uses=None, starts_at=None, expires_at=None), 1)


def test_normalize_code():
    assert normalize_code("  welcome10 ") == "WELCOME10"


@pytest.mark.asyncio
async def test_apply_promo_quotes_without_consuming(ac_client, make_product, make_promo, db_scalar):
    pid = await make_product("Salmon Kibble", 4000, 10)
    promo_id = await make_promo("WELCOME10", DiscountType.PERCENTAGE, 10, min_order_value=3000, max_uses=5)
    headers = guest_headers("guest-promo")
    await add_to_cart(ac_client, headers, pid, 1)

    for _ in range(3):
        resp = await ac_client.post(f"{url_prefix}/checkout/apply-promo", json={"code": "welcome10"}, headers=headers)
        assert resp.status_code == 200, resp.text
        data = resp.json()["data"]
        assert data["code"] == "WELCOME10"
        assert data["discount_amount"] == 400
        assert data["subtotal"] == 4000

    usage = await db_scalar(select(PromoCode.usage_count).where(PromoCode.id == promo_id))
    assert usage == 0


@pytest.mark.asyncio
async def test_apply_promo_unknown_and_below_minimum(ac_client, make_product, make_promo):
    pid = await make_product("Cat Tree", 1000, 10)
    await make_promo("BIGSPEND", DiscountType.FIXED, 500, min_order_value=5000)
    headers = guest_headers("guest-promo-2")
    await add_to_cart(ac_client, headers, pid, 1)

    resp = await ac_client.post(f"{url_prefix}/checkout/apply-promo", json={"code": "NOPE"}, headers=headers)
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "INVALID_PROMO_CODE"
    assert resp.json()["error"]["details"]["reason"] == "not_found"

    resp = await ac_client.post(f"{url_prefix}/checkout/apply-promo", json={"code": "BIGSPEND"}, headers=headers)
    assert resp.status_code == 400
    assert resp.json()["error"]["details"]["reason"] == "below_minimum"


@pytest.mark.asyncio
async def test_apply_promo_expired(ac_client, make_product, make_promo):
    pid = await make_product("Dog Leash", 6000, 10)
    await make_promo("OLDDEAL", DiscountType.FIXED, 500, expires_in=timedelta(days=-1))
    headers = guest_headers("guest-promo-3")
    await add_to_cart(ac_client, headers, pid, 1)

    resp = await ac_client.post(f"{url_prefix}/checkout/apply-promo", json={"code": "OLDDEAL"}, headers=headers)
    assert resp.status_code == 400
    assert resp.json()["error"]["details"]["reason"] == "expired"

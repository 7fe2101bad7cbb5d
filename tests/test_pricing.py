import pytest
from storefront.checkout.pricing import compute_discount, compute_tax, get_shipping_option, price_cart, shipping_rates
from storefront.common.custom_exceptions import InvalidShippingMethod
from storefront.schema.full_schema import DiscountType


def line(price_at_add, quantity, product_id=1):
    return {"product_id": product_id, "product_name": "Chew Toy", "price_at_add": price_at_add, "quantity": quantity}


def promo(discount_type, value, code="TEST"):
    return {"code": code, "discount_type": discount_type.value, "discount_value": value}


def test_percentage_promo_with_free_standard_shipping():
    lines = [line(5000, 1, 1), line(2550, 1, 2)]
    res = price_cart(lines, "standard", promo(DiscountType.PERCENTAGE, 20, "SAVE20"))

    assert res["subtotal"] == 7550
    assert res["discount"] == 1510
    assert res["shipping"] == 0
    assert res["tax"] == 483
    assert res["total"] == 6523
    assert res["promo_code"] == "SAVE20"


def test_standard_shipping_charged_below_threshold():
    res = price_cart([line(1000, 2)], "standard")
    assert res["shipping"] == 599
    assert res["tax"] == 160
    assert res["total"] == 2000 + 599 + 160


def test_free_shipping_threshold_is_inclusive():
    res = price_cart([line(2500, 2)], "standard")
    assert res["shipping"] == 0


def test_expedited_never_free():
    res = price_cart([line(10000, 1)], "expedited")
    assert res["shipping"] == 1299
    assert res["shipping_method"] == "expedited"


def test_fixed_discount_capped_at_subtotal():
    assert compute_discount(1500, promo(DiscountType.FIXED, 2000)) == 1500
    res = price_cart([line(1500, 1)], "standard", promo(DiscountType.FIXED, 2000))
    assert res["discount"] == 1500
    assert res["tax"] == 0
    assert res["total"] == 599


def test_percentage_discount_rounds_half_up():
    # 15% of 1010 is 151.5
    assert compute_discount(1010, promo(DiscountType.PERCENTAGE, 15)) == 152


def test_tax_rounds_half_up():
    # 8% of 1006 is 80.48, of 1019 is 81.52
    assert compute_tax(1006) == 80
    assert compute_tax(1019) == 82


def test_unknown_shipping_method():
    with pytest.raises(InvalidShippingMethod):
        get_shipping_option("overnight-drone")
    with pytest.raises(InvalidShippingMethod):
        price_cart([line(1000, 1)], "overnight-drone")


def test_shipping_rates_mark_free_options():
    rates = {r["id"]: r for r in shipping_rates(6000)}
    assert rates["standard"]["price"] == 0
    assert rates["standard"]["is_free"] is True
    assert rates["expedited"]["price"] == 1299

    rates = {r["id"]: r for r in shipping_rates(100)}
    assert rates["standard"]["price"] == 599

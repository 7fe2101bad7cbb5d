"""Pure pricing functions. All amounts are integer cents.

Fractional intermediate values (percentage discounts, tax) are rounded half-up
to whole cents, nothing is truncated.
"""
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Iterable, List, Optional
from storefront.checkout.constants import SHIPPING_OPTIONS, TAX_RATE, ShippingOption
from storefront.common.custom_exceptions import InvalidShippingMethod
from storefront.schema.full_schema import DiscountType


def round_cents(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def get_shipping_option(shipping_method: str) -> ShippingOption:
    option = SHIPPING_OPTIONS.get(shipping_method)
    if option is None:
        raise InvalidShippingMethod(shipping_method)
    return option


def compute_subtotal(lines: Iterable[Dict]) -> int:
    # captured price-at-add, not the live catalog price
    return sum(int(ln["price_at_add"]) * int(ln["quantity"]) for ln in lines)


def compute_shipping(option: ShippingOption, subtotal: int) -> int:
    if option.free_threshold is not None and subtotal >= option.free_threshold:
        return 0
    return option.price


def compute_discount(subtotal: int, promo: Optional[Dict]) -> int:
    if not promo:
        return 0
    if promo["discount_type"] == DiscountType.PERCENTAGE.value:
        discount = round_cents(Decimal(subtotal) * Decimal(promo["discount_value"]) / Decimal(100))
    else:
        discount = int(promo["discount_value"])
    return max(0, min(discount, subtotal))


def compute_tax(taxable: int) -> int:
    return round_cents(Decimal(taxable) * TAX_RATE)


def price_cart(lines: Iterable[Dict], shipping_method: str, promo: Optional[Dict] = None) -> Dict:
    option = get_shipping_option(shipping_method)
    subtotal = compute_subtotal(lines)
    discount = compute_discount(subtotal, promo)
    shipping = compute_shipping(option, subtotal)
    tax = compute_tax(subtotal - discount)
    return {
        "subtotal": subtotal,
        "discount": discount,
        "shipping": shipping,
        "tax": tax,
        "total": subtotal - discount + shipping + tax,
        "shipping_method": option.id,
        "promo_code": promo["code"] if promo else None,
    }


def shipping_rates(subtotal: int) -> List[Dict]:
    rates = []
    for option in SHIPPING_OPTIONS.values():
        price = compute_shipping(option, subtotal)
        rates.append({
            "id": option.id,
            "name": option.name,
            "description": option.description,
            "estimated_days": option.estimated_days,
            "price": price,
            "base_price": option.price,
            "free_threshold": option.free_threshold,
            "is_free": price == 0,
        })
    return rates

from typing import Dict, List, Optional
from storefront.cart.models import CartIdentity, OwnedCart
from storefront.cart.repository import find_cart_id, load_cart_lines, record_payment_quote
from storefront.checkout.constants import logger
from storefront.checkout.pricing import compute_discount, compute_subtotal, price_cart, shipping_rates
from storefront.common.custom_exceptions import EmptyCart, InsufficientStock
from storefront.inventory.services import check_stock
from storefront.payments.gateway import PaymentGateway
from storefront.payments.services import create_intent
from storefront.promos.services import resolve_promo


async def _cart_lines(session, identity: CartIdentity):
    cart_id = await find_cart_id(session, identity)
    lines = await load_cart_lines(session, cart_id) if cart_id is not None else []
    return cart_id, lines


async def get_shipping_rates(session, identity: CartIdentity) -> Dict:
    _, lines = await _cart_lines(session, identity)
    subtotal = compute_subtotal(lines)
    return {"subtotal": subtotal, "shipping_options": shipping_rates(subtotal)}


async def validate_checkout(session, identity: CartIdentity) -> Dict:
    _, lines = await _cart_lines(session, identity)
    issues: List[Dict] = await check_stock(session, lines) if lines else []
    return {
        "valid": bool(lines) and not issues,
        "is_empty": not lines,
        "stock_issues": issues,
    }


async def apply_promo(session, identity: CartIdentity, code: str) -> Dict:
    """Quote a promo code against the current cart. Does not consume a use."""
    _, lines = await _cart_lines(session, identity)
    subtotal = compute_subtotal(lines)
    promo = await resolve_promo(session, code, subtotal)
    return {
        "code": promo["code"],
        "discount_type": promo["discount_type"],
        "discount_value": promo["discount_value"],
        "discount_amount": compute_discount(subtotal, promo),
        "subtotal": subtotal,
    }


async def create_payment(session, identity: CartIdentity, gateway: PaymentGateway, shipping_method: str,
                         promo_code: Optional[str], *, currency: str, timeout: float) -> Dict:
    """Price the cart and open a payment intent for the total."""
    cart_id, lines = await _cart_lines(session, identity)
    if not lines:
        raise EmptyCart()

    issues = await check_stock(session, lines)
    if issues:
        raise InsufficientStock(issues)

    promo = await resolve_promo(session, promo_code, compute_subtotal(lines)) if promo_code else None
    breakdown = price_cart(lines, shipping_method, promo)

    owner = str(identity.user_id) if isinstance(identity, OwnedCart) else "guest"
    metadata = {"user_id": owner, "cart_id": str(cart_id)}
    intent = await create_intent(gateway, breakdown["total"], currency, metadata, timeout=timeout)
    # confirm compares the order total against this amount
    await record_payment_quote(session, cart_id, intent.id, intent.amount)
    await session.commit()

    logger.info("checkout.payment_created", extra={"cart_id": cart_id, "total": breakdown["total"]})
    return {
        "payment_intent_id": intent.id,
        "client_secret": intent.client_secret,
        "amount": intent.amount,
        "currency": intent.currency,
        "breakdown": breakdown,
    }

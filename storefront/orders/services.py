import math
from typing import Dict, Optional, Tuple
from sqlalchemy.exc import IntegrityError
from storefront.cart.models import CartIdentity, OwnedCart
from storefront.cart.repository import delete_carts, find_cart_id, get_or_create_cart, load_cart_header, load_cart_lines
from storefront.cart.services import add_item, build_cart_view
from storefront.checkout.pricing import compute_subtotal, get_shipping_option, price_cart
from storefront.common.custom_exceptions import (AuthorizationError, EmailRequired, EmptyCart, InsufficientStock, InvalidPromoCode,
                                               InvalidTransition, NotFound, OrderNumberUnavailable)
from storefront.common.utils import as_utc
from storefront.inventory.repository import get_products
from storefront.inventory.services import check_stock, decrement_for_lines, issues_after_refusal, restock_lines
from storefront.notifications.constants import ORDER_CANCELLED, ORDER_CONFIRMATION
from storefront.notifications.worker import NotificationWorker
from storefront.orders.constants import INSUFFICIENT_STOCK, OUT_OF_STOCK, PRODUCT_UNAVAILABLE, logger
from storefront.orders.models import ConfirmOrderIn
from storefront.orders.repository import (find_order_by_intent, get_order, get_order_items, insert_order,
                                          list_orders_for_user, transition_status)
from storefront.orders.utils import ensure_transition, estimated_delivery, generate_order_number
from storefront.payments.gateway import PaymentGateway
from storefront.payments.services import refund_payment
from storefront.promos.services import record_promo_usage, resolve_promo
from storefront.schema.full_schema import OrderStatus


def serialize_order(order: Dict, items) -> Dict:
    view = {k: v for k, v in order.items() if k != "id"}
    view["id"] = order["id"]
    view["items"] = items
    option = get_shipping_option(order["shipping_method"])
    view["estimated_delivery"] = estimated_delivery(as_utc(order["placed_at"]), option.delivery_days)
    return view


async def load_order_view(session, order_id: int) -> Dict:
    order = await get_order(session, order_id)
    if order is None:
        raise NotFound("Order", order_id)
    return serialize_order(order, await get_order_items(session, order_id))


def _ensure_owner(order: Dict, user_id: Optional[int]) -> None:
    # guest orders have no owner and are never reachable by a logged in caller
    if order["user_id"] is None or order["user_id"] != user_id:
        raise AuthorizationError("Order belongs to another customer")


async def get_user_order(session, order_id: int, user_id: int) -> Dict:
    order = await get_order(session, order_id)
    if order is None:
        raise NotFound("Order", order_id)
    _ensure_owner(order, user_id)
    return serialize_order(order, await get_order_items(session, order_id))


async def list_user_orders(session, user_id: int, page: int, limit: int, order_status: Optional[OrderStatus] = None) -> Dict:
    orders, total = await list_orders_for_user(session, user_id, page, limit, order_status)
    return {
        "orders": [await _order_summary(session, o) for o in orders],
        "meta": {
            "page": page,
            "limit": limit,
            "total": total,
            "total_pages": math.ceil(total / limit) if total else 0,
        },
    }


async def _order_summary(session, order: Dict) -> Dict:
    items = await get_order_items(session, order["id"])
    return {
        "id": order["id"],
        "order_number": order["order_number"],
        "status": order["status"],
        "total": order["total"],
        "currency": order["currency"],
        "item_count": sum(it["quantity"] for it in items),
        "placed_at": order["placed_at"],
    }


async def _existing_order_for(session, payment_intent_id: str, user_id: Optional[int]) -> Optional[Dict]:
    existing = await find_order_by_intent(session, payment_intent_id)
    if existing is None:
        return None
    if existing["user_id"] != user_id:
        raise AuthorizationError("Payment intent belongs to another order")
    return await load_order_view(session, existing["id"])


async def _quoted_amount(session, cart_id: int, payment_intent_id: str, total: int) -> Optional[int]:
    """Amount the intent was opened for, when this cart opened it. A differing total is logged."""
    header = await load_cart_header(session, cart_id)
    if not header or header["payment_intent_id"] != payment_intent_id:
        return None
    quoted = header["quoted_total"]
    if quoted is not None and quoted != total:
        # cart changed after create-payment, needs reconciliation with the gateway
        logger.warning("order.amount_mismatch", extra={
            "payment_intent_id": payment_intent_id, "quoted_total": quoted, "total": total,
        })
    return quoted


async def confirm_order(session, identity: CartIdentity, user_id: Optional[int], user_email: Optional[str],
                        payload: ConfirmOrderIn, worker: NotificationWorker, *,
                        currency: str, max_attempts: int = 5) -> Tuple[Dict, bool]:
    """Turn the caller's cart into an order once the client has confirmed payment.

    Idempotent on payment_intent_id: a repeat returns the existing order. The order
    row, item snapshots, stock decrements, promo usage and cart deletion commit
    together or not at all. Returns (order, created).
    """
    existing = await _existing_order_for(session, payload.payment_intent_id, user_id)
    if existing is not None:
        logger.info("order.confirm_replayed", extra={"order_number": existing["order_number"]})
        return existing, False

    email = user_email or payload.email
    if not email:
        raise EmailRequired()

    cart_id = await find_cart_id(session, identity)
    lines = await load_cart_lines(session, cart_id) if cart_id is not None else []
    if not lines:
        raise EmptyCart()

    issues = await check_stock(session, lines)
    if issues:
        raise InsufficientStock(issues)

    promo = None
    if payload.promo_code:
        promo = await resolve_promo(session, payload.promo_code, compute_subtotal(lines))
    breakdown = price_cart(lines, payload.shipping_method, promo)
    amount_charged = await _quoted_amount(session, cart_id, payload.payment_intent_id, breakdown["total"])

    shipping_address = payload.shipping_address.model_dump()
    billing_address = payload.billing_address.model_dump() if payload.billing_address else shipping_address
    order_values = {
        "user_id": user_id,
        "email": str(email),
        "status": OrderStatus.PENDING.value,
        "currency": currency,
        "subtotal": breakdown["subtotal"],
        "discount": breakdown["discount"],
        "shipping": breakdown["shipping"],
        "tax": breakdown["tax"],
        "total": breakdown["total"],
        "amount_charged": amount_charged,
        "shipping_address": shipping_address,
        "billing_address": billing_address,
        "shipping_method": breakdown["shipping_method"],
        "payment_intent_id": payload.payment_intent_id,
        "promo_code": promo["code"] if promo else None,
        "notes": payload.notes,
    }

    order_id = None
    for attempt in range(1, max_attempts + 1):
        order_number = generate_order_number()
        try:
            order_id = await insert_order(session, {**order_values, "order_number": order_number}, lines)
            break
        except IntegrityError:
            await session.rollback()
            # either a concurrent confirm for the same intent won, or the order number collided
            existing = await _existing_order_for(session, payload.payment_intent_id, user_id)
            if existing is not None:
                return existing, False
            logger.warning("order.number_collision", extra={"order_number": order_number, "attempt": attempt})

    if order_id is None:
        raise OrderNumberUnavailable(max_attempts)

    refused = await decrement_for_lines(session, lines)
    if refused is not None:
        await session.rollback()
        raise InsufficientStock(await issues_after_refusal(session, lines, refused))

    if promo:
        try:
            await record_promo_usage(session, promo)
        except InvalidPromoCode:
            await session.rollback()
            raise

    await delete_carts(session, [cart_id])
    await session.commit()

    order = await load_order_view(session, order_id)
    logger.info("order.created", extra={
        "order_number": order["order_number"],
        "total": order["total"],
        "payment_intent_id": order["payment_intent_id"],
    })
    worker.dispatch(ORDER_CONFIRMATION, order)
    return order, True


async def cancel_order(session, order_id: int, user_id: int, gateway: PaymentGateway, worker: NotificationWorker,
                       *, refund_timeout: float) -> Dict:
    """Cancel a pending or processing order.

    Stock comes back and the status change commits first. The refund and the
    customer notice run afterwards and cannot undo the cancellation.
    """
    order = await get_order(session, order_id)
    if order is None:
        raise NotFound("Order", order_id)
    _ensure_owner(order, user_id)
    ensure_transition(order["status"], OrderStatus.CANCELLED)

    if not await transition_status(session, order_id, order["status"], OrderStatus.CANCELLED):
        await session.rollback()
        current = await get_order(session, order_id)
        raise InvalidTransition(current["status"], OrderStatus.CANCELLED.value)

    await restock_lines(session, await get_order_items(session, order_id))
    await session.commit()

    view = await load_order_view(session, order_id)
    logger.info("order.cancelled", extra={"order_number": view["order_number"]})

    if view["payment_intent_id"]:
        await refund_payment(gateway, view["payment_intent_id"], timeout=refund_timeout)
    worker.dispatch(ORDER_CANCELLED, view)
    return view


async def advance_order(session, order_id: int, target: OrderStatus) -> Dict:
    """Administrative forward transitions: processing, shipped, delivered."""
    order = await get_order(session, order_id)
    if order is None:
        raise NotFound("Order", order_id)
    ensure_transition(order["status"], target)

    if not await transition_status(session, order_id, order["status"], target):
        await session.rollback()
        current = await get_order(session, order_id)
        raise InvalidTransition(current["status"], target.value)
    await session.commit()

    logger.info("order.status_changed", extra={
        "order_number": order["order_number"], "from_status": order["status"], "to_status": target.value,
    })
    return await load_order_view(session, order_id)


async def reorder(session, order_id: int, user_id: int) -> Dict:
    """Put the lines of a past order back into the caller's cart.

    Each line is added at min(original quantity, current stock). Lines that cannot
    be added are reported, never fatal.
    """
    order = await get_order(session, order_id)
    if order is None:
        raise NotFound("Order", order_id)
    _ensure_owner(order, user_id)

    identity = OwnedCart(user_id=user_id)
    cart_id = await get_or_create_cart(session, identity)
    items = await get_order_items(session, order_id)
    products = await get_products(session, [it["product_id"] for it in items])

    added_items, unavailable_items = [], []
    for it in items:
        product = products.get(it["product_id"])
        reason = None
        if product is None or not product["is_active"]:
            reason = PRODUCT_UNAVAILABLE
        elif product["stock_qty"] <= 0:
            reason = OUT_OF_STOCK
        else:
            quantity = min(it["quantity"], product["stock_qty"])
            try:
                await add_item(session, identity, it["product_id"], quantity)
            except InsufficientStock:
                reason = INSUFFICIENT_STOCK
            else:
                added_items.append({
                    "product_id": it["product_id"],
                    "product_name": it["product_name"],
                    "requested_quantity": it["quantity"],
                    "added_quantity": quantity,
                })

        if reason:
            unavailable_items.append({"product_id": it["product_id"], "product_name": it["product_name"], "reason": reason})

    logger.info("order.reordered", extra={
        "order_number": order["order_number"], "added": len(added_items), "unavailable": len(unavailable_items),
    })
    return {
        "cart_id": cart_id,
        "added_items": added_items,
        "unavailable_items": unavailable_items,
        "cart": await build_cart_view(session, cart_id),
    }

from typing import Dict
from storefront.cart.constants import logger
from storefront.cart.models import AnonymousCart, CartIdentity, OwnedCart
from storefront.cart.repository import (clear_cart_items, delete_cart_item, delete_carts, expired_cart_ids, find_cart_id,
                                        get_cart_item, get_cart_item_by_id, get_or_create_cart, insert_cart_item,
                                        load_cart_header, load_cart_lines, set_item_quantity, touch_cart)
from storefront.checkout.pricing import compute_subtotal
from storefront.common.custom_exceptions import InsufficientStock, NotFound
from storefront.inventory.repository import get_product, is_available
from storefront.inventory.services import stock_issue


async def build_cart_view(session, cart_id: int) -> Dict:
    header = await load_cart_header(session, cart_id)
    lines = await load_cart_lines(session, cart_id)
    items = [
        {
            "id": ln["id"],
            "product_id": ln["product_id"],
            "product_name": ln["product_name"],
            "quantity": ln["quantity"],
            "price_at_add": ln["price_at_add"],
            "line_total": ln["price_at_add"] * ln["quantity"],
        }
        for ln in lines
    ]
    return {
        "id": cart_id,
        "items": items,
        "item_count": sum(it["quantity"] for it in items),
        "subtotal": compute_subtotal(lines),
        "updated_at": header["updated_at"] if header else None,
        "expires_at": header["expires_at"] if header else None,
    }


async def get_cart(session, identity: CartIdentity) -> Dict:
    cart_id = await get_or_create_cart(session, identity)
    return await build_cart_view(session, cart_id)


async def _require_item(session, identity: CartIdentity, item_id: int):
    cart_id = await find_cart_id(session, identity)
    item = await get_cart_item_by_id(session, cart_id, item_id) if cart_id is not None else None
    if item is None:
        raise NotFound("Cart item", item_id)
    return cart_id, item


async def _ensure_available(session, product: Dict, requested: int) -> None:
    if not await is_available(session, product["id"], requested):
        available = product["stock_qty"] if product["is_active"] else 0
        raise InsufficientStock([stock_issue(product["id"], product["name"], requested, available)])


async def add_item(session, identity: CartIdentity, product_id: int, quantity: int) -> Dict:
    """Add a product or grow an existing line.

    Availability is checked for the resulting line quantity. The line keeps the
    price captured when it was first added.
    """
    product = await get_product(session, product_id)
    if product is None or not product["is_active"]:
        raise NotFound("Product", product_id)

    cart_id = await get_or_create_cart(session, identity)
    existing = await get_cart_item(session, cart_id, product_id)
    requested = quantity + (existing["quantity"] if existing else 0)

    await _ensure_available(session, product, requested)

    if existing:
        await set_item_quantity(session, existing["id"], requested)
    else:
        await insert_cart_item(session, cart_id, product_id, quantity, product["price"])
    await touch_cart(session, cart_id, identity)
    await session.commit()

    logger.info("cart.item_added", extra={"cart_id": cart_id, "product_id": product_id, "quantity": requested})
    return await build_cart_view(session, cart_id)


async def update_item(session, identity: CartIdentity, item_id: int, quantity: int) -> Dict:
    cart_id, item = await _require_item(session, identity, item_id)

    if quantity == 0:
        await delete_cart_item(session, item_id)
    else:
        product = await get_product(session, item["product_id"])
        if product is None:
            raise NotFound("Product", item["product_id"])
        await _ensure_available(session, product, quantity)
        await set_item_quantity(session, item_id, quantity)
    await touch_cart(session, cart_id, identity)
    await session.commit()

    logger.info("cart.item_updated", extra={"cart_id": cart_id, "item_id": item_id, "quantity": quantity})
    return await build_cart_view(session, cart_id)


async def remove_item(session, identity: CartIdentity, item_id: int) -> Dict:
    cart_id, _ = await _require_item(session, identity, item_id)
    await delete_cart_item(session, item_id)
    await touch_cart(session, cart_id, identity)
    await session.commit()

    logger.info("cart.item_removed", extra={"cart_id": cart_id, "item_id": item_id})
    return await build_cart_view(session, cart_id)


async def clear_cart(session, identity: CartIdentity) -> Dict:
    cart_id = await get_or_create_cart(session, identity)
    await clear_cart_items(session, cart_id)
    await touch_cart(session, cart_id, identity)
    await session.commit()

    logger.info("cart.cleared", extra={"cart_id": cart_id})
    return await build_cart_view(session, cart_id)


async def merge_carts(session, guest: AnonymousCart, owner: OwnedCart) -> Dict:
    """Fold the guest cart into the user's cart and delete the guest cart.

    Lines for products already in the user cart are summed, a sum that exceeds
    stock leaves the user's line as it was. Other lines are copied with their
    original price-at-add.
    """
    user_cart_id = await get_or_create_cart(session, owner)
    guest_cart_id = await find_cart_id(session, guest)
    if guest_cart_id is None:
        return await build_cart_view(session, user_cart_id)

    merged, copied, skipped = 0, 0, []
    for line in await load_cart_lines(session, guest_cart_id):
        existing = await get_cart_item(session, user_cart_id, line["product_id"])
        if existing is None:
            await insert_cart_item(session, user_cart_id, line["product_id"], line["quantity"], line["price_at_add"])
            copied += 1
            continue

        combined = existing["quantity"] + line["quantity"]
        if await is_available(session, line["product_id"], combined):
            await set_item_quantity(session, existing["id"], combined)
            merged += 1
        else:
            skipped.append(line["product_id"])

    await delete_carts(session, [guest_cart_id])
    await touch_cart(session, user_cart_id, owner)
    await session.commit()

    logger.info("cart.merged", extra={
        "cart_id": user_cart_id,
        "guest_cart_id": guest_cart_id,
        "copied": copied,
        "merged": merged,
        "skipped_products": skipped,
    })
    return await build_cart_view(session, user_cart_id)


async def cleanup_expired_carts(session) -> int:
    cart_ids = await expired_cart_ids(session)
    await delete_carts(session, cart_ids)
    await session.commit()
    logger.info("cart.expired_swept", extra={"count": len(cart_ids)})
    return len(cart_ids)

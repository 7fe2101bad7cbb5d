from typing import Dict, Iterable, List, Optional
from sqlalchemy import delete, insert, select, update
from sqlalchemy.exc import IntegrityError
from storefront.cart.constants import GUEST_CART_TTL, USER_CART_TTL
from storefront.cart.models import CartIdentity, OwnedCart
from storefront.common.utils import now
from storefront.schema.full_schema import Cart, CartItem, Product


def _owner_clause(identity: CartIdentity):
    if isinstance(identity, OwnedCart):
        return Cart.user_id == identity.user_id
    return Cart.session_id == identity.session_id


def _owner_values(identity: CartIdentity) -> Dict:
    if isinstance(identity, OwnedCart):
        return {"user_id": identity.user_id}
    return {"session_id": identity.session_id}


def cart_ttl(identity: CartIdentity):
    return USER_CART_TTL if isinstance(identity, OwnedCart) else GUEST_CART_TTL


async def find_cart_id(session, identity: CartIdentity) -> Optional[int]:
    stmt = select(Cart.id).where(_owner_clause(identity), Cart.expires_at > now()).limit(1)
    res = await session.execute(stmt)
    return res.scalar_one_or_none()


async def delete_carts(session, cart_ids: Iterable[int]) -> None:
    # items first, sqlite does not cascade unless foreign keys are switched on
    cart_ids = list(cart_ids)
    if not cart_ids:
        return
    await session.execute(delete(CartItem).where(CartItem.cart_id.in_(cart_ids)))
    await session.execute(delete(Cart).where(Cart.id.in_(cart_ids)))


async def _discard_expired_cart(session, identity: CartIdentity) -> None:
    stmt = select(Cart.id).where(_owner_clause(identity), Cart.expires_at <= now())
    res = await session.execute(stmt)
    await delete_carts(session, res.scalars().all())


async def get_or_create_cart(session, identity: CartIdentity) -> int:
    cart_id = await find_cart_id(session, identity)
    if cart_id is not None:
        return cart_id

    # an expired cart still holds the unique owner key
    await _discard_expired_cart(session, identity)

    cart = Cart(**_owner_values(identity), expires_at=now() + cart_ttl(identity))
    session.add(cart)
    try:
        await session.commit()
        return cart.id
    except IntegrityError:
        # concurrent first access created it
        await session.rollback()
        cart_id = await find_cart_id(session, identity)
        if cart_id is None:
            raise
        return cart_id


async def touch_cart(session, cart_id: int, identity: CartIdentity) -> None:
    ts = now()
    stmt = update(Cart).where(Cart.id == cart_id).values(updated_at=ts, expires_at=ts + cart_ttl(identity))
    await session.execute(stmt)


async def get_cart_item(session, cart_id: int, product_id: int) -> Optional[Dict]:
    stmt = select(CartItem.id, CartItem.quantity, CartItem.price_at_add).where(
        CartItem.cart_id == cart_id, CartItem.product_id == product_id)
    res = await session.execute(stmt)
    row = res.one_or_none()
    if not row:
        return None
    return {"id": row[0], "product_id": product_id, "quantity": row[1], "price_at_add": row[2]}


async def get_cart_item_by_id(session, cart_id: int, item_id: int) -> Optional[Dict]:
    stmt = select(CartItem.id, CartItem.product_id, CartItem.quantity, CartItem.price_at_add).where(
        CartItem.id == item_id, CartItem.cart_id == cart_id)
    res = await session.execute(stmt)
    row = res.one_or_none()
    if not row:
        return None
    return {"id": row[0], "product_id": row[1], "quantity": row[2], "price_at_add": row[3]}


async def insert_cart_item(session, cart_id: int, product_id: int, quantity: int, price_at_add: int) -> None:
    stmt = insert(CartItem).values(
        cart_id=cart_id,
        product_id=product_id,
        quantity=quantity,
        price_at_add=price_at_add,
        created_at=now(),
        updated_at=now(),
    )
    await session.execute(stmt)


async def set_item_quantity(session, item_id: int, quantity: int) -> None:
    await session.execute(update(CartItem).where(CartItem.id == item_id).values(quantity=quantity, updated_at=now()))


async def delete_cart_item(session, item_id: int) -> None:
    await session.execute(delete(CartItem).where(CartItem.id == item_id))


async def clear_cart_items(session, cart_id: int) -> None:
    await session.execute(delete(CartItem).where(CartItem.cart_id == cart_id))


async def load_cart_lines(session, cart_id: int) -> List[Dict]:
    """Cart lines joined with the live product fields the checkout needs, oldest first."""
    stmt = (
        select(CartItem.id, CartItem.product_id, Product.name, CartItem.quantity, CartItem.price_at_add,
               Product.stock_qty, Product.is_active)
        .join(Product, Product.id == CartItem.product_id)
        .where(CartItem.cart_id == cart_id)
        .order_by(CartItem.created_at, CartItem.id)
    )
    res = await session.execute(stmt)
    return [
        {
            "id": r[0],
            "product_id": r[1],
            "product_name": r[2],
            "quantity": r[3],
            "price_at_add": r[4],
            "stock_qty": r[5],
            "is_active": r[6],
        }
        for r in res.all()
    ]


async def load_cart_header(session, cart_id: int) -> Optional[Dict]:
    stmt = select(Cart.id, Cart.user_id, Cart.session_id, Cart.updated_at, Cart.expires_at,
                  Cart.payment_intent_id, Cart.quoted_total).where(Cart.id == cart_id)
    res = await session.execute(stmt)
    row = res.one_or_none()
    if not row:
        return None
    return {
        "id": row[0],
        "user_id": row[1],
        "session_id": row[2],
        "updated_at": row[3],
        "expires_at": row[4],
        "payment_intent_id": row[5],
        "quoted_total": row[6],
    }


async def record_payment_quote(session, cart_id: int, payment_intent_id: str, amount: int) -> None:
    stmt = update(Cart).where(Cart.id == cart_id).values(payment_intent_id=payment_intent_id, quoted_total=amount)
    await session.execute(stmt)


async def expired_cart_ids(session) -> List[int]:
    res = await session.execute(select(Cart.id).where(Cart.expires_at <= now()))
    return list(res.scalars().all())

from typing import Dict, Iterable, List, Optional, Tuple
from sqlalchemy import func, select, update
from storefront.common.utils import now
from storefront.orders.constants import STATUS_TIMESTAMPS
from storefront.schema.full_schema import OrderItem, Orders, OrderStatus


async def insert_order(session, order_values: Dict, lines: Iterable[Dict]) -> int:
    """Stage the order row and its item snapshots, flushing so constraint violations surface here."""
    order = Orders(**order_values)
    session.add(order)
    await session.flush()

    for ln in lines:
        session.add(OrderItem(
            order_id=order.id,
            product_id=ln["product_id"],
            product_name=ln["product_name"],
            unit_price=ln["price_at_add"],
            quantity=ln["quantity"],
            line_total=ln["price_at_add"] * ln["quantity"],
        ))
    await session.flush()
    return order.id


async def get_order(session, order_id: int) -> Optional[Dict]:
    res = await session.execute(select(Orders).where(Orders.id == order_id).execution_options(populate_existing=True))
    order = res.scalar_one_or_none()
    return order.model_dump() if order else None


async def find_order_by_intent(session, payment_intent_id: str) -> Optional[Dict]:
    res = await session.execute(
        select(Orders).where(Orders.payment_intent_id == payment_intent_id).execution_options(populate_existing=True))
    order = res.scalar_one_or_none()
    return order.model_dump() if order else None


async def get_order_items(session, order_id: int) -> List[Dict]:
    stmt = (
        select(OrderItem.product_id, OrderItem.product_name, OrderItem.unit_price, OrderItem.quantity, OrderItem.line_total)
        .where(OrderItem.order_id == order_id)
        .order_by(OrderItem.id)
    )
    res = await session.execute(stmt)
    return [
        {"product_id": r[0], "product_name": r[1], "unit_price": r[2], "quantity": r[3], "line_total": r[4]}
        for r in res.all()
    ]


async def list_orders_for_user(session, user_id: int, page: int, limit: int,
                               status: Optional[OrderStatus] = None) -> Tuple[List[Dict], int]:
    filters = [Orders.user_id == user_id]
    if status is not None:
        filters.append(Orders.status == status.value)

    total = (await session.execute(select(func.count(Orders.id)).where(*filters))).scalar_one()

    stmt = (
        select(Orders)
        .where(*filters)
        .order_by(Orders.placed_at.desc(), Orders.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    res = await session.execute(stmt)
    return [o.model_dump() for o in res.scalars().all()], total


async def transition_status(session, order_id: int, from_status: str, to_status: OrderStatus) -> bool:
    # compare-and-set on the current status, a concurrent transition makes this match nothing
    ts = now()
    values = {"status": to_status.value, "updated_at": ts, STATUS_TIMESTAMPS[to_status]: ts}
    stmt = update(Orders).where(Orders.id == order_id, Orders.status == from_status).values(**values)
    res = await session.execute(stmt)
    return res.rowcount == 1

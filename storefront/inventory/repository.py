from typing import Dict, Iterable, Optional
from sqlalchemy import select, update
from storefront.common.utils import now
from storefront.schema.full_schema import Product


def _product_row(row) -> Dict:
    return {"id": row[0], "name": row[1], "price": row[2], "stock_qty": row[3], "is_active": row[4]}


async def get_product(session, product_id: int) -> Optional[Dict]:
    stmt = select(Product.id, Product.name, Product.price, Product.stock_qty, Product.is_active).where(Product.id == product_id)
    res = await session.execute(stmt)
    row = res.one_or_none()
    return _product_row(row) if row else None


async def get_products(session, product_ids: Iterable[int]) -> Dict[int, Dict]:
    ids = list(set(product_ids))
    if not ids:
        return {}
    stmt = select(Product.id, Product.name, Product.price, Product.stock_qty, Product.is_active).where(Product.id.in_(ids))
    res = await session.execute(stmt)
    return {row[0]: _product_row(row) for row in res.all()}


async def is_available(session, product_id: int, quantity: int) -> bool:
    stmt = select(Product.stock_qty).where(Product.id == product_id, Product.is_active.is_(True))
    res = await session.execute(stmt)
    stock_qty = res.scalar_one_or_none()
    return stock_qty is not None and stock_qty >= quantity


async def adjust_stock(session, product_id: int, delta: int) -> bool:
    """Apply a signed stock change in one conditional statement.

    The row only matches while the result stays non-negative, so two concurrent
    decrements can never both take the last units. Returns False when nothing changed.
    """
    stmt = (
        update(Product)
        .where(Product.id == product_id, Product.stock_qty + delta >= 0)
        .values(stock_qty=Product.stock_qty + delta, updated_at=now())
    )
    res = await session.execute(stmt)
    return res.rowcount == 1

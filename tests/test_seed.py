import pytest
from sqlalchemy import func, select
from storefront.schema.full_schema import Product, PromoCode
from storefront.seed_scripts.seed_catalog import SEED_PRODUCTS, SEED_PROMOS, seed_catalog


@pytest.mark.asyncio
async def test_seed_is_idempotent(session_factory, db_scalar):
    async with session_factory() as session:
        first = await seed_catalog(session)
    async with session_factory() as session:
        second = await seed_catalog(session)

    assert first == {"products": len(SEED_PRODUCTS), "promos": len(SEED_PROMOS)}
    assert second == {"products": 0, "promos": 0}
    assert await db_scalar(select(func.count(Product.id))) == len(SEED_PRODUCTS)
    assert await db_scalar(select(func.count(PromoCode.id))) == len(SEED_PROMOS)

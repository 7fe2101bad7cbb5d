"""Seed a development database with sample products and the launch promo codes.

    python -m storefront.seed_scripts.seed_catalog
"""
import asyncio
from datetime import timedelta
from dotenv import load_dotenv
from sqlalchemy import select
from sqlmodel import SQLModel
from storefront.common.logging_setup import get_logger, setup_logging, shutdown_logging
from storefront.common.utils import now
from storefront.db.connection import async_engine, async_session
from storefront.schema.full_schema import DiscountType, Product, PromoCode

load_dotenv()

logger = get_logger("storefront.seed")

SEED_PRODUCTS = [
    {"name": "Grain-Free Salmon Dog Food 12lb", "price": 4599, "stock_qty": 40},
    {"name": "Catnip Mouse Toy 3-Pack", "price": 899, "stock_qty": 120},
    {"name": "Orthopedic Pet Bed Large", "price": 7950, "stock_qty": 15},
    {"name": "Stainless Steel Water Bowl", "price": 1299, "stock_qty": 80},
    {"name": "Clumping Cat Litter 20lb", "price": 1849, "stock_qty": 60},
]

SEED_PROMOS = [
    {"code": "WELCOME10", "discount_type": DiscountType.PERCENTAGE.value, "discount_value": 10,
     "min_order_value": 3000, "max_uses": 1000},
    {"code": "FREESHIP50", "discount_type": DiscountType.FIXED.value, "discount_value": 599,
     "min_order_value": 5000, "max_uses": None},
    {"code": "SAVE20", "discount_type": DiscountType.FIXED.value, "discount_value": 2000,
     "min_order_value": 10000, "max_uses": 500},
]


async def seed_catalog(session) -> dict:
    """Insert whatever seed rows are missing. Safe to run repeatedly."""
    created = {"products": 0, "promos": 0}
    starts_at = now()

    for prod in SEED_PRODUCTS:
        exists = (await session.execute(select(Product.id).where(Product.name == prod["name"]))).scalar_one_or_none()
        if exists is None:
            session.add(Product(**prod))
            created["products"] += 1

    for promo in SEED_PROMOS:
        exists = (await session.execute(select(PromoCode.id).where(PromoCode.code == promo["code"]))).scalar_one_or_none()
        if exists is None:
            session.add(PromoCode(**promo, starts_at=starts_at, expires_at=starts_at + timedelta(days=365)))
            created["promos"] += 1

    await session.commit()
    logger.info("seed.completed", extra=created)
    return created


async def main():
    setup_logging()
    try:
        async with async_engine.begin() as conn:
            await conn.run_sync(SQLModel.metadata.create_all)
        async with async_session() as session:
            await seed_catalog(session)
    finally:
        await async_engine.dispose()
        shutdown_logging()


if __name__ == "__main__":
    asyncio.run(main())

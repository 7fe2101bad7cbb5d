from typing import Dict, Optional
from sqlalchemy import or_, select, update
from storefront.schema.full_schema import PromoCode


async def find_promo_by_code(session, code: str) -> Optional[Dict]:
    stmt = select(PromoCode).where(PromoCode.code == code)
    res = await session.execute(stmt)
    promo = res.scalar_one_or_none()
    if promo is None:
        return None
    return promo.model_dump()


async def increment_usage(session, promo_id: int) -> bool:
    # guarded by the cap so a concurrent confirmation cannot push usage past max_uses
    stmt = (
        update(PromoCode)
        .where(
            PromoCode.id == promo_id,
            or_(PromoCode.max_uses.is_(None), PromoCode.usage_count < PromoCode.max_uses),
        )
        .values(usage_count=PromoCode.usage_count + 1)
    )
    res = await session.execute(stmt)
    return res.rowcount == 1

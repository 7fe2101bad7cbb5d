from datetime import datetime
from typing import Dict, Optional
from storefront.common.custom_exceptions import InvalidPromoCode
from storefront.common.utils import as_utc, now
from storefront.promos.constants import REJECTION_MESSAGES, PromoRejection, logger
from storefront.promos.repository import find_promo_by_code, increment_usage


def normalize_code(code: str) -> str:
    return code.strip().upper()


def _reject(reason: PromoRejection) -> InvalidPromoCode:
    return InvalidPromoCode(reason.value, REJECTION_MESSAGES[reason])


async def validate_promo_code(session, code: str) -> Dict:
    promo = await find_promo_by_code(session, normalize_code(code))
    if promo is None:
        raise _reject(PromoRejection.NOT_FOUND)
    return promo


def check_eligibility(promo: Dict, subtotal: int, at: Optional[datetime] = None) -> None:
    """Raise InvalidPromoCode with the first failing reason.

    Order: active flag, validity window, usage cap, minimum order value.
    """
    at = at or now()
    if not promo["is_active"]:
        raise _reject(PromoRejection.INACTIVE)

    starts_at = as_utc(promo.get("starts_at"))
    if starts_at is not None and at < starts_at:
        raise _reject(PromoRejection.NOT_STARTED)
    expires_at = as_utc(promo.get("expires_at"))
    if expires_at is not None and at > expires_at:
        raise _reject(PromoRejection.EXPIRED)

    if promo["max_uses"] is not None and promo["usage_count"] >= promo["max_uses"]:
        raise _reject(PromoRejection.EXHAUSTED)

    if promo["min_order_value"] is not None and subtotal < promo["min_order_value"]:
        raise _reject(PromoRejection.BELOW_MINIMUM)


async def resolve_promo(session, code: str, subtotal: int) -> Dict:
    """Look up and check a code for a quote. Never touches usage_count."""
    promo = await validate_promo_code(session, code)
    try:
        check_eligibility(promo, subtotal)
    except InvalidPromoCode as exc:
        logger.info("promo.rejected", extra={"promo_code": promo["code"], "reason": exc.reason})
        raise
    return promo


async def record_promo_usage(session, promo: Dict) -> None:
    """Consume one use. Only order creation calls this, inside its transaction."""
    if not await increment_usage(session, promo["id"]):
        raise _reject(PromoRejection.EXHAUSTED)
    logger.info("promo.usage_recorded", extra={"promo_code": promo["code"]})

import random
import time
from datetime import datetime, timedelta
from typing import Optional
from storefront.common.custom_exceptions import InvalidTransition
from storefront.common.utils import now
from storefront.orders.constants import ALLOWED_TRANSITIONS, ORDER_NUMBER_PREFIX
from storefront.schema.full_schema import OrderStatus


def generate_order_number(at: Optional[datetime] = None) -> str:
    """IP-<year>-<3 random digits><last 3 digits of the epoch ms clock>, e.g. IP-2026-482917.

    Not collision free on its own, the unique constraint on orders.order_number is the guarantee.
    """
    at = at or now()
    random_part = random.randint(100, 999)
    millis_part = int(time.time() * 1000) % 1000
    return f"{ORDER_NUMBER_PREFIX}-{at.year}-{random_part}{millis_part:03d}"


def ensure_transition(current: str, target: OrderStatus) -> None:
    if target not in ALLOWED_TRANSITIONS[OrderStatus(current)]:
        raise InvalidTransition(current, target.value)


def estimated_delivery(placed_at: datetime, delivery_days: int) -> datetime:
    return placed_at + timedelta(days=delivery_days)

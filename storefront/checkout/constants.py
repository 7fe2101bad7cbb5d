from dataclasses import dataclass
from decimal import Decimal
from typing import Optional
from storefront.common.logging_setup import get_logger

logger = get_logger("storefront.checkout")

# flat placeholder rate, applied to subtotal minus discount
TAX_RATE = Decimal("0.08")


@dataclass(frozen=True)
class ShippingOption:
    id: str
    name: str
    price: int                      # cents
    description: str
    estimated_days: str
    delivery_days: int              # used for the estimated delivery date on confirmation
    free_threshold: Optional[int] = None   # cents, subtotal at which shipping becomes free


SHIPPING_OPTIONS = {
    "standard": ShippingOption(
        id="standard",
        name="Standard Shipping",
        price=599,
        description="5-7 business days",
        estimated_days="5-7",
        delivery_days=7,
        free_threshold=5000,
    ),
    "expedited": ShippingOption(
        id="expedited",
        name="Expedited Shipping",
        price=1299,
        description="2-3 business days",
        estimated_days="2-3",
        delivery_days=3,
    ),
}

import enum
from storefront.common.logging_setup import get_logger

logger = get_logger("storefront.promos")


class PromoRejection(str, enum.Enum):
    NOT_FOUND = "not_found"
    INACTIVE = "inactive"
    NOT_STARTED = "not_started"
    EXPIRED = "expired"
    EXHAUSTED = "exhausted"
    BELOW_MINIMUM = "below_minimum"


REJECTION_MESSAGES = {
    PromoRejection.NOT_FOUND: "Promo code not found",
    PromoRejection.INACTIVE: "Promo code is no longer active",
    PromoRejection.NOT_STARTED: "Promo code is not valid yet",
    PromoRejection.EXPIRED: "Promo code has expired",
    PromoRejection.EXHAUSTED: "Promo code has reached its usage limit",
    PromoRejection.BELOW_MINIMUM: "Order does not meet the promo code minimum",
}

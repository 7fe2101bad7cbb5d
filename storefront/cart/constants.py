from datetime import timedelta
from storefront.common.logging_setup import get_logger

logger = get_logger("storefront.cart")

GUEST_CART_TTL = timedelta(days=7)
USER_CART_TTL = timedelta(days=30)

MAX_ITEM_QTY = 99

from storefront.common.logging_setup import get_logger

logger = get_logger("storefront.notifications")

ORDER_CONFIRMATION = "order_confirmation"
ORDER_CANCELLED = "order_cancelled"

from storefront.common.logging_setup import get_logger
from storefront.schema.full_schema import OrderStatus

logger = get_logger("storefront.orders")

ORDER_NUMBER_PREFIX = "IP"

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 50

# status -> statuses it may move to, delivered and cancelled are terminal
ALLOWED_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.PROCESSING, OrderStatus.SHIPPED, OrderStatus.DELIVERED, OrderStatus.CANCELLED},
    OrderStatus.PROCESSING: {OrderStatus.SHIPPED, OrderStatus.DELIVERED, OrderStatus.CANCELLED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED},
    OrderStatus.DELIVERED: set(),
    OrderStatus.CANCELLED: set(),
}

# timestamp column stamped when an order enters the status
STATUS_TIMESTAMPS = {
    OrderStatus.PROCESSING: "processing_at",
    OrderStatus.SHIPPED: "shipped_at",
    OrderStatus.DELIVERED: "delivered_at",
    OrderStatus.CANCELLED: "cancelled_at",
}

PRODUCT_UNAVAILABLE = "Product no longer available"
OUT_OF_STOCK = "Out of stock"
INSUFFICIENT_STOCK = "Insufficient stock"

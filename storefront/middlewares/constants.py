from storefront.common.logging_setup import get_logger

logger = get_logger("storefront.middlewares")

SESSION_COOKIE_NAME = "session_token"
SESSION_HEADER_NAME = "X-Session-Token"

from abc import ABC, abstractmethod
from typing import Any, Dict
from storefront.notifications.constants import logger


class Notifier(ABC):
    """Customer notifications. Callers never consume a result."""

    @abstractmethod
    async def send_order_confirmation(self, order: Dict[str, Any]) -> None:
        ...

    @abstractmethod
    async def send_cancellation_notice(self, order: Dict[str, Any]) -> None:
        ...


class LoggingNotifier(Notifier):
    """Default notifier: records the email that would go out in the service log."""

    async def send_order_confirmation(self, order: Dict[str, Any]) -> None:
        logger.info("email.order_confirmation", extra={
            "email": order.get("email"),
            "order_number": order.get("order_number"),
            "total": order.get("total"),
            "estimated_delivery": order.get("estimated_delivery"),
            "item_count": len(order.get("items") or []),
        })

    async def send_cancellation_notice(self, order: Dict[str, Any]) -> None:
        logger.info("email.order_cancelled", extra={
            "email": order.get("email"),
            "order_number": order.get("order_number"),
        })

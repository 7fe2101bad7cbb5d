from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, Optional


class PaymentGatewayError(Exception):
    """The gateway answered, but refused or could not process the request."""


@dataclass(frozen=True)
class PaymentIntent:
    id: str
    client_secret: str
    amount: int
    currency: str
    metadata: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class RefundResult:
    success: bool
    refund_id: Optional[str] = None
    error: Optional[str] = None


class PaymentGateway(ABC):
    """Port for the external payment processor. Amounts are integer minor units."""

    @abstractmethod
    async def create_payment_intent(self, amount_minor: int, currency: str, metadata: Dict[str, str],
                                    idempotency_key: Optional[str] = None) -> PaymentIntent:
        ...

    @abstractmethod
    async def refund(self, intent_id: str) -> RefundResult:
        ...

    async def aclose(self) -> None:
        return None

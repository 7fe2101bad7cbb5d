import uuid
from typing import Dict, List, Optional
from storefront.payments.gateway import PaymentGateway, PaymentGatewayError, PaymentIntent, RefundResult


class FakePaymentGateway(PaymentGateway):
    """In-memory gateway for local development and tests.

    Every call is recorded in `calls`, `configure()` switches failure modes.
    """

    def __init__(self, fail_intents: bool = False, fail_refunds: bool = False):
        self.fail_intents = fail_intents
        self.fail_refunds = fail_refunds
        self.intents: Dict[str, PaymentIntent] = {}
        self.refunds: List[str] = []
        self.calls: List[Dict] = []

    def configure(self, *, fail_intents: Optional[bool] = None, fail_refunds: Optional[bool] = None) -> None:
        if fail_intents is not None:
            self.fail_intents = fail_intents
        if fail_refunds is not None:
            self.fail_refunds = fail_refunds

    async def create_payment_intent(self, amount_minor, currency, metadata, idempotency_key=None) -> PaymentIntent:
        self.calls.append({"op": "create_payment_intent", "amount": amount_minor, "currency": currency,
                           "metadata": dict(metadata)})
        if self.fail_intents:
            raise PaymentGatewayError("card_declined")
        token = uuid.uuid4().hex
        intent = PaymentIntent(
            id=f"pi_fake_{token[:16]}",
            client_secret=f"pi_fake_{token[:16]}_secret_{token[16:]}",
            amount=amount_minor,
            currency=currency,
            metadata=dict(metadata),
        )
        self.intents[intent.id] = intent
        return intent

    async def refund(self, intent_id: str) -> RefundResult:
        self.calls.append({"op": "refund", "intent_id": intent_id})
        if self.fail_refunds:
            raise PaymentGatewayError("refund_unavailable")
        self.refunds.append(intent_id)
        return RefundResult(success=True, refund_id=f"re_fake_{uuid.uuid4().hex[:16]}")

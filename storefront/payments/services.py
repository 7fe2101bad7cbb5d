import asyncio
from typing import Dict, Optional
import httpx
from storefront.common.circuit_breaker import CircuitOpenError
from storefront.common.custom_exceptions import PaymentFailed
from storefront.payments.constants import logger
from storefront.payments.gateway import PaymentGateway, PaymentGatewayError, PaymentIntent


async def create_intent(gateway: PaymentGateway, amount_minor: int, currency: str, metadata: Dict[str, str], *,
                        timeout: float, idempotency_key: Optional[str] = None) -> PaymentIntent:
    """Create a payment intent for an already computed total in cents.

    Any gateway failure, including a timeout or an open circuit, surfaces as PaymentFailed.
    """
    if amount_minor <= 0:
        raise PaymentFailed("Payment amount must be positive", amount=amount_minor)

    try:
        intent = await asyncio.wait_for(
            gateway.create_payment_intent(amount_minor, currency, metadata, idempotency_key=idempotency_key),
            timeout=timeout,
        )
    except asyncio.TimeoutError:
        logger.warning("payment.intent_timeout", extra={"amount": amount_minor, "timeout": timeout})
        raise PaymentFailed("Payment provider timed out")
    except CircuitOpenError:
        logger.warning("payment.intent_circuit_open", extra={"amount": amount_minor})
        raise PaymentFailed("Payment provider unavailable")
    except (PaymentGatewayError, httpx.HTTPError) as exc:
        logger.warning("payment.intent_failed", extra={"amount": amount_minor, "reason": str(exc)})
        raise PaymentFailed("Payment provider rejected the payment", reason=str(exc))

    logger.info("payment.intent_created", extra={"payment_intent_id": intent.id, "amount": amount_minor})
    return intent


async def refund_payment(gateway: PaymentGateway, intent_id: str, *, timeout: float) -> bool:
    """Best-effort refund. Failures are logged for out-of-band reconciliation, never raised."""
    try:
        result = await asyncio.wait_for(gateway.refund(intent_id), timeout=timeout)
    except asyncio.TimeoutError:
        logger.error("payment.refund_timeout", extra={"payment_intent_id": intent_id, "timeout": timeout})
        return False
    except Exception:
        logger.exception("payment.refund_failed", extra={"payment_intent_id": intent_id})
        return False

    if not result.success:
        logger.error("payment.refund_rejected", extra={"payment_intent_id": intent_id, "reason": result.error})
        return False
    logger.info("payment.refund_issued", extra={"payment_intent_id": intent_id, "refund_id": result.refund_id})
    return True

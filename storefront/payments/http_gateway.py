from typing import Any, Dict, Optional
import httpx
from storefront.common.circuit_breaker import CircuitBreaker
from storefront.common.retries import is_transient_http_error, retry_async
from storefront.payments.constants import logger
from storefront.payments.gateway import PaymentGateway, PaymentGatewayError, PaymentIntent, RefundResult


class HttpPaymentGateway(PaymentGateway):
    """Talks to a Stripe-style REST gateway.

    Transient network errors and 5xx answers are retried with backoff behind a circuit
    breaker, 4xx answers fail immediately. Each request is bounded by `timeout`.
    """

    def __init__(self, base_url: str, key_id: str, key_secret: str, *,
                 timeout: float = 10.0, max_retries: int = 3, backoff_base: float = 0.5,
                 transport: Optional[httpx.AsyncBaseTransport] = None,
                 circuit: Optional[CircuitBreaker] = None):
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            auth=(key_id, key_secret),
            transport=transport,
        )
        self.circuit = circuit or CircuitBreaker(name="payment_gateway", failure_threshold=5, recovery_timeout=30.0)
        self._post_with_retry = retry_async(
            attempts=max_retries,
            base_delay=backoff_base,
            if_retryable=is_transient_http_error,
            circuit=self.circuit,
        )(self._post)

    async def _post(self, path: str, payload: Dict[str, Any], idempotency_key: Optional[str] = None) -> Dict[str, Any]:
        headers = {"Content-Type": "application/json"}
        if idempotency_key:
            headers["Idempotency-Key"] = str(idempotency_key)
        resp = await self._client.post(path, json=payload, headers=headers)
        resp.raise_for_status()
        return resp.json()

    async def _call(self, path: str, payload: Dict[str, Any], idempotency_key: Optional[str] = None) -> Dict[str, Any]:
        try:
            return await self._post_with_retry(path, payload, idempotency_key)
        except httpx.HTTPStatusError as ex:
            logger.warning("gateway.http_error", extra={
                "path": path,
                "http_status": ex.response.status_code,
                "body": ex.response.text[:500],
            })
            raise PaymentGatewayError(f"gateway answered {ex.response.status_code}") from ex

    async def create_payment_intent(self, amount_minor, currency, metadata, idempotency_key=None) -> PaymentIntent:
        payload = {"amount": amount_minor, "currency": currency, "metadata": metadata or {}}
        data = await self._call("/payment_intents", payload, idempotency_key)
        intent_id, client_secret = data.get("id"), data.get("client_secret")
        if not intent_id or not client_secret:
            raise PaymentGatewayError("gateway response carried no intent id")
        return PaymentIntent(
            id=intent_id,
            client_secret=client_secret,
            amount=int(data.get("amount", amount_minor)),
            currency=data.get("currency", currency),
            metadata=dict(data.get("metadata") or metadata or {}),
        )

    async def refund(self, intent_id: str) -> RefundResult:
        data = await self._call("/refunds", {"payment_intent": intent_id}, idempotency_key=f"refund-{intent_id}")
        succeeded = data.get("status") in ("succeeded", "pending")
        return RefundResult(success=succeeded, refund_id=data.get("id"),
                            error=None if succeeded else data.get("failure_reason") or data.get("status"))

    async def aclose(self) -> None:
        await self._client.aclose()

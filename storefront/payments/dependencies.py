from fastapi import Request
from storefront.config.settings import Settings
from storefront.payments.fake_gateway import FakePaymentGateway
from storefront.payments.gateway import PaymentGateway
from storefront.payments.http_gateway import HttpPaymentGateway


def build_payment_gateway(settings: Settings) -> PaymentGateway:
    if settings.PAYMENT_GATEWAY == "http":
        return HttpPaymentGateway(
            settings.PAYMENT_GATEWAY_URL,
            settings.PAYMENT_GATEWAY_KEY,
            settings.PAYMENT_GATEWAY_SECRET,
            timeout=settings.GATEWAY_TIMEOUT_SECONDS,
            max_retries=settings.GATEWAY_MAX_RETRIES,
            backoff_base=settings.GATEWAY_BACKOFF_BASE,
        )
    if settings.PAYMENT_GATEWAY == "fake":
        return FakePaymentGateway()
    raise ValueError(f"Unknown PAYMENT_GATEWAY '{settings.PAYMENT_GATEWAY}'")


def get_payment_gateway(request: Request) -> PaymentGateway:
    return request.app.state.payment_gateway

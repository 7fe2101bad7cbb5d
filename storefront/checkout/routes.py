from typing import Optional
from fastapi import APIRouter, Body, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from storefront.cart.dependencies import get_cart_identity
from storefront.cart.models import CartIdentity
from storefront.checkout.models import ApplyPromoIn, CreatePaymentIn, ShippingRatesIn
from storefront.checkout.services import apply_promo, create_payment, get_shipping_rates, validate_checkout
from storefront.common.utils import success_response
from storefront.config.settings import config_settings
from storefront.db.dependencies import get_session
from storefront.notifications.dependencies import get_notification_worker
from storefront.notifications.worker import NotificationWorker
from storefront.orders.models import ConfirmOrderIn
from storefront.orders.services import confirm_order
from storefront.payments.dependencies import get_payment_gateway
from storefront.payments.gateway import PaymentGateway

checkout_router=APIRouter()


# the address is accepted for forward compatibility, rates are flat per option today
@checkout_router.post("/shipping-rates")
async def shipping_rates(payload:Optional[ShippingRatesIn]=Body(default=None),
                         identity:CartIdentity=Depends(get_cart_identity),session:AsyncSession=Depends(get_session)):
    res = await get_shipping_rates(session, identity)
    return success_response(res)


@checkout_router.post("/validate")
async def validate(identity:CartIdentity=Depends(get_cart_identity),session:AsyncSession=Depends(get_session)):
    res = await validate_checkout(session, identity)
    return success_response(res)


@checkout_router.post("/apply-promo")
async def apply_promo_code(payload:ApplyPromoIn,identity:CartIdentity=Depends(get_cart_identity),
                           session:AsyncSession=Depends(get_session)):
    res = await apply_promo(session, identity, payload.code)
    return success_response(res)


@checkout_router.post("/create-payment")
async def create_payment_intent(payload:CreatePaymentIn,identity:CartIdentity=Depends(get_cart_identity),
                                gateway:PaymentGateway=Depends(get_payment_gateway),
                                session:AsyncSession=Depends(get_session)):
    res = await create_payment(session, identity, gateway, payload.shipping_method, payload.promo_code,
                               currency=config_settings.PAYMENT_CURRENCY,
                               timeout=config_settings.GATEWAY_TIMEOUT_SECONDS)
    return success_response(res, status_code=status.HTTP_201_CREATED)


# client calls this after the gateway reports the payment as confirmed
@checkout_router.post("/confirm")
async def confirm(request:Request,payload:ConfirmOrderIn,identity:CartIdentity=Depends(get_cart_identity),
                  worker:NotificationWorker=Depends(get_notification_worker),
                  session:AsyncSession=Depends(get_session)):
    user_id = getattr(request.state, "user_identifier", None)
    user_email = getattr(request.state, "user_email", None)

    order, created = await confirm_order(session, identity, user_id, user_email, payload, worker,
                                         currency=config_settings.PAYMENT_CURRENCY,
                                         max_attempts=config_settings.ORDER_NUMBER_MAX_ATTEMPTS)
    return success_response({"order": order, "created": created},
                            status_code=status.HTTP_201_CREATED if created else status.HTTP_200_OK)

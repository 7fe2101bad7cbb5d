from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from storefront.common.dependencies import require_user
from storefront.common.utils import success_response
from storefront.config.settings import config_settings
from storefront.db.dependencies import get_session
from storefront.notifications.dependencies import get_notification_worker
from storefront.notifications.worker import NotificationWorker
from storefront.orders.constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from storefront.orders.services import advance_order, cancel_order, get_user_order, list_user_orders, reorder
from storefront.payments.dependencies import get_payment_gateway
from storefront.payments.gateway import PaymentGateway
from storefront.schema.full_schema import OrderStatus

orders_router=APIRouter()
orders_admin_router=APIRouter()


@orders_router.get("")
async def list_orders(page:int=Query(1, ge=1),limit:int=Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
                      order_status:Optional[OrderStatus]=Query(None, alias="status"),
                      user_id:int=Depends(require_user),session:AsyncSession=Depends(get_session)):
    res = await list_user_orders(session, user_id, page, limit, order_status)
    return success_response(res)


@orders_router.get("/{order_id}")
async def read_order(order_id:int,user_id:int=Depends(require_user),session:AsyncSession=Depends(get_session)):
    order = await get_user_order(session, order_id, user_id)
    return success_response({"order": order})


@orders_router.post("/{order_id}/cancel")
async def cancel(order_id:int,user_id:int=Depends(require_user),
                 gateway:PaymentGateway=Depends(get_payment_gateway),
                 worker:NotificationWorker=Depends(get_notification_worker),
                 session:AsyncSession=Depends(get_session)):
    order = await cancel_order(session, order_id, user_id, gateway, worker,
                               refund_timeout=config_settings.GATEWAY_TIMEOUT_SECONDS)
    return success_response({"order": order})


@orders_router.post("/{order_id}/reorder")
async def reorder_items(order_id:int,user_id:int=Depends(require_user),session:AsyncSession=Depends(get_session)):
    res = await reorder(session, order_id, user_id)
    return success_response(res)

#--------------------------------------------------------------------------------------------------------

@orders_admin_router.post("/{order_id}/process")
async def mark_processing(order_id:int,session:AsyncSession=Depends(get_session)):
    order = await advance_order(session, order_id, OrderStatus.PROCESSING)
    return success_response({"order": order})


@orders_admin_router.post("/{order_id}/ship")
async def mark_shipped(order_id:int,session:AsyncSession=Depends(get_session)):
    order = await advance_order(session, order_id, OrderStatus.SHIPPED)
    return success_response({"order": order})


@orders_admin_router.post("/{order_id}/deliver")
async def mark_delivered(order_id:int,session:AsyncSession=Depends(get_session)):
    order = await advance_order(session, order_id, OrderStatus.DELIVERED)
    return success_response({"order": order})

from typing import Optional
from fastapi import APIRouter, Body, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.cart.dependencies import get_cart_identity
from storefront.cart.models import AnonymousCart, CartIdentity, CartItemInput, CartItemUpdate, CartMergeInput, OwnedCart
from storefront.cart.services import add_item, clear_cart, cleanup_expired_carts, get_cart, merge_carts, remove_item, update_item
from storefront.common.dependencies import require_user
from storefront.common.utils import success_response
from storefront.db.dependencies import get_session

carts_router=APIRouter()
carts_admin_router=APIRouter()


@carts_router.get("")
async def read_cart(identity:CartIdentity=Depends(get_cart_identity),session:AsyncSession=Depends(get_session)):
    cart = await get_cart(session, identity)
    return success_response({"cart": cart})


@carts_router.post("/items")
async def add_to_cart(payload:CartItemInput,identity:CartIdentity=Depends(get_cart_identity),
                      session:AsyncSession=Depends(get_session)):
    cart = await add_item(session, identity, payload.product_id, payload.quantity)
    return success_response({"cart": cart}, status_code=status.HTTP_201_CREATED)


@carts_router.put("/items/{item_id}")
async def update_cart_item(item_id:int,payload:CartItemUpdate,identity:CartIdentity=Depends(get_cart_identity),
                           session:AsyncSession=Depends(get_session)):
    cart = await update_item(session, identity, item_id, payload.quantity)
    return success_response({"cart": cart})


@carts_router.delete("/items/{item_id}")
async def delete_cart_item(item_id:int,identity:CartIdentity=Depends(get_cart_identity),
                           session:AsyncSession=Depends(get_session)):
    cart = await remove_item(session, identity, item_id)
    return success_response({"cart": cart})


@carts_router.delete("")
async def empty_cart(identity:CartIdentity=Depends(get_cart_identity),session:AsyncSession=Depends(get_session)):
    cart = await clear_cart(session, identity)
    return success_response({"cart": cart})


# called right after login, the guest session id comes from the body or the session token still on the client
@carts_router.post("/merge")
async def merge_guest_cart(request:Request,payload:Optional[CartMergeInput]=Body(default=None),
                           user_id:int=Depends(require_user),session:AsyncSession=Depends(get_session)):
    guest_sid = (payload.guest_session_id if payload else None) or getattr(request.state, "sid", None)
    if not guest_sid:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="guest_session_id is required")

    cart = await merge_carts(session, AnonymousCart(session_id=guest_sid), OwnedCart(user_id=user_id))
    return success_response({"cart": cart})

#--------------------------------------------------------------------------------------------------------

@carts_admin_router.post("/cleanup")
async def sweep_expired_carts(session:AsyncSession=Depends(get_session)):
    removed = await cleanup_expired_carts(session)
    return success_response({"removed_carts": removed})

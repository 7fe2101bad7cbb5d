from fastapi import APIRouter, Depends
from storefront.api import version_prefix
from storefront.cart.routes import carts_router, carts_admin_router
from storefront.checkout.routes import checkout_router
from storefront.common.dependencies import require_admin
from storefront.common.routes import home_router
from storefront.orders.routes import orders_router, orders_admin_router


public_routers = APIRouter(prefix=version_prefix)

public_routers.include_router(carts_router,prefix="/cart",tags=["cart"])
public_routers.include_router(checkout_router,prefix="/checkout",tags=["checkout"])
public_routers.include_router(orders_router,prefix="/orders",tags=["orders"])
public_routers.include_router(home_router,tags=["home"])

#--------------------------------------------------------------------------------------------------------

admin_routers = APIRouter(prefix=f"{version_prefix}/admin", dependencies=[Depends(require_admin)])

admin_routers.include_router(orders_admin_router, prefix="/orders",tags=["orders-admin"])
admin_routers.include_router(carts_admin_router, prefix="/carts",tags=["carts-admin"])

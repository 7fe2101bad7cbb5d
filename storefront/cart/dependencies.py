from fastapi import HTTPException, Request, status
from storefront.cart.models import AnonymousCart, CartIdentity, OwnedCart


def get_cart_identity(request: Request) -> CartIdentity:
    """Authenticated callers use their user cart, everyone else the session cart."""
    user_id = getattr(request.state, "user_identifier", None)
    if user_id is not None:
        return OwnedCart(user_id=user_id)

    sid = getattr(request.state, "sid", None)
    if sid:
        return AnonymousCart(session_id=sid)

    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="A session token or login is required to use a cart")

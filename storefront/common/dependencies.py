from fastapi import HTTPException, Request, status
from storefront.config.admin_config import admin_config


def require_user(request: Request) -> int:
    user_id = getattr(request.state, "user_identifier", None)
    if user_id is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")
    return user_id


def require_admin(request: Request) -> int:
    user_id = require_user(request)
    roles = set(getattr(request.state, "user_roles", None) or [])
    if admin_config.ADMIN_ROLE not in roles:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="User doesn't have the required role")
    return user_id

from typing import Any, Dict, Optional
from fastapi import HTTPException, Request, status
from fastapi.security import HTTPBearer
from jose import jwt, JWTError
from starlette.middleware.base import BaseHTTPMiddleware
from storefront.common.utils import build_error, json_error
from storefront.config.settings import config_settings
from storefront.middlewares.constants import SESSION_COOKIE_NAME, SESSION_HEADER_NAME, logger


class BearerIdentity(HTTPBearer):
    """Reads an optional bearer token. Tokens are issued elsewhere, this only verifies them."""

    def __init__(self):
        super().__init__(auto_error=False)

    async def __call__(self, request: Request) -> Optional[Dict[str, Any]]:
        auth_creds = await super().__call__(request)
        if auth_creds is None:
            return None

        decoded_token = self.decode_token(auth_creds.credentials)
        if not decoded_token or decoded_token.get("sub") is None:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or expired token provided.")
        return decoded_token

    def decode_token(self, token: str) -> Optional[Dict[str, Any]]:
        """Verify signature, expiry and claims of the token."""
        try:
            return jwt.decode(token, key=config_settings.JWT_SECRET, algorithms=[config_settings.JWT_ALGO])
        except JWTError:
            return None


class IdentityMiddleware(BaseHTTPMiddleware):
    """Attach the caller's identity to request.state.

    user_identifier/user_email/user_roles come from the bearer token when one is sent,
    sid is the anonymous session id from the session cookie or header. Both may be absent.
    """

    def __init__(self, app, *, skip_paths=()):
        super().__init__(app)
        self.skip_paths = tuple(skip_paths)
        self.bearer = BearerIdentity()

    async def dispatch(self, request: Request, call_next):
        request.state.user_identifier = None
        request.state.user_email = None
        request.state.user_roles = []
        request.state.sid = request.cookies.get(SESSION_COOKIE_NAME) or request.headers.get(SESSION_HEADER_NAME)

        if any(request.url.path.startswith(p) for p in self.skip_paths):
            return await call_next(request)

        try:
            claims = await self.bearer(request)
        except HTTPException as e:
            logger.warning("identity.token_rejected", extra={
                "reason": e.detail,
                "path": request.url.path,
                "method": request.method,
            })
            payload = build_error(code="INVALID_AUTH", details={"message": "Missing or Invalid Auth Headers"})
            return json_error(payload, status_code=status.HTTP_401_UNAUTHORIZED)

        if claims is not None:
            try:
                request.state.user_identifier = int(claims["sub"])
            except (TypeError, ValueError):
                payload = build_error(code="INVALID_AUTH", details={"message": "Token subject is not a user id"})
                return json_error(payload, status_code=status.HTTP_401_UNAUTHORIZED)
            request.state.user_email = claims.get("email")
            request.state.user_roles = list(claims.get("roles") or [])

        return await call_next(request)

from typing import Any, Dict, List, Optional
from fastapi import FastAPI, HTTPException, Request,status
from fastapi.exceptions import RequestValidationError
from storefront import logger
from storefront.common.utils import build_error, json_error
from storefront.common.constants import request_id_ctx


class StoreError(Exception):
    """Base for user-facing domain failures, each rendered as a 4xx with a machine readable code."""

    code = "STORE_ERROR"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_details(self) -> Dict[str, Any]:
        return {"message": self.message, **self.details}


class InsufficientStock(StoreError):
    code = "INSUFFICIENT_STOCK"
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, stock_issues: List[Dict[str, Any]], message: str = "Insufficient stock"):
        super().__init__(message, stock_issues=stock_issues)
        self.stock_issues = stock_issues


class InvalidPromoCode(StoreError):
    code = "INVALID_PROMO_CODE"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, reason: str, message: Optional[str] = None):
        super().__init__(message or f"Promo code rejected: {reason}", reason=reason)
        self.reason = reason


class InvalidShippingMethod(StoreError):
    code = "INVALID_SHIPPING_METHOD"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, shipping_method: str):
        super().__init__(f"Unknown shipping method '{shipping_method}'", shipping_method=shipping_method)


class InvalidTransition(StoreError):
    code = "INVALID_TRANSITION"
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, from_status: str, to_status: str):
        super().__init__(f"Cannot move order from {from_status} to {to_status}",
                         from_status=from_status, to_status=to_status)
        self.from_status = from_status
        self.to_status = to_status


class NotFound(StoreError):
    code = "NOT_FOUND"
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, resource: str, identifier: Any = None):
        super().__init__(f"{resource} not found", resource=resource, identifier=identifier)


class AuthorizationError(StoreError):
    code = "AUTHORIZATION_ERROR"
    status_code = status.HTTP_403_FORBIDDEN

    def __init__(self, message: str = "Not allowed to access this resource"):
        super().__init__(message)


class PaymentFailed(StoreError):
    code = "PAYMENT_FAILED"
    status_code = status.HTTP_402_PAYMENT_REQUIRED


class EmptyCart(StoreError):
    code = "CART_EMPTY"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str = "Cart is empty"):
        super().__init__(message)


class EmailRequired(StoreError):
    code = "EMAIL_REQUIRED"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str = "An email address is required for guest checkout"):
        super().__init__(message)


class OrderNumberUnavailable(StoreError):
    code = "ORDER_NUMBER_UNAVAILABLE"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    def __init__(self, attempts: int):
        super().__init__("Could not allocate an order number", attempts=attempts)


async def store_error_handler(request: Request, exc: StoreError):
    rid = request_id_ctx.get(None)
    logger.info(
        "request.rejected",
        extra={
            "code": exc.code,
            "path": request.url.path,
            "method": request.method,
        },
    )
    payload = build_error(code=exc.code, details=exc.to_details(), request_id=rid)
    return json_error(payload, status_code=exc.status_code)


async def fallback_handler(request: Request, exc: Exception):

    rid = request_id_ctx.get(None)

    logger.error(
        "unexpected.exception",
        extra={
            "path": request.url.path,
            "method": request.method,
        },
        exc_info=exc,
    )

    payload = build_error(code="SERVER_ERROR", details={"message": "Internal Server Error"}, request_id=rid)
    return json_error(payload, status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    rid = request_id_ctx.get(None)
    logger.warning(
        "request.validation_failed",
        extra={
            "errors": exc.errors(),
            "path": request.url.path,
        },
    )

    fields = [".".join(str(p) for p in err.get("loc", ())) for err in exc.errors()]
    payload = build_error(code="UNPROCESSABLE_ENTITY", details={"message": "invalid request", "fields": fields}, request_id=rid)
    return json_error(payload, status_code=status.HTTP_422_UNPROCESSABLE_ENTITY)


async def http_exception_handler(request: Request, exc: HTTPException):

    rid = request_id_ctx.get(None)
    payload = build_error(code=f"HTTP_{exc.status_code}", details={"message": exc.detail}, request_id=rid)
    return json_error(payload, status_code=exc.status_code, headers=getattr(exc, "headers", None))


def register_all_exceptions(app: FastAPI):

    app.add_exception_handler(
        Exception, # anything not handled below
        fallback_handler
    )

    app.add_exception_handler(
        StoreError,
        store_error_handler
    )

    app.add_exception_handler(
        RequestValidationError,
        validation_exception_handler
    )

    app.add_exception_handler(
        HTTPException,
        http_exception_handler
    )

"""Checkout API: FastAPI routers and error rendering."""

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from checkout.api.routes import order_router, payment_router
from checkout.shared.errors import CheckoutError, PaymentGatewayError

__all__ = ["order_router", "payment_router", "register_checkout_error_handlers"]


async def _checkout_error_handler(request: Request, exc: CheckoutError) -> JSONResponse:
    status_code = 502 if isinstance(exc, PaymentGatewayError) else 400
    return JSONResponse(status_code=status_code, content=exc.to_dict())


async def _request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={
            "error": "Validation Error",
            "kind": "invalid_request",
            "message": "Invalid request data",
            "details": _error_details(exc),
        },
    )


def _error_details(exc: RequestValidationError) -> list[dict]:
    return [{"loc": list(err.get("loc", ())), "msg": err.get("msg")} for err in exc.errors()]


def register_checkout_error_handlers(app: FastAPI) -> None:
    """Render checkout rejections and malformed bodies as structured 400s.

    Register after ``protean.integrations.fastapi.register_exception_handlers``;
    ``CheckoutError`` is more specific than Protean's ``ValidationError`` and wins.
    """
    app.add_exception_handler(CheckoutError, _checkout_error_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)

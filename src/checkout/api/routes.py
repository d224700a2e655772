"""FastAPI routes for the Checkout domain: orders, payments and settlement.

Routes that reach the gateway or the repositories are plain ``def`` so they
run in the threadpool. Form posts read their body on the event loop and hand
settlement to the threadpool.
"""

from urllib.parse import urlencode

import structlog
from fastapi import APIRouter, Depends, Header, HTTPException, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse, RedirectResponse
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from checkout.api.schemas import (
    CancelRequest,
    CheckoutRequest,
    OrderResponse,
    PaymentInitResponse,
    PaymentStatusResponse,
    RefundRequest,
    RefundResponse,
    StatusNoteRequest,
    StatusResponse,
)
from checkout.config import get_settings
from checkout.order.fulfillment import CancelOrder, MarkDelivered, MarkProcessing, MarkShipped
from checkout.order.order import Order
from checkout.order.placement import PlaceOrder
from checkout.payment.refund import refund_order
from checkout.payment.session import start_payment_session
from checkout.payment.settlement import SettlementStatus, settle_notification
from checkout.payment.status import payment_status
from checkout.shared.money import to_paisa

logger = structlog.get_logger(__name__)


# ---------------------------------------------------------------------------
# Caller identity
# ---------------------------------------------------------------------------
class Customer:
    def __init__(self, id: str, email: str | None = None, role: str | None = None):
        self.id = id
        self.email = email
        self.role = (role or "CUSTOMER").upper()

    @property
    def is_admin(self) -> bool:
        return self.role == "ADMIN"


def current_customer(
    x_customer_id: str | None = Header(default=None),
    x_customer_email: str | None = Header(default=None),
    x_customer_role: str | None = Header(default=None),
) -> Customer:
    """The caller authenticated by the upstream auth layer."""
    if not x_customer_id:
        raise HTTPException(status_code=401, detail="Please login to continue")
    return Customer(x_customer_id, x_customer_email, x_customer_role)


def current_admin(customer: Customer = Depends(current_customer)) -> Customer:
    if not customer.is_admin:
        raise HTTPException(status_code=403, detail="Admin access required")
    return customer


def _owned_order(order_id: str, customer: Customer) -> Order:
    try:
        order = current_domain.repository_for(Order).get(order_id)
    except ObjectNotFoundError:
        raise HTTPException(status_code=404, detail="Order not found") from None
    if not order.belongs_to(customer.id):
        raise HTTPException(status_code=404, detail="Order not found")
    return order


def _place_order(body: CheckoutRequest, customer: Customer) -> str:
    command = PlaceOrder(
        customer_id=customer.id,
        customer_email=customer.email,
        address_id=body.address_id,
        promo_code=body.promo_code,
        notes=body.notes,
    )
    return current_domain.process(command, asynchronous=False)


def _init_response(order_id: str) -> PaymentInitResponse:
    session = start_payment_session(order_id)
    return PaymentInitResponse(
        gateway_url=session.gateway_url,
        order_id=session.order_id,
        order_no=session.order_no,
        summary=session.summary,
    )

# ---------------------------------------------------------------------------
# Order Router
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"])


@order_router.post("", status_code=201, response_model=OrderResponse)
def create_order(body: CheckoutRequest, customer: Customer = Depends(current_customer)) -> OrderResponse:
    """Create a PENDING order from the caller's cart."""
    order_id = _place_order(body, customer)
    order = current_domain.repository_for(Order).get(order_id)
    return OrderResponse.from_order(order)


@order_router.post("/{order_id}/pay", response_model=PaymentInitResponse)
def pay_order(order_id: str, customer: Customer = Depends(current_customer)) -> PaymentInitResponse:
    """Open a new gateway session for an existing PENDING order."""
    order = _owned_order(order_id, customer)
    return _init_response(str(order.id))


@order_router.post("/{order_id}/refund", response_model=RefundResponse)
def refund(order_id: str, body: RefundRequest, admin: Customer = Depends(current_admin)) -> RefundResponse:
    result = refund_order(
        order_id,
        body.reason,
        amount=to_paisa(body.amount) if body.amount is not None else None,
    )
    logger.info("Refund requested", order_id=order_id, admin_id=admin.id)
    return RefundResponse(**result)


@order_router.put("/{order_id}/processing", response_model=StatusResponse, dependencies=[Depends(current_admin)])
def mark_processing(order_id: str, body: StatusNoteRequest | None = None) -> StatusResponse:
    command = MarkProcessing(order_id=order_id, note=body.note if body else None)
    current_domain.process(command, asynchronous=False)
    return StatusResponse()


@order_router.put("/{order_id}/ship", response_model=StatusResponse, dependencies=[Depends(current_admin)])
def mark_shipped(order_id: str, body: StatusNoteRequest | None = None) -> StatusResponse:
    command = MarkShipped(order_id=order_id, note=body.note if body else None)
    current_domain.process(command, asynchronous=False)
    return StatusResponse()


@order_router.put("/{order_id}/deliver", response_model=StatusResponse, dependencies=[Depends(current_admin)])
def mark_delivered(order_id: str, body: StatusNoteRequest | None = None) -> StatusResponse:
    command = MarkDelivered(order_id=order_id, note=body.note if body else None)
    current_domain.process(command, asynchronous=False)
    return StatusResponse()


@order_router.put("/{order_id}/cancel", response_model=StatusResponse)
def cancel_order(
    order_id: str, body: CancelRequest | None = None, customer: Customer = Depends(current_customer)
) -> StatusResponse:
    """Cancel an unpaid order. Customers may cancel their own orders; admins any."""
    if not customer.is_admin:
        _owned_order(order_id, customer)
    command = CancelOrder(order_id=order_id, reason=body.reason if body else None)
    current_domain.process(command, asynchronous=False)
    return StatusResponse()


# ---------------------------------------------------------------------------
# Payment Router
# ---------------------------------------------------------------------------
payment_router = APIRouter(prefix="/pay", tags=["payments"])


@payment_router.post("/init", response_model=PaymentInitResponse)
def init_payment(body: CheckoutRequest, customer: Customer = Depends(current_customer)) -> PaymentInitResponse:
    """Place an order from the cart and open a gateway session for it."""
    order_id = _place_order(body, customer)
    return _init_response(order_id)


@payment_router.post("/ipn")
async def payment_notification(request: Request) -> JSONResponse:
    """Gateway IPN webhook. Unauthenticated: every claim goes through the settlement gates."""
    form = await request.form()
    outcome = await run_in_threadpool(settle_notification, dict(form))

    if outcome.accepted:
        return JSONResponse(content={"status": outcome.status.value})
    return JSONResponse(
        status_code=outcome.http_status,
        content={"error": outcome.reason or "Payment verification failed"},
    )


@payment_router.get("/ipn", response_model=PaymentStatusResponse)
def poll_payment_status(tran_id: str) -> PaymentStatusResponse:
    status = payment_status(tran_id)
    if status is None:
        raise HTTPException(status_code=404, detail="Order not found")
    return PaymentStatusResponse(
        order_id=status["orderId"],
        order_no=status["orderNo"],
        status=status["status"],
        paid=status["paid"],
    )


def _redirect(path: str, **params) -> RedirectResponse:
    url = get_settings().callback_url(path)
    if params:
        url = f"{url}?{urlencode(params)}"
    return RedirectResponse(url=url, status_code=303)


async def _settle_callback(request: Request) -> RedirectResponse:
    form = await request.form()
    payload = dict(form)
    outcome = await run_in_threadpool(settle_notification, payload)

    if outcome.paid:
        return _redirect(f"/orders/{outcome.order_id}/success")
    if outcome.status == SettlementStatus.CANCELLED:
        return _redirect("/cart", cancelled="true")
    if outcome.status == SettlementStatus.FAILED:
        params = {"error": "payment_failed"}
        if payload.get("error"):
            params["reason"] = payload["error"]
        return _redirect("/checkout", **params)

    logger.warning("Browser payment callback not settled", tran_id=payload.get("tran_id"), outcome=outcome.status.value)
    return _redirect("/checkout/error", reason=outcome.status.value)


@payment_router.post("/success")
async def payment_success(request: Request) -> RedirectResponse:
    return await _settle_callback(request)


@payment_router.post("/fail")
async def payment_fail(request: Request) -> RedirectResponse:
    return await _settle_callback(request)


@payment_router.post("/cancel")
async def payment_cancel(request: Request) -> RedirectResponse:
    return await _settle_callback(request)


@payment_router.get("/success")
async def payment_success_direct() -> RedirectResponse:
    return _redirect("/orders")


@payment_router.get("/fail")
async def payment_fail_direct() -> RedirectResponse:
    return _redirect("/checkout", error="payment_failed")


@payment_router.get("/cancel")
async def payment_cancel_direct() -> RedirectResponse:
    return _redirect("/cart", cancelled="true")

"""Gateway session initiation: commands, handler and orchestration.

Opening a session is split in three so that no unit of work stays open while
the gateway is being called:

1. BeginPaymentSession issues a fresh tran_id and moves the order to
   PAYMENT_INITIATED (committed).
2. The gateway is asked for a hosted payment page.
3. RecordPaymentSession stores the session key, or AbandonPaymentSession
   returns the order to PENDING. An abandoned tran_id is never reused.
"""

import time
from dataclasses import dataclass

import structlog
from protean import handle
from protean.exceptions import ObjectNotFoundError
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from checkout.catalogue.product import Product
from checkout.config import get_settings
from checkout.domain import checkout
from checkout.gateway import get_gateway
from checkout.gateway.port import GatewayUnavailable, SessionRequest, SessionResult
from checkout.order.order import Order
from checkout.shared.errors import PaymentGatewayError

logger = structlog.get_logger(__name__)

SUCCESS_PATH = "/pay/success"
FAIL_PATH = "/pay/fail"
CANCEL_PATH = "/pay/cancel"
IPN_PATH = "/pay/ipn"


def new_tran_id(order_id) -> str:
    """Transaction id for a new session: ``paaniyo_<order id>_<nanoseconds>``."""
    return f"paaniyo_{order_id}_{time.time_ns()}"


@dataclass(frozen=True)
class PaymentSession:
    order_id: str
    order_no: str
    tran_id: str
    gateway_url: str
    summary: dict


@checkout.command(part_of="Order")
class BeginPaymentSession:
    order_id = Identifier(required=True)


@checkout.command(part_of="Order")
class RecordPaymentSession:
    order_id = Identifier(required=True)
    tran_id = String(required=True, max_length=255)
    session_key = String(max_length=255)


@checkout.command(part_of="Order")
class AbandonPaymentSession:
    order_id = Identifier(required=True)
    tran_id = String(required=True, max_length=255)
    reason = String(max_length=500)


@checkout.command_handler(part_of=Order)
class PaymentSessionHandler:
    @handle(BeginPaymentSession)
    def begin_session(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        tran_id = new_tran_id(order.id)
        order.begin_payment(tran_id)
        repo.add(order)
        return tran_id

    @handle(RecordPaymentSession)
    def record_session(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.record_session(command.tran_id, command.session_key)
        repo.add(order)

    @handle(AbandonPaymentSession)
    def abandon_session(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.abandon_payment(command.tran_id, command.reason or "Payment initialization failed")
        repo.add(order)


def _product_category(order) -> str | None:
    repo = current_domain.repository_for(Product)
    for item in order.items:
        try:
            category = repo.get(item.product_id).category
        except ObjectNotFoundError:
            continue
        if category:
            return category
    return None


def build_session_request(order, tran_id: str, settings=None) -> SessionRequest:
    settings = settings or get_settings()
    address = order.shipping_address
    return SessionRequest(
        order_id=str(order.id),
        tran_id=tran_id,
        amount=order.total,
        customer_name=address.full_name,
        customer_email=order.customer_email or "",
        customer_phone=address.phone,
        customer_address=address.street,
        customer_city=address.city,
        customer_postcode=address.post_code,
        product_names=tuple(item.product_name for item in order.items),
        product_category=_product_category(order),
        success_url=settings.callback_url(SUCCESS_PATH),
        fail_url=settings.callback_url(FAIL_PATH),
        cancel_url=settings.callback_url(CANCEL_PATH),
        ipn_url=settings.callback_url(IPN_PATH),
    )


def start_payment_session(order_id) -> PaymentSession:
    """Open a gateway session for a PENDING order and return where to send the customer.

    Raises ``PaymentGatewayError`` when the gateway refuses or cannot be
    reached; the order is then back in PENDING and can be retried.
    """
    tran_id = current_domain.process(BeginPaymentSession(order_id=order_id), asynchronous=False)
    order = current_domain.repository_for(Order).get(order_id)

    try:
        result = get_gateway().init_session(build_session_request(order, tran_id))
    except GatewayUnavailable as exc:
        result = SessionResult(success=False, failure_reason=str(exc))

    if not result.success:
        reason = result.failure_reason or "Payment initialization failed"
        current_domain.process(
            AbandonPaymentSession(order_id=order_id, tran_id=tran_id, reason=reason),
            asynchronous=False,
        )
        logger.warning("Payment session abandoned", order_id=str(order_id), tran_id=tran_id, reason=reason)
        raise PaymentGatewayError(reason)

    current_domain.process(
        RecordPaymentSession(order_id=order_id, tran_id=tran_id, session_key=result.session_key),
        asynchronous=False,
    )
    logger.info("Payment session started", order_id=str(order_id), tran_id=tran_id, amount=order.total)

    return PaymentSession(
        order_id=str(order.id),
        order_no=order.order_no,
        tran_id=tran_id,
        gateway_url=result.gateway_url,
        summary=order.pricing.summary(),
    )

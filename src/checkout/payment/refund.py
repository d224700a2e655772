"""Order refund: command and handler.

The refund is requested from the gateway first; the order only becomes
REFUNDED once the gateway accepts the request. A refused or unreachable
gateway leaves the order PAID.

Refunds of one order run one at a time through ``refund_order()``: the order
is re-read under the lock, so a second request finds it REFUNDED and fails
before reaching the gateway. The gateway reference is derived from the order
id alone, so the gateway can recognise a repeat from another process.
"""

import structlog
from protean import handle
from protean.fields import Identifier, Integer, String
from protean.utils.globals import current_domain

from checkout.domain import checkout
from checkout.gateway import get_gateway
from checkout.gateway.port import GatewayUnavailable
from checkout.notification.emitter import notify_order_refunded
from checkout.order.order import Order
from checkout.payment.locks import refund_lock
from checkout.shared.errors import PaymentGatewayError
from checkout.shared.money import format_taka

logger = structlog.get_logger(__name__)


@checkout.command(part_of="Order")
class RefundOrder:
    """Refund a paid order, fully or in part."""

    order_id = Identifier(required=True)
    amount = Integer(min_value=1)  # paisa; defaults to the order total
    reason = String(required=True, max_length=500)


def refund_reference(order_id) -> str:
    return f"REF_{order_id}"


@checkout.command_handler(part_of=Order)
class RefundHandler:
    @handle(RefundOrder)
    def refund_order(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)

        amount = command.amount or order.total
        order.assert_refundable(amount)
        if not order.bank_tran_id:
            raise PaymentGatewayError("Order has no bank transaction to refund", kind="refund_unavailable")

        try:
            result = get_gateway().refund(
                bank_tran_id=order.bank_tran_id,
                amount=amount,
                reason=command.reason,
                reference=refund_reference(order.id),
            )
        except GatewayUnavailable as exc:
            raise PaymentGatewayError("Refund initiation failed", kind="refund_failed") from exc

        if not result.success:
            logger.warning(
                "Refund refused by gateway",
                order_id=str(order.id),
                amount=amount,
                reason=result.failure_reason,
            )
            raise PaymentGatewayError(result.failure_reason or "Refund initiation failed", kind="refund_failed")

        order.refund(amount, command.reason)
        notify_order_refunded(order, amount)
        repo.add(order)

        logger.info("Refund initiated", order_id=str(order.id), amount=amount, refund_ref_id=result.refund_ref_id)
        return {"status": result.status, "message": f"Refund of ৳{format_taka(amount)} initiated"}


def refund_order(order_id, reason: str, amount: int | None = None) -> dict:
    """Refund ``amount`` paisa of a paid order (the whole total when omitted)."""
    with refund_lock(str(order_id)):
        return current_domain.process(
            RefundOrder(order_id=order_id, amount=amount, reason=reason),
            asynchronous=False,
        )

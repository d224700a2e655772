"""Gateway notification settlement.

Every notification claiming a payment outcome, whether from the IPN webhook
or a browser callback, passes the same gates in order. The first gate that
fails ends processing with a ``SettlementOutcome``; nothing here raises to
the caller.

1. Signature: ``verify_sign`` must match the payload signed with the store
   password.
2. Order lookup: ``tran_id`` must be the current transaction of an order that
   is still open for settlement.
3. Server-side validation: a success claim must be confirmed by the gateway's
   own validation API for the same tran_id; a failure claim must not be
   contradicted by the gateway's transaction record.
4. Amount: the claimed amount must be within the configured tolerance of the
   order total.
5. Transition: PAYMENT_INITIATED → PAID exactly once. An already PAID order
   answers ``duplicate`` without repeating any side effect.
6. Side effects of the first settlement commit with the transition: stock,
   commission, history, notification and the emptied cart.
7. Confirmed failures and cancellations return the order to PENDING.

Gates 2 to 7 run under a per-tran_id lock, and each state change re-reads the
order inside its own unit of work before acting.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum

import structlog
from protean import handle
from protean.exceptions import ExpectedVersionError
from protean.fields import Boolean, Identifier, String
from protean.utils.globals import current_domain

from checkout.cart.cart import Cart
from checkout.config import get_settings
from checkout.domain import checkout
from checkout.gateway import get_gateway
from checkout.gateway.port import SUCCESS_STATUSES, GatewayUnavailable
from checkout.gateway.signature import verify_signature
from checkout.ledger.posting import post_settlement
from checkout.notification.emitter import notify_order_paid, notify_payment_failed
from checkout.order.order import Order, OrderStatus
from checkout.payment.locks import settlement_lock
from checkout.shared.money import to_paisa

logger = structlog.get_logger(__name__)

FAILURE_STATUSES = frozenset({"FAILED", "UNATTEMPTED", "EXPIRED"})
CANCEL_STATUSES = frozenset({"CANCELLED"})


class SettlementStatus(Enum):
    SUCCESS = "success"
    DUPLICATE = "duplicate"
    FAILED = "failed"
    CANCELLED = "cancelled"
    INVALID_SIGNATURE = "invalid_signature"
    NOT_FOUND = "not_found"
    REJECTED = "rejected"
    UNKNOWN_STATUS = "unknown_status"


_HTTP_STATUS = {
    SettlementStatus.SUCCESS: 200,
    SettlementStatus.DUPLICATE: 200,
    SettlementStatus.FAILED: 200,
    SettlementStatus.CANCELLED: 200,
    SettlementStatus.INVALID_SIGNATURE: 400,
    SettlementStatus.NOT_FOUND: 404,
    SettlementStatus.REJECTED: 400,
    SettlementStatus.UNKNOWN_STATUS: 400,
}


@dataclass(frozen=True)
class SettlementOutcome:
    status: SettlementStatus
    order_id: str | None = None
    order_no: str | None = None
    reason: str | None = None

    @property
    def accepted(self) -> bool:
        return _HTTP_STATUS[self.status] == 200

    @property
    def paid(self) -> bool:
        return self.status in (SettlementStatus.SUCCESS, SettlementStatus.DUPLICATE)

    @property
    def http_status(self) -> int:
        return _HTTP_STATUS[self.status]


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------
@checkout.command(part_of="Order")
class SettlePayment:
    """Apply a verified successful payment to its order."""

    order_id = Identifier(required=True)
    tran_id = String(required=True, max_length=255)
    val_id = String(max_length=255)
    bank_tran_id = String(max_length=255)
    card_type = String(max_length=100)


@checkout.command(part_of="Order")
class RecordPaymentFailure:
    """Apply a verified failed or cancelled payment to its order."""

    order_id = Identifier(required=True)
    tran_id = String(required=True, max_length=255)
    reason = String(max_length=500)
    cancelled = Boolean(default=False)


@checkout.command(part_of="Order")
class RejectPaymentNotification:
    """Record a notification that failed a trust check."""

    order_id = Identifier(required=True)
    tran_id = String(required=True, max_length=255)
    reason = String(max_length=500)


@checkout.command_handler(part_of=Order)
class SettlementHandler:
    @handle(SettlePayment)
    def settle_payment(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)

        if order.tran_id != command.tran_id:
            return SettlementStatus.NOT_FOUND
        if order.is_paid:
            return SettlementStatus.DUPLICATE
        if order.current_status != OrderStatus.PAYMENT_INITIATED:
            logger.error(
                "Verified payment for an order not awaiting payment",
                order_id=str(order.id),
                tran_id=command.tran_id,
                status=order.status,
            )
            return SettlementStatus.REJECTED

        order.mark_paid(
            command.tran_id,
            val_id=command.val_id,
            bank_tran_id=command.bank_tran_id,
            payment_method=command.card_type,
        )
        post_settlement(order)
        notify_order_paid(order, order.total)

        cart_repo = current_domain.repository_for(Cart)
        cart = cart_repo.find_for_customer(order.customer_id)
        if cart is not None and not cart.is_empty:
            cart.clear()
            cart_repo.add(cart)

        repo.add(order)
        return SettlementStatus.SUCCESS

    @handle(RecordPaymentFailure)
    def record_failure(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)

        if order.tran_id != command.tran_id:
            return SettlementStatus.NOT_FOUND
        if order.current_status not in (OrderStatus.PENDING, OrderStatus.PAYMENT_INITIATED):
            return SettlementStatus.REJECTED

        reverted = order.record_payment_failure(command.tran_id, command.reason or "Unknown error")
        if reverted:
            notify_payment_failed(order, command.reason)
        repo.add(order)
        return SettlementStatus.CANCELLED if command.cancelled else SettlementStatus.FAILED

    @handle(RejectPaymentNotification)
    def reject_notification(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        if order.tran_id == command.tran_id:
            order.reject_payment_notification(command.tran_id, command.reason)
            repo.add(order)
        return SettlementStatus.REJECTED


# ---------------------------------------------------------------------------
# Gates
# ---------------------------------------------------------------------------
def _claimed_amount(payload: Mapping) -> int | None:
    try:
        return to_paisa(payload.get("amount"))
    except ValueError:
        return None


def _trust_failure(payload: Mapping, order, claim: SettlementStatus) -> str | None:
    """Reason the notification cannot be trusted, or None when gates 3 and 4 pass."""
    tran_id = payload.get("tran_id")
    gateway = get_gateway()

    try:
        if claim == SettlementStatus.SUCCESS:
            val_id = payload.get("val_id")
            if not val_id:
                return "missing validation id"
            validation = gateway.validate(val_id)
            if not validation.is_valid:
                return f"gateway reports validation status {validation.status or 'unknown'}"
            if validation.tran_id != tran_id:
                return "gateway validation is for a different transaction"
        else:
            record = gateway.query_transaction(tran_id)
            if record.is_success:
                return f"gateway reports transaction as {record.status}"
    except GatewayUnavailable as exc:
        return f"gateway validation unavailable: {exc}"

    # A failure claim moves no money, so only success claims are held to the amount
    if claim != SettlementStatus.SUCCESS:
        return None

    claimed = _claimed_amount(payload)
    tolerance = get_settings().pricing.amount_tolerance
    if claimed is None or abs(order.total - claimed) > tolerance:
        return "amount mismatch"
    return None


def _claim_for(status: str | None) -> SettlementStatus | None:
    status = (status or "").upper()
    if status in SUCCESS_STATUSES:
        return SettlementStatus.SUCCESS
    if status in FAILURE_STATUSES:
        return SettlementStatus.FAILED
    if status in CANCEL_STATUSES:
        return SettlementStatus.CANCELLED
    return None


def _failure_reason(payload: Mapping, claim: SettlementStatus) -> str:
    reason = payload.get("error") or payload.get("failedreason")
    if reason:
        return str(reason)
    return "Cancelled by customer" if claim == SettlementStatus.CANCELLED else "Payment declined"


def _process(command, order):
    """Run a settlement command, treating a concurrent write as a lost race."""
    try:
        return current_domain.process(command, asynchronous=False)
    except ExpectedVersionError:
        latest = current_domain.repository_for(Order).get(order.id)
        logger.info("Concurrent settlement detected", order_id=str(order.id), status=latest.status)
        if latest.is_paid:
            return SettlementStatus.DUPLICATE
        raise


def settle_notification(payload: Mapping) -> SettlementOutcome:
    """Run a gateway notification through every gate and apply it at most once."""
    tran_id = payload.get("tran_id")
    log = logger.bind(tran_id=tran_id, claimed_status=payload.get("status"))

    if not verify_signature(payload, get_settings().gateway.store_password):
        log.warning("Payment notification signature mismatch", payload=dict(payload))
        return SettlementOutcome(SettlementStatus.INVALID_SIGNATURE, reason="Invalid signature")

    claim = _claim_for(payload.get("status"))
    if claim is None:
        log.warning("Payment notification with unknown status", payload=dict(payload))
        return SettlementOutcome(SettlementStatus.UNKNOWN_STATUS, reason="Unknown payment status")

    with settlement_lock(tran_id):
        order = current_domain.repository_for(Order).find_by_tran_id(tran_id)
        if order is None or not order.is_settleable:
            log.warning("Payment notification for unknown transaction", payload=dict(payload))
            return SettlementOutcome(SettlementStatus.NOT_FOUND, reason="Order not found")

        order_ref = {"order_id": str(order.id), "order_no": order.order_no}

        reason = _trust_failure(payload, order, claim)
        if reason is not None:
            log.error("Payment notification rejected", order_id=str(order.id), reason=reason, payload=dict(payload))
            _process(RejectPaymentNotification(order_id=order.id, tran_id=tran_id, reason=reason), order)
            return SettlementOutcome(SettlementStatus.REJECTED, reason="Payment verification failed", **order_ref)

        if claim == SettlementStatus.SUCCESS:
            status = _process(
                SettlePayment(
                    order_id=order.id,
                    tran_id=tran_id,
                    val_id=payload.get("val_id"),
                    bank_tran_id=payload.get("bank_tran_id"),
                    card_type=payload.get("card_type"),
                ),
                order,
            )
        else:
            status = _process(
                RecordPaymentFailure(
                    order_id=order.id,
                    tran_id=tran_id,
                    reason=_failure_reason(payload, claim),
                    cancelled=claim == SettlementStatus.CANCELLED,
                ),
                order,
            )

    log.info("Payment notification settled", order_id=order_ref["order_id"], outcome=status.value)
    return SettlementOutcome(status, **order_ref)

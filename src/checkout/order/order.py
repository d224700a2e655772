"""Order aggregate (CQRS): the financial record of a purchase.

An order is created once, priced once, and from then on changes only through
the transition map below. Items and the shipping address are snapshots taken
at placement: later catalogue or address edits never reach a placed order.

State Machine:
    PENDING → PAYMENT_INITIATED → PAID → PROCESSING → SHIPPED → DELIVERED
    PAYMENT_INITIATED → PENDING (gateway failure, retry allowed)
    PENDING / PAYMENT_INITIATED → CANCELLED
    PAID → REFUNDED

Every gateway session opens a PaymentAttempt under a fresh tran_id. A tran_id
that already appears among the attempts is refused, so a transaction id is
never reused even when the customer retries the same order.
"""

import secrets
from datetime import UTC, datetime, timedelta
from enum import Enum

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import (
    DateTime,
    HasMany,
    Identifier,
    Integer,
    String,
    Text,
    ValueObject,
)

from checkout.domain import checkout
from checkout.order.events import (
    OrderCancelled,
    OrderDelivered,
    OrderPaid,
    OrderPaymentFailed,
    OrderPlaced,
    OrderProcessing,
    OrderRefunded,
    OrderShipped,
    PaymentSessionAbandoned,
    PaymentSessionStarted,
)
from checkout.shared.money import format_taka


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderStatus(Enum):
    PENDING = "PENDING"
    PAYMENT_INITIATED = "PAYMENT_INITIATED"
    PAID = "PAID"
    PROCESSING = "PROCESSING"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"
    REFUNDED = "REFUNDED"


class AttemptStatus(Enum):
    INITIATED = "Initiated"
    ABANDONED = "Abandoned"
    FAILED = "Failed"
    SETTLED = "Settled"


_VALID_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.PAYMENT_INITIATED, OrderStatus.CANCELLED},
    OrderStatus.PAYMENT_INITIATED: {
        OrderStatus.PAID,
        OrderStatus.PENDING,  # Payment failure → retry
        OrderStatus.CANCELLED,
    },
    OrderStatus.PAID: {OrderStatus.PROCESSING, OrderStatus.REFUNDED},
    OrderStatus.PROCESSING: {OrderStatus.SHIPPED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED},
    OrderStatus.DELIVERED: set(),  # Terminal
    OrderStatus.CANCELLED: set(),  # Terminal
    OrderStatus.REFUNDED: set(),  # Terminal
}

# States in which a gateway notification may still act on the order
_SETTLEABLE_STATES = {
    OrderStatus.PENDING,
    OrderStatus.PAYMENT_INITIATED,
    OrderStatus.PAID,
}


def generate_order_no(now: datetime | None = None) -> str:
    now = now or datetime.now(UTC)
    return f"PN-{now:%y%m%d}-{secrets.token_hex(3).upper()}"


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@checkout.value_object(part_of="Order")
class ShippingAddress:
    """Delivery address copied from the customer's address book at placement."""

    full_name = String(required=True, max_length=150)
    phone = String(required=True, max_length=20)
    address1 = String(required=True, max_length=255)
    address2 = String(max_length=255)
    city = String(required=True, max_length=100)
    post_code = String(max_length=20)

    @property
    def street(self) -> str:
        return f"{self.address1}, {self.address2}" if self.address2 else self.address1


@checkout.value_object(part_of="Order")
class OrderPricing:
    """Monetary snapshot of the order in paisa, locked at placement."""

    subtotal = Integer(default=0, min_value=0)
    shipping = Integer(default=0, min_value=0)
    discount = Integer(default=0, min_value=0)
    vat = Integer(default=0, min_value=0)
    total = Integer(default=0, min_value=0)
    commission = Integer(default=0, min_value=0)

    @invariant.post
    def total_must_balance(self):
        if self.total != self.subtotal - self.discount + self.vat + self.shipping:
            raise ValidationError({"total": ["Total must equal subtotal - discount + vat + shipping"]})

    def summary(self) -> dict:
        return {
            "subtotal": format_taka(self.subtotal),
            "shipping": format_taka(self.shipping),
            "discount": format_taka(self.discount),
            "vat": format_taka(self.vat),
            "total": format_taka(self.total),
        }


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@checkout.entity(part_of="Order")
class OrderItem:
    """A purchased product as it looked when the order was placed."""

    product_id = Identifier(required=True)
    product_name = String(required=True, max_length=255)
    product_image = String(max_length=500)
    brand_name = String(max_length=100)
    vendor_id = Identifier()
    unit_price = Integer(required=True, min_value=0)
    quantity = Integer(required=True, min_value=1)
    line_total = Integer(required=True, min_value=0)


@checkout.entity(part_of="Order")
class OrderStatusHistory:
    status = String(choices=OrderStatus, required=True)
    note = String(max_length=1000)
    created_at = DateTime(required=True)


@checkout.entity(part_of="Order")
class PaymentAttempt:
    """One gateway session opened for this order."""

    tran_id = String(required=True, max_length=255)
    session_key = String(max_length=255)
    status = String(choices=AttemptStatus, default=AttemptStatus.INITIATED.value)
    failure_reason = String(max_length=500)
    initiated_at = DateTime(required=True)
    closed_at = DateTime()


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@checkout.aggregate
class Order:
    order_no = String(required=True, max_length=50)
    customer_id = Identifier(required=True)
    customer_email = String(max_length=255)
    status = String(choices=OrderStatus, default=OrderStatus.PENDING.value)
    items = HasMany(OrderItem)
    status_history = HasMany(OrderStatusHistory)
    attempts = HasMany(PaymentAttempt)
    shipping_address = ValueObject(ShippingAddress)
    shipping_zone = String(max_length=50)
    pricing = ValueObject(OrderPricing)
    promo_id = Identifier()
    promo_code = String(max_length=50)
    customer_note = Text()

    # Gateway references
    tran_id = String(max_length=255)
    session_key = String(max_length=255)
    val_id = String(max_length=255)
    bank_tran_id = String(max_length=255)
    payment_method = String(max_length=100)

    estimated_delivery = DateTime()
    created_at = DateTime()
    updated_at = DateTime()
    payment_initiated_at = DateTime()
    paid_at = DateTime()
    processing_at = DateTime()
    shipped_at = DateTime()
    delivered_at = DateTime()
    cancelled_at = DateTime()
    refunded_at = DateTime()

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def place(
        cls,
        customer_id,
        shipping_address: dict,
        breakdown,
        items_data,
        customer_email=None,
        promo_id=None,
        customer_note=None,
    ):
        """Create a PENDING order from a priced cart.

        Args:
            customer_id: The customer placing the order.
            shipping_address: Dict with full_name, phone, address1, address2,
                city, post_code.
            breakdown: ``PriceBreakdown`` from the pricing engine.
            items_data: Dicts with product_id, product_name, product_image,
                brand_name, vendor_id, unit_price, quantity.
        """
        now = datetime.now(UTC)
        order = cls(
            order_no=generate_order_no(now),
            customer_id=customer_id,
            customer_email=customer_email,
            status=OrderStatus.PENDING.value,
            shipping_address=ShippingAddress(**shipping_address),
            shipping_zone=breakdown.zone.name,
            pricing=OrderPricing(
                subtotal=breakdown.subtotal,
                shipping=breakdown.shipping,
                discount=breakdown.discount,
                vat=breakdown.vat,
                total=breakdown.total,
                commission=breakdown.commission,
            ),
            promo_id=promo_id,
            promo_code=breakdown.promo_code,
            customer_note=customer_note,
            estimated_delivery=now + timedelta(days=breakdown.zone.delivery_days),
            created_at=now,
            updated_at=now,
        )

        for data in items_data:
            order.add_items(
                OrderItem(
                    **data,
                    line_total=data["unit_price"] * data["quantity"],
                )
            )
        order._record(OrderStatus.PENDING, "Order created, awaiting payment", now)

        order.raise_(
            OrderPlaced(
                order_id=str(order.id),
                order_no=order.order_no,
                customer_id=str(customer_id),
                total=breakdown.total,
                promo_code=breakdown.promo_code,
                placed_at=now,
            )
        )
        return order

    # -------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------
    @property
    def total(self) -> int:
        return self.pricing.total if self.pricing else 0

    @property
    def current_status(self) -> OrderStatus:
        return OrderStatus(self.status)

    @property
    def is_paid(self) -> bool:
        return self.current_status == OrderStatus.PAID

    @property
    def is_settleable(self) -> bool:
        """Whether a gateway notification may still act on this order."""
        return self.current_status in _SETTLEABLE_STATES

    def belongs_to(self, customer_id) -> bool:
        return str(self.customer_id) == str(customer_id)

    def attempt_for(self, tran_id: str) -> PaymentAttempt | None:
        return next((a for a in self.attempts if a.tran_id == tran_id), None)

    def history(self) -> list:
        """Status history, oldest first."""
        return sorted(self.status_history, key=lambda h: h.created_at)

    def _assert_can_transition(self, target_status: OrderStatus) -> None:
        current = self.current_status
        if target_status not in _VALID_TRANSITIONS.get(current, set()):
            raise ValidationError({"status": [f"Cannot transition from {current.value} to {target_status.value}"]})

    def _record(self, status: OrderStatus, note: str, now: datetime) -> None:
        self.add_status_history(OrderStatusHistory(status=status.value, note=note, created_at=now))

    def _transition(self, target_status: OrderStatus, note: str, now: datetime) -> None:
        self._assert_can_transition(target_status)
        self.status = target_status.value
        self.updated_at = now
        self._record(target_status, note, now)

    def _close_attempt(self, tran_id: str, status: AttemptStatus, reason: str | None, now: datetime) -> None:
        attempt = self.attempt_for(tran_id)
        if attempt is None or attempt.status != AttemptStatus.INITIATED.value:
            return
        attempt.status = status.value
        attempt.failure_reason = reason
        attempt.closed_at = now

    # -------------------------------------------------------------------
    # Payment session
    # -------------------------------------------------------------------
    def begin_payment(self, tran_id: str) -> None:
        """Open a gateway session under ``tran_id``."""
        if self.attempt_for(tran_id) is not None:
            raise ValidationError({"tran_id": [f"Transaction id {tran_id} has already been used"]})

        now = datetime.now(UTC)
        self._transition(OrderStatus.PAYMENT_INITIATED, "Payment session initiated", now)
        self.add_attempts(PaymentAttempt(tran_id=tran_id, initiated_at=now))
        self.tran_id = tran_id
        self.session_key = None
        self.payment_initiated_at = now

        self.raise_(
            PaymentSessionStarted(
                order_id=str(self.id),
                tran_id=tran_id,
                amount=self.total,
                started_at=now,
            )
        )

    def record_session(self, tran_id: str, session_key: str) -> None:
        """Store the session key the gateway returned for ``tran_id``."""
        attempt = self.attempt_for(tran_id)
        if attempt is None:
            raise ValidationError({"tran_id": [f"Unknown transaction id {tran_id}"]})
        attempt.session_key = session_key
        if self.tran_id == tran_id:
            self.session_key = session_key
        self.updated_at = datetime.now(UTC)

    def abandon_payment(self, tran_id: str, reason: str) -> None:
        """Give up on a session the gateway never opened; the order is payable again."""
        now = datetime.now(UTC)
        self._close_attempt(tran_id, AttemptStatus.ABANDONED, reason, now)
        if self.current_status == OrderStatus.PAYMENT_INITIATED and self.tran_id == tran_id:
            self._transition(OrderStatus.PENDING, f"Payment initialization failed: {reason}", now)

        self.raise_(
            PaymentSessionAbandoned(
                order_id=str(self.id),
                tran_id=tran_id,
                reason=reason,
                abandoned_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Settlement
    # -------------------------------------------------------------------
    def mark_paid(self, tran_id: str, val_id=None, bank_tran_id=None, payment_method=None) -> None:
        now = datetime.now(UTC)
        method = payment_method or "SSLCommerz"
        self._transition(OrderStatus.PAID, f"Payment received via {method}", now)
        self._close_attempt(tran_id, AttemptStatus.SETTLED, None, now)
        self.val_id = val_id
        self.bank_tran_id = bank_tran_id
        self.payment_method = method
        self.paid_at = now

        self.raise_(
            OrderPaid(
                order_id=str(self.id),
                customer_id=str(self.customer_id),
                tran_id=tran_id,
                val_id=val_id,
                amount=self.total,
                payment_method=method,
                paid_at=now,
            )
        )

    def record_payment_failure(self, tran_id: str, reason: str) -> bool:
        """Record a failed or cancelled payment.

        A PAYMENT_INITIATED order falls back to PENDING; an order that is already
        PENDING only gains a history row. Returns True when the status changed.
        """
        now = datetime.now(UTC)
        note = f"Payment failed: {reason}"
        self._close_attempt(tran_id, AttemptStatus.FAILED, reason, now)

        reverted = self.current_status == OrderStatus.PAYMENT_INITIATED
        if reverted:
            self._transition(OrderStatus.PENDING, note, now)
        else:
            self._record(self.current_status, note, now)
            self.updated_at = now

        self.raise_(
            OrderPaymentFailed(
                order_id=str(self.id),
                tran_id=tran_id,
                reason=reason,
                failed_at=now,
            )
        )
        return reverted

    def reject_payment_notification(self, tran_id: str, reason: str) -> bool:
        """Record a gateway notification that failed verification.

        A PAYMENT_INITIATED order falls back to PENDING so the customer can pay
        again; a PENDING order only gains a history row. A PAID order is never
        touched. Returns True when the status changed.
        """
        current = self.current_status
        if current not in (OrderStatus.PENDING, OrderStatus.PAYMENT_INITIATED):
            return False

        now = datetime.now(UTC)
        note = f"Payment verification failed: {reason}"
        self._close_attempt(tran_id, AttemptStatus.FAILED, reason, now)
        if current == OrderStatus.PAYMENT_INITIATED:
            self._transition(OrderStatus.PENDING, note, now)
            return True

        self._record(current, note, now)
        self.updated_at = now
        return False

    def assert_refundable(self, amount: int) -> None:
        self._assert_can_transition(OrderStatus.REFUNDED)
        if amount <= 0 or amount > self.total:
            raise ValidationError({"amount": [f"Refund amount must be between 0.01 and {format_taka(self.total)}"]})

    def refund(self, amount: int, reason: str) -> None:
        self.assert_refundable(amount)

        now = datetime.now(UTC)
        self._transition(OrderStatus.REFUNDED, f"Refund initiated: ৳{format_taka(amount)} - {reason}", now)
        self.refunded_at = now

        self.raise_(
            OrderRefunded(
                order_id=str(self.id),
                amount=amount,
                reason=reason,
                refunded_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Fulfilment
    # -------------------------------------------------------------------
    def start_processing(self, note: str | None = None) -> None:
        now = datetime.now(UTC)
        self._transition(OrderStatus.PROCESSING, note or "Order is being prepared", now)
        self.processing_at = now
        self.raise_(OrderProcessing(order_id=str(self.id), processing_at=now))

    def ship(self, note: str | None = None) -> None:
        now = datetime.now(UTC)
        self._transition(OrderStatus.SHIPPED, note or "Order shipped", now)
        self.shipped_at = now
        self.raise_(OrderShipped(order_id=str(self.id), shipped_at=now))

    def deliver(self, note: str | None = None) -> None:
        now = datetime.now(UTC)
        self._transition(OrderStatus.DELIVERED, note or "Order delivered", now)
        self.delivered_at = now
        self.raise_(OrderDelivered(order_id=str(self.id), delivered_at=now))

    def cancel(self, reason: str | None = None) -> None:
        now = datetime.now(UTC)
        note = f"Order cancelled: {reason}" if reason else "Order cancelled"
        self._transition(OrderStatus.CANCELLED, note, now)
        if self.tran_id:
            self._close_attempt(self.tran_id, AttemptStatus.ABANDONED, "Order cancelled", now)
        self.cancelled_at = now
        self.raise_(OrderCancelled(order_id=str(self.id), reason=reason, cancelled_at=now))

"""Domain events for the Order aggregate."""

from protean.fields import DateTime, Identifier, Integer, String

from checkout.domain import checkout


@checkout.event(part_of="Order")
class OrderPlaced:
    """A customer placed an order; it awaits payment."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_no = String(required=True)
    customer_id = Identifier(required=True)
    total = Integer(required=True)
    promo_code = String()
    placed_at = DateTime(required=True)


@checkout.event(part_of="Order")
class PaymentSessionStarted:
    """A gateway session was opened for the order under a fresh tran_id."""

    __version__ = 1

    order_id = Identifier(required=True)
    tran_id = String(required=True)
    amount = Integer(required=True)
    started_at = DateTime(required=True)


@checkout.event(part_of="Order")
class PaymentSessionAbandoned:
    """The gateway refused or could not be reached; the order is payable again."""

    __version__ = 1

    order_id = Identifier(required=True)
    tran_id = String(required=True)
    reason = String()
    abandoned_at = DateTime(required=True)


@checkout.event(part_of="Order")
class OrderPaid:
    __version__ = 1

    order_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    tran_id = String(required=True)
    val_id = String()
    amount = Integer(required=True)
    payment_method = String()
    paid_at = DateTime(required=True)


@checkout.event(part_of="Order")
class OrderPaymentFailed:
    __version__ = 1

    order_id = Identifier(required=True)
    tran_id = String()
    reason = String()
    failed_at = DateTime(required=True)


@checkout.event(part_of="Order")
class OrderRefunded:
    __version__ = 1

    order_id = Identifier(required=True)
    amount = Integer(required=True)
    reason = String()
    refunded_at = DateTime(required=True)


@checkout.event(part_of="Order")
class OrderProcessing:
    __version__ = 1

    order_id = Identifier(required=True)
    processing_at = DateTime(required=True)


@checkout.event(part_of="Order")
class OrderShipped:
    __version__ = 1

    order_id = Identifier(required=True)
    shipped_at = DateTime(required=True)


@checkout.event(part_of="Order")
class OrderDelivered:
    __version__ = 1

    order_id = Identifier(required=True)
    delivered_at = DateTime(required=True)


@checkout.event(part_of="Order")
class OrderCancelled:
    __version__ = 1

    order_id = Identifier(required=True)
    reason = String()
    cancelled_at = DateTime(required=True)

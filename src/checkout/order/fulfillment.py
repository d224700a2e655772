"""Order fulfilment and cancellation: commands and handler.

Paid orders move through processing, shipment and delivery. Unpaid orders
(PENDING or PAYMENT_INITIATED) can be cancelled.
"""

from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from checkout.domain import checkout
from checkout.order.order import Order


@checkout.command(part_of="Order")
class MarkProcessing:
    """The vendor has started preparing a paid order."""

    order_id = Identifier(required=True)
    note = String(max_length=500)


@checkout.command(part_of="Order")
class MarkShipped:
    order_id = Identifier(required=True)
    note = String(max_length=500)


@checkout.command(part_of="Order")
class MarkDelivered:
    order_id = Identifier(required=True)
    note = String(max_length=500)


@checkout.command(part_of="Order")
class CancelOrder:
    """Cancel an order that has not been paid."""

    order_id = Identifier(required=True)
    reason = String(max_length=500)


@checkout.command_handler(part_of=Order)
class OrderFulfilmentHandler:
    @handle(MarkProcessing)
    def mark_processing(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.start_processing(command.note)
        repo.add(order)

    @handle(MarkShipped)
    def mark_shipped(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.ship(command.note)
        repo.add(order)

    @handle(MarkDelivered)
    def mark_delivered(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.deliver(command.note)
        repo.add(order)

    @handle(CancelOrder)
    def cancel_order(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.cancel(command.reason)
        repo.add(order)

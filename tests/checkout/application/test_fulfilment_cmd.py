"""Application tests for fulfilment and cancellation commands."""

import pytest
from checkout.order.fulfillment import CancelOrder, MarkDelivered, MarkProcessing, MarkShipped
from checkout.order.order import Order, OrderStatus
from checkout.payment.status import payment_status
from protean import current_domain
from protean.exceptions import ValidationError


def _status(order_id):
    return current_domain.repository_for(Order).get(order_id).status


class TestFulfilment:
    def test_paid_order_is_delivered(self, paid_order_id):
        current_domain.process(MarkProcessing(order_id=paid_order_id), asynchronous=False)
        current_domain.process(MarkShipped(order_id=paid_order_id, note="Handed to Pathao"), asynchronous=False)
        current_domain.process(MarkDelivered(order_id=paid_order_id), asynchronous=False)

        order = current_domain.repository_for(Order).get(paid_order_id)
        assert order.status == OrderStatus.DELIVERED.value
        assert any(h.note == "Handed to Pathao" for h in order.history())

    def test_unpaid_order_cannot_ship(self, order_id):
        with pytest.raises(ValidationError):
            current_domain.process(MarkShipped(order_id=order_id), asynchronous=False)
        assert _status(order_id) == OrderStatus.PENDING.value


class TestCancellation:
    def test_pending_order_is_cancelled(self, order_id):
        current_domain.process(CancelOrder(order_id=order_id, reason="Ordered twice"), asynchronous=False)
        assert _status(order_id) == OrderStatus.CANCELLED.value

    def test_paid_order_cannot_be_cancelled(self, paid_order_id):
        with pytest.raises(ValidationError):
            current_domain.process(CancelOrder(order_id=paid_order_id), asynchronous=False)
        assert _status(paid_order_id) == OrderStatus.PAID.value


class TestPaymentStatus:
    def test_awaiting_payment(self, session):
        assert payment_status(session.tran_id) == {
            "orderId": session.order_id,
            "orderNo": session.order_no,
            "status": "PAYMENT_INITIATED",
            "paid": False,
        }

    def test_paid(self, paid_order_id):
        order = current_domain.repository_for(Order).get(paid_order_id)
        assert payment_status(order.tran_id)["paid"] is True

    def test_stays_paid_through_fulfilment(self, paid_order_id):
        current_domain.process(MarkProcessing(order_id=paid_order_id), asynchronous=False)
        order = current_domain.repository_for(Order).get(paid_order_id)
        assert payment_status(order.tran_id) == {
            "orderId": paid_order_id,
            "orderNo": order.order_no,
            "status": "PROCESSING",
            "paid": True,
        }

    def test_unknown_transaction(self):
        assert payment_status("paaniyo_missing_1") is None

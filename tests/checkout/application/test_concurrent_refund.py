"""Concurrent refund requests for one order reach the gateway once."""

import threading

from checkout.domain import checkout
from checkout.notification.notification import Notification
from checkout.order.order import Order, OrderStatus
from checkout.payment.refund import refund_order
from checkout.shared.errors import PaymentGatewayError
from protean import current_domain
from protean.exceptions import ValidationError

THREADS = 3


def _refund_concurrently(order_id, amount):
    barrier = threading.Barrier(THREADS)
    results = []
    raised = []
    guard = threading.Lock()

    def request():
        with checkout.domain_context():
            barrier.wait()
            try:
                result = refund_order(order_id, "Jar arrived cracked", amount=amount)
            except Exception as exc:  # asserted on by the caller
                with guard:
                    raised.append(exc)
            else:
                with guard:
                    results.append(result)

    threads = [threading.Thread(target=request) for _ in range(THREADS)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)

    return results, raised


def test_same_refund_requested_by_many_threads(paid_order_id, gateway):
    results, raised = _refund_concurrently(paid_order_id, 50_000)

    assert results == [{"status": "success", "message": "Refund of ৳500.00 initiated"}]
    assert len(raised) == THREADS - 1
    assert all(isinstance(exc, ValidationError) for exc in raised)
    assert len([c for c in gateway.calls if c["method"] == "refund"]) == 1
    assert current_domain.repository_for(Order).get(paid_order_id).status == OrderStatus.REFUNDED.value

    notifications = current_domain.repository_for(Notification)._dao.query.all().items
    assert len([n for n in notifications if n.notification_type == "order_refunded"]) == 1


def test_refusal_leaves_the_order_refundable(paid_order_id, gateway):
    gateway.configure(should_succeed=False, failure_reason="Refund window closed")

    results, raised = _refund_concurrently(paid_order_id, 50_000)

    assert results == []
    assert len(raised) == THREADS
    assert all(isinstance(exc, PaymentGatewayError) for exc in raised)
    assert current_domain.repository_for(Order).get(paid_order_id).status == OrderStatus.PAID.value

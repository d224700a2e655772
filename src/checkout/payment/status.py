"""Payment status polling for the returning browser."""

from protean.utils.globals import current_domain

from checkout.order.order import Order


def payment_status(tran_id: str) -> dict | None:
    """Provisional status of the order behind ``tran_id``, or None if unknown."""
    order = current_domain.repository_for(Order).find_by_tran_id(tran_id)
    if order is None:
        return None
    return {
        "orderId": str(order.id),
        "orderNo": order.order_no,
        "status": order.status,
        "paid": order.is_paid or order.paid_at is not None,
    }

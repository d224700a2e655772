"""Notification emitter.

One function per notification kind. Each writes through the current unit of
work, so a notification exists only if the state change it announces commits.
"""

import structlog
from protean.utils.globals import current_domain

from checkout.notification.notification import Notification, NotificationType
from checkout.shared.money import format_taka

logger = structlog.get_logger(__name__)


def _emit(order, notification_type: NotificationType, title: str, message: str, **data) -> Notification:
    notification = Notification.create(
        user_id=order.customer_id,
        notification_type=notification_type,
        title=title,
        message=message,
        data={"orderId": str(order.id), **data},
    )
    current_domain.repository_for(Notification).add(notification)
    logger.info(
        "Notification emitted",
        notification_type=notification_type.value,
        user_id=str(order.customer_id),
        order_id=str(order.id),
    )
    return notification


def notify_order_paid(order, amount: int) -> Notification:
    return _emit(
        order,
        NotificationType.ORDER_PAID,
        "Payment Successful",
        f"Your payment of ৳{format_taka(amount)} for order #{order.order_no} was successful.",
    )


def notify_payment_failed(order, reason: str | None = None) -> Notification:
    return _emit(
        order,
        NotificationType.ORDER_PAYMENT_FAILED,
        "Payment Failed",
        f"Payment for order #{order.order_no} failed. Please try again.",
        reason=reason,
    )


def notify_order_refunded(order, amount: int) -> Notification:
    return _emit(
        order,
        NotificationType.ORDER_REFUNDED,
        "Refund Initiated",
        f"A refund of ৳{format_taka(amount)} for order #{order.order_no} has been initiated.",
    )

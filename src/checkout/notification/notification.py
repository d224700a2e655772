"""User-facing notifications written by the checkout.

Checkout only writes these records; delivery (in-app feed, email, push) is
handled by the notification service that reads them.
"""

import json
from datetime import UTC, datetime
from enum import Enum

from protean.fields import DateTime, Identifier, String, Text

from checkout.domain import checkout


class NotificationType(Enum):
    ORDER_PAID = "order_paid"
    ORDER_PAYMENT_FAILED = "order_payment_failed"
    ORDER_REFUNDED = "order_refunded"


@checkout.aggregate
class Notification:
    user_id = Identifier(required=True)
    notification_type = String(choices=NotificationType, required=True)
    title = String(required=True, max_length=255)
    message = Text(required=True)
    data = Text()  # JSON
    created_at = DateTime()

    @classmethod
    def create(cls, user_id, notification_type: NotificationType, title: str, message: str, data=None):
        return cls(
            user_id=user_id,
            notification_type=notification_type.value,
            title=title,
            message=message,
            data=json.dumps(data or {}),
            created_at=datetime.now(UTC),
        )

    @property
    def payload(self) -> dict:
        return json.loads(self.data) if self.data else {}

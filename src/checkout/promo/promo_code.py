"""Promo codes redeemable at checkout.

Codes are administered elsewhere; checkout validates them against a subtotal,
computes the discount and counts one usage per order that applies them.
"""

from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Float, Integer, String

from checkout.domain import checkout
from checkout.shared.errors import PromoRejected
from checkout.shared.money import format_taka, percent_of, to_paisa


class DiscountType(Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


@checkout.aggregate
class PromoCode:
    """A discount code.

    ``discount_value`` is a percentage for percentage codes and a taka amount
    for fixed codes. ``max_discount`` and ``min_order`` are paisa.
    """

    code = String(required=True, max_length=50, unique=True)
    discount_type = String(choices=DiscountType, required=True)
    discount_value = Float(required=True, min_value=0.0)
    max_discount = Integer(min_value=0)
    min_order = Integer(min_value=0)
    usage_limit = Integer(min_value=0)
    usage_count = Integer(default=0, min_value=0)
    is_active = Boolean(default=True)
    expires_at = DateTime()

    @invariant.post
    def usage_cannot_exceed_limit(self):
        if self.usage_limit is not None and (self.usage_count or 0) > self.usage_limit:
            raise ValidationError({"usage_count": ["Promo code usage limit reached"]})

    @invariant.post
    def percentage_cannot_exceed_hundred(self):
        if self.discount_type == DiscountType.PERCENTAGE.value and self.discount_value > 100:
            raise ValidationError({"discount_value": ["Percentage discount cannot exceed 100%"]})

    @staticmethod
    def normalize(code: str) -> str:
        return code.strip().upper()

    def is_expired(self, now: datetime | None = None) -> bool:
        if self.expires_at is None:
            return False
        now = now or datetime.now(UTC)
        expires_at = self.expires_at
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=UTC)
        return expires_at <= now

    def ensure_redeemable(self, subtotal: int, now: datetime | None = None) -> None:
        """Raise ``PromoRejected`` unless the code applies to ``subtotal`` right now."""
        if not self.is_active:
            raise PromoRejected("This promo code is no longer active", kind="promo_inactive")
        if self.is_expired(now):
            raise PromoRejected("This promo code has expired", kind="promo_expired")
        if self.usage_limit is not None and (self.usage_count or 0) >= self.usage_limit:
            raise PromoRejected("Promo code usage limit reached", kind="promo_usage_limit")
        if self.min_order and subtotal < self.min_order:
            raise PromoRejected(
                f"Minimum order of ৳{format_taka(self.min_order)} required",
                kind="promo_min_order",
            )

    def discount_for(self, subtotal: int) -> int:
        """Discount in paisa, capped by ``max_discount`` and by the subtotal itself."""
        value = Decimal(repr(self.discount_value))
        if self.discount_type == DiscountType.PERCENTAGE.value:
            discount = percent_of(subtotal, value / 100)
        else:
            discount = to_paisa(value)

        if self.max_discount is not None:
            discount = min(discount, self.max_discount)
        return max(0, min(discount, subtotal))

    def record_usage(self) -> None:
        self.usage_count = (self.usage_count or 0) + 1

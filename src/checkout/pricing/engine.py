"""Order pricing.

``price_cart`` is a pure function: it reads nothing but its arguments, so the
same cart, city, promo and clock always price the same way. All amounts are
integer paisa; every percentage step rounds half-up to a whole paisa.

    subtotal  = sum(unit_price * quantity)
    shipping  = zone fee, waived above the zone threshold or for free-shipping lines
    discount  = promo discount, capped by max_discount and by the subtotal
    vat       = (subtotal - discount) * VAT_RATE
    total     = subtotal - discount + vat + shipping
    commission = total * commission_rate
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from checkout.pricing.zones import ShippingZone, resolve_zone
from checkout.shared.errors import PromoRejected
from checkout.shared.money import format_taka, percent_of

VAT_RATE = Decimal("0.15")
DEFAULT_COMMISSION_RATE = Decimal("0.12")


@dataclass(frozen=True)
class CartLine:
    """A cart line resolved against the live product."""

    product_id: str
    unit_price: int
    quantity: int
    free_shipping: bool = False

    @property
    def line_total(self) -> int:
        return self.unit_price * self.quantity


@dataclass(frozen=True)
class PriceBreakdown:
    subtotal: int
    shipping: int
    discount: int
    vat: int
    total: int
    commission: int
    zone: ShippingZone
    promo_code: str | None = None

    def summary(self) -> dict:
        """Two-decimal taka strings, as shown to the customer."""
        return {
            "subtotal": format_taka(self.subtotal),
            "shipping": format_taka(self.shipping),
            "discount": format_taka(self.discount),
            "vat": format_taka(self.vat),
            "total": format_taka(self.total),
        }


def price_cart(
    lines,
    city: str | None,
    promo_code: str | None = None,
    promo=None,
    commission_rate: Decimal = DEFAULT_COMMISSION_RATE,
    now: datetime | None = None,
) -> PriceBreakdown:
    """Price a cart for delivery to ``city``.

    ``promo`` is the PromoCode record resolved for ``promo_code`` (None when no
    record exists). A supplied code that cannot be applied raises
    ``PromoRejected``; it is never silently dropped.
    """
    subtotal = sum(line.line_total for line in lines)

    zone = resolve_zone(city)
    if any(line.free_shipping for line in lines):
        shipping = 0
    else:
        shipping = zone.shipping_for(subtotal)

    discount = 0
    applied_code = None
    if promo_code and promo_code.strip():
        if promo is None:
            raise PromoRejected("Invalid promo code", kind="promo_not_found")
        promo.ensure_redeemable(subtotal, now)
        discount = promo.discount_for(subtotal)
        applied_code = promo.code

    taxable = subtotal - discount
    vat = percent_of(taxable, VAT_RATE)
    total = taxable + vat + shipping
    commission = percent_of(total, commission_rate)

    return PriceBreakdown(
        subtotal=subtotal,
        shipping=shipping,
        discount=discount,
        vat=vat,
        total=total,
        commission=commission,
        zone=zone,
        promo_code=applied_code,
    )

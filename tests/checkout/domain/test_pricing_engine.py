"""Tests for the pure cart pricing function."""

from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest
from checkout.pricing.engine import CartLine, price_cart
from checkout.promo.promo_code import PromoCode
from checkout.shared.errors import PromoRejected


def _lines(*prices, free_shipping=False):
    return [
        CartLine(product_id=f"prod-{i}", unit_price=price, quantity=1, free_shipping=free_shipping)
        for i, price in enumerate(prices)
    ]


def _promo(**kwargs):
    defaults = {"code": "SAVE5", "discount_type": "percentage", "discount_value": 5.0}
    defaults.update(kwargs)
    return PromoCode(**defaults)


class TestReferenceOrder:
    """A ৳1000 jar to Dhaka with a 5% code comes to ৳1092.50."""

    def test_breakdown(self):
        breakdown = price_cart(_lines(100_000), city="Dhaka", promo_code="SAVE5", promo=_promo())
        assert breakdown.subtotal == 100_000
        assert breakdown.discount == 5_000
        assert breakdown.vat == 14_250
        assert breakdown.shipping == 0
        assert breakdown.total == 109_250
        assert breakdown.commission == 13_110
        assert breakdown.zone.name == "dhaka"
        assert breakdown.promo_code == "SAVE5"

    def test_summary_is_formatted_in_taka(self):
        breakdown = price_cart(_lines(100_000), city="Dhaka", promo_code="SAVE5", promo=_promo())
        assert breakdown.summary() == {
            "subtotal": "1000.00",
            "shipping": "0.00",
            "discount": "50.00",
            "vat": "142.50",
            "total": "1092.50",
        }

    def test_pricing_is_deterministic(self):
        first = price_cart(_lines(100_000), city="Dhaka", promo_code="SAVE5", promo=_promo())
        second = price_cart(_lines(100_000), city="Dhaka", promo_code="SAVE5", promo=_promo())
        assert first == second


class TestTotals:
    def test_total_balances(self):
        breakdown = price_cart(_lines(33_333, 12_345), city="Rajshahi")
        assert breakdown.total == breakdown.subtotal - breakdown.discount + breakdown.vat + breakdown.shipping

    def test_quantity_multiplies_unit_price(self):
        lines = [CartLine(product_id="prod-1", unit_price=6_500, quantity=4)]
        assert price_cart(lines, city="Dhaka").subtotal == 26_000

    def test_commission_rate_is_a_parameter(self):
        breakdown = price_cart(_lines(100_000), city="Dhaka", commission_rate=Decimal("0.10"))
        assert breakdown.total == 115_000
        assert breakdown.commission == 11_500

    def test_vat_is_on_discounted_subtotal(self):
        breakdown = price_cart(
            _lines(100_000),
            city="Dhaka",
            promo_code="FLAT100",
            promo=_promo(code="FLAT100", discount_type="fixed", discount_value=100.0),
        )
        assert breakdown.discount == 10_000
        assert breakdown.vat == 13_500


class TestShipping:
    def test_nationwide_fee_below_threshold(self):
        breakdown = price_cart(_lines(100_000), city="Sylhet")
        assert breakdown.zone.name == "nationwide"
        assert breakdown.shipping == 12_000
        assert breakdown.total == 100_000 + 15_000 + 12_000

    def test_nationwide_free_at_threshold(self):
        assert price_cart(_lines(500_000), city="Sylhet").shipping == 0

    def test_chittagong_alias(self):
        breakdown = price_cart(_lines(100_000), city="Chattogram")
        assert breakdown.zone.name == "chittagong"
        assert breakdown.shipping == 8_000

    def test_free_shipping_product_waives_fee(self):
        assert price_cart(_lines(100_000, free_shipping=True), city="Sylhet").shipping == 0

    def test_threshold_uses_pre_discount_subtotal(self):
        promo = _promo(code="HALF", discount_value=50.0)
        breakdown = price_cart(_lines(300_000), city="Chittagong", promo_code="HALF", promo=promo)
        assert breakdown.discount == 150_000
        assert breakdown.shipping == 0


class TestPromoApplication:
    def test_blank_code_is_ignored(self):
        breakdown = price_cart(_lines(100_000), city="Dhaka", promo_code="   ")
        assert breakdown.discount == 0
        assert breakdown.promo_code is None

    def test_unknown_code_is_rejected(self):
        with pytest.raises(PromoRejected) as exc:
            price_cart(_lines(100_000), city="Dhaka", promo_code="NOPE", promo=None)
        assert exc.value.kind == "promo_not_found"
        assert exc.value.message == "Invalid promo code"

    def test_max_discount_caps_percentage(self):
        promo = _promo(discount_value=50.0, max_discount=10_000)
        breakdown = price_cart(_lines(100_000), city="Dhaka", promo_code="SAVE5", promo=promo)
        assert breakdown.discount == 10_000

    def test_discount_never_exceeds_subtotal(self):
        promo = _promo(code="BIG", discount_type="fixed", discount_value=2000.0)
        breakdown = price_cart(_lines(100_000), city="Dhaka", promo_code="BIG", promo=promo)
        assert breakdown.discount == 100_000
        assert breakdown.vat == 0
        assert breakdown.total == 0

    def test_below_minimum_order(self):
        promo = _promo(min_order=200_000)
        with pytest.raises(PromoRejected) as exc:
            price_cart(_lines(100_000), city="Dhaka", promo_code="SAVE5", promo=promo)
        assert exc.value.kind == "promo_min_order"
        assert exc.value.message == "Minimum order of ৳2000.00 required"

    def test_expired_code(self):
        now = datetime.now(UTC)
        promo = _promo(expires_at=now - timedelta(days=1))
        with pytest.raises(PromoRejected) as exc:
            price_cart(_lines(100_000), city="Dhaka", promo_code="SAVE5", promo=promo, now=now)
        assert exc.value.kind == "promo_expired"

    def test_inactive_code(self):
        with pytest.raises(PromoRejected) as exc:
            price_cart(_lines(100_000), city="Dhaka", promo_code="SAVE5", promo=_promo(is_active=False))
        assert exc.value.kind == "promo_inactive"

    def test_exhausted_code(self):
        promo = _promo(usage_limit=3, usage_count=3)
        with pytest.raises(PromoRejected) as exc:
            price_cart(_lines(100_000), city="Dhaka", promo_code="SAVE5", promo=promo)
        assert exc.value.kind == "promo_usage_limit"

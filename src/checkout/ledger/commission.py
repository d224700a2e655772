"""Platform commission bookkeeping.

When an order is paid its commission is booked per vendor, in proportion to
each vendor's share of the order's line totals. Shares are allocated by the
largest-remainder method so they always add up to the order commission
exactly. Entries are a record for the payout service, not a cleared balance.
"""

from datetime import UTC, datetime

from protean.fields import DateTime, Identifier, Integer, String

from checkout.domain import checkout

UNASSIGNED_VENDOR = "unassigned"


@checkout.aggregate
class CommissionEntry:
    order_id = Identifier(required=True)
    vendor_id = String(required=True, max_length=255)
    gross = Integer(required=True, min_value=0)
    commission = Integer(required=True, min_value=0)
    booked_at = DateTime(required=True)


def allocate(total: int, weights: dict[str, int]) -> dict[str, int]:
    """Split ``total`` paisa across ``weights`` keys, proportionally and exactly.

    >>> allocate(100, {"a": 1, "b": 1, "c": 1})
    {'a': 34, 'b': 33, 'c': 33}
    """
    if not weights:
        return {}

    keys = sorted(weights)
    weight_sum = sum(weights.values())
    if weight_sum == 0:
        return {key: (total if i == 0 else 0) for i, key in enumerate(keys)}

    shares = {}
    remainders = []
    for key in keys:
        share, remainder = divmod(total * weights[key], weight_sum)
        shares[key] = share
        remainders.append((remainder, key))

    leftover = total - sum(shares.values())
    for _, key in sorted(remainders, key=lambda r: (-r[0], r[1]))[:leftover]:
        shares[key] += 1
    return shares


def commission_entries_for(order) -> list[CommissionEntry]:
    """Commission rows for a freshly paid order, one per vendor."""
    gross: dict[str, int] = {}
    for item in order.items:
        vendor = str(item.vendor_id) if item.vendor_id else UNASSIGNED_VENDOR
        gross[vendor] = gross.get(vendor, 0) + item.line_total

    now = datetime.now(UTC)
    shares = allocate(order.pricing.commission, gross)
    return [
        CommissionEntry(
            order_id=str(order.id),
            vendor_id=vendor,
            gross=gross[vendor],
            commission=shares[vendor],
            booked_at=now,
        )
        for vendor in sorted(gross)
    ]

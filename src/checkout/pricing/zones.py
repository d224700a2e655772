"""Shipping zones keyed by the delivery city."""

from dataclasses import dataclass


@dataclass(frozen=True)
class ShippingZone:
    name: str
    fee: int  # paisa
    free_above: int  # paisa; subtotals at or above ship free
    delivery_days: int
    aliases: tuple[str, ...] = ()

    def matches(self, city: str) -> bool:
        return any(alias in city for alias in self.aliases)

    def shipping_for(self, subtotal: int) -> int:
        return 0 if subtotal >= self.free_above else self.fee


NATIONWIDE = ShippingZone("nationwide", fee=12_000, free_above=500_000, delivery_days=3)

# Checked in order; the first zone whose alias appears in the city wins.
ZONES = (
    ShippingZone("dhaka", fee=0, free_above=200_000, delivery_days=1, aliases=("dhaka",)),
    ShippingZone(
        "chittagong",
        fee=8_000,
        free_above=300_000,
        delivery_days=2,
        aliases=("chittagong", "chattogram"),
    ),
)


def resolve_zone(city: str | None) -> ShippingZone:
    """Zone for a free-text city, falling back to nationwide delivery."""
    normalized = (city or "").strip().lower()
    for zone in ZONES:
        if zone.matches(normalized):
            return zone
    return NATIONWIDE


"""Fixed-point BDT arithmetic.

Amounts are carried as integer paisa (1 BDT = 100 paisa) everywhere inside the
domain. Conversion to and from decimal taka strings happens only at the edges:
API payloads, gateway requests and gateway responses.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

PAISA_PER_TAKA = 100

_ONE = Decimal("1")


def round_paisa(value: Decimal) -> int:
    """Round a fractional paisa amount half-up to a whole paisa."""
    return int(value.quantize(_ONE, rounding=ROUND_HALF_UP))


def to_paisa(amount) -> int:
    """Convert a taka amount (str, int, float or Decimal) to integer paisa.

    Floats are routed through ``str`` so that ``0.1`` becomes exactly 10 paisa.
    Raises ``ValueError`` for values that are not numbers.
    """
    if isinstance(amount, float):
        amount = repr(amount)
    try:
        taka = Decimal(str(amount).strip())
    except (InvalidOperation, ValueError) as exc:
        raise ValueError(f"Not a monetary amount: {amount!r}") from exc
    if not taka.is_finite():
        raise ValueError(f"Not a monetary amount: {amount!r}")
    return round_paisa(taka * PAISA_PER_TAKA)


def to_taka(paisa: int) -> Decimal:
    return (Decimal(paisa) / PAISA_PER_TAKA).quantize(Decimal("0.01"))


def format_taka(paisa: int) -> str:
    """Render paisa as a two-decimal taka string, e.g. ``109250 -> "1092.50"``."""
    return f"{to_taka(paisa):.2f}"


def percent_of(paisa: int, rate: Decimal) -> int:
    """Apply a fractional rate (``Decimal("0.15")`` for 15%) to an amount."""
    return round_paisa(Decimal(paisa) * rate)

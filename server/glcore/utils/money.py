from decimal import Decimal, ROUND_HALF_UP

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def quantize_money(value: Decimal | float | int | str | None) -> Decimal | None:
    if value is None:
        return None
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def to_cents(value: Decimal | int | str | None) -> int:
    """Exact integer cents for a money amount; rejects sub-cent precision."""
    if value is None:
        return 0
    amount = Decimal(str(value))
    cents = amount * 100
    if cents != cents.to_integral_value():
        raise ValueError(f"Amount {amount} has more than two decimal places.")
    return int(cents)


def from_cents(cents: int) -> Decimal:
    return (Decimal(cents) / 100).quantize(CENT)

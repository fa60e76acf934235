from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from ..exceptions import InvalidAmount

TWOPLACES = Decimal("0.01")
ZERO = Decimal("0.00")

# money columns are max_digits=18, decimal_places=2
MAX_MAGNITUDE = Decimal(10) ** 16


def to_money(value):
    """Decimal quantized to cents. Floats go through str() to avoid binary noise."""
    if value is None or isinstance(value, bool):
        raise InvalidAmount(f"Invalid amount: {value!r}")
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value).strip())
        if not amount.is_finite() or abs(amount) >= MAX_MAGNITUDE:
            raise InvalidAmount(f"Invalid amount: {value!r}")
        return amount.quantize(TWOPLACES, rounding=ROUND_HALF_UP)
    except (InvalidOperation, ValueError):
        raise InvalidAmount(f"Invalid amount: {value!r}")


def positive_money(value):
    amount = to_money(value)
    if amount <= 0:
        raise InvalidAmount(f"Amount must be > 0 (got {amount})")
    return amount

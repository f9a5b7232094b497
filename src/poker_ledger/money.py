"""Fixed-point currency helpers.

All arithmetic on amounts runs over integer cents. Amounts enter and leave the
engine as two-decimal ``Decimal`` values.
"""

from decimal import ROUND_HALF_UP, Decimal

CENT = Decimal("0.01")

# Tolerance for balance checks and settlement remainders
EPSILON = Decimal("0.01")

# Transaction limits
MIN_TRANSACTION_AMOUNT = Decimal("0.01")
MAX_TRANSACTION_AMOUNT = Decimal("10000.00")

# Settlement limits
MIN_SETTLEMENT_AMOUNT = Decimal("0.01")
MAX_SETTLEMENT_AMOUNT = Decimal("5000.00")

MAX_NOTES_LENGTH = 500


def to_cents(amount: Decimal) -> int:
    """
    Convert Decimal dollars to integer cents.
    Uses ROUND_HALF_UP for consistency.

    Args:
        amount: Dollar amount as Decimal

    Returns:
        Amount in cents (integer)
    """
    cents = Decimal(amount) * 100
    return int(cents.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_cents(cents: int) -> Decimal:
    """Convert integer cents back to a two-decimal Decimal."""
    return (Decimal(cents) / 100).quantize(CENT)


def round_to_currency(amount: Decimal) -> Decimal:
    """Round an amount to two decimal places."""
    return Decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP)


def amounts_equal(a: Decimal, b: Decimal, tolerance: Decimal = EPSILON) -> bool:
    """Check if two amounts are equal within tolerance."""
    return abs(Decimal(a) - Decimal(b)) <= tolerance


def validate_amount(
    amount: Decimal,
    min_amount: Decimal = MIN_TRANSACTION_AMOUNT,
    max_amount: Decimal = MAX_TRANSACTION_AMOUNT,
    context: str = "Amount",
) -> str | None:
    """
    Validate an amount is within bounds and has at most two decimal places.

    Returns:
        Error message if invalid, None if valid
    """
    amount = Decimal(amount)
    if not amount.is_finite():
        return f"{context} must be a valid number"
    if amount < 0:
        return f"{context} cannot be negative"
    # Zero is allowed, e.g. a cash-out after busting
    if 0 < amount < min_amount:
        return f"{context} must be at least ${min_amount:.2f}"
    if amount > max_amount:
        return f"{context} exceeds maximum of ${max_amount:.2f}"

    exponent = amount.as_tuple().exponent
    if isinstance(exponent, int) and exponent < -2:
        if amount != amount.quantize(CENT):
            return f"{context} must have at most 2 decimal places"

    return None

"""Number parsing and rounding utilities for Brazilian formats.

Two families live here:

- Lenient coercion (``to_number_br``, ``to_money``, ``to_qty``): used by every
  screen where the user types numbers into the cart or the bulk entry grid.
  ``.`` is the thousands separator and ``,`` the decimal separator; anything
  that does not parse becomes zero instead of raising.
- Strict parsing (``parse_br_decimal``, ``parse_br_number``): used by the
  catalog forms, where a bad price must be rejected.

All rounding is half-up on ``Decimal`` so the cart and the bulk entry screen
agree to the cent on the same inputs.
"""
import re
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

MONEY_STEP = Decimal('0.01')
QTY_STEP = Decimal('0.001')
MIN_QTY = Decimal('0.001')
ZERO = Decimal('0')
HUNDRED = Decimal('100')

BR_DECIMAL_PATTERN = re.compile(r"^(?:\d{1,3}(?:\.\d{3})+|\d+),\d{2}$")
BR_NUMBER_PATTERN = re.compile(r"^(?:\d{1,3}(?:\.\d{3})+|\d+)(?:,\d+)?$")


def to_decimal(value) -> Decimal:
    """Coerce a number-like value to a finite Decimal (0 otherwise). Strings are NOT BR-parsed."""
    if value is None or isinstance(value, bool):
        return ZERO
    if isinstance(value, Decimal):
        return value if value.is_finite() else ZERO
    try:
        number = Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        return ZERO
    return number if number.is_finite() else ZERO


def to_number_br(value) -> Decimal:
    """
    Parse user-typed text in Brazilian format (e.g. "1.234,5") to Decimal.

    Numbers (int, float, Decimal) are taken as they are. Empty or
    unparseable text coerces to 0.

    Examples:
        to_number_br("1.234,56") -> Decimal("1234.56")
        to_number_br("2,5") -> Decimal("2.5")
        to_number_br("abc") -> Decimal("0")
    """
    if not isinstance(value, str):
        return to_decimal(value)

    cleaned = value.strip()
    if not cleaned:
        return ZERO

    normalized = cleaned.replace('.', '').replace(',', '.', 1)
    try:
        number = Decimal(normalized)
    except (InvalidOperation, ValueError):
        return ZERO
    return number if number.is_finite() else ZERO


def round2(value) -> Decimal:
    """Round money to 2 places, half-up."""
    return to_decimal(value).quantize(MONEY_STEP, rounding=ROUND_HALF_UP)


def round3(value) -> Decimal:
    """Round quantities to 3 places, half-up."""
    return to_decimal(value).quantize(QTY_STEP, rounding=ROUND_HALF_UP)


def to_money(value) -> Decimal:
    """Typed money text -> Decimal rounded to cents."""
    return round2(to_number_br(value))


def to_qty(value) -> Decimal:
    """Typed quantity -> Decimal floored at the minimum sellable quantity (0.001)."""
    return max(MIN_QTY, to_number_br(value))


def clamp_pct(value) -> Decimal:
    """Clamp a percentage to [0, 100]."""
    pct = to_decimal(value)
    if pct < ZERO:
        return ZERO
    if pct > HUNDRED:
        return HUNDRED
    return pct


def parse_br_decimal(value: str) -> Decimal:
    """
    Parse a monetary string in Brazilian format (e.g., 1.234,56) to Decimal.

    Rules:
    - Thousands separator: dot (.)
    - Decimal separator: comma (,)
    - Exactly 2 decimal digits
    - No negatives

    Raises:
        ValueError: if the value is invalid or empty.
    """
    if value is None:
        raise ValueError('Formato inválido. Use 1.234,56')

    cleaned = value.strip()
    if not cleaned or not BR_DECIMAL_PATTERN.match(cleaned):
        raise ValueError('Formato inválido. Use 1.234,56')

    normalized = cleaned.replace('.', '').replace(',', '.')
    try:
        decimal_value = Decimal(normalized)
    except (InvalidOperation, ValueError):
        raise ValueError('Formato inválido. Use 1.234,56')

    return decimal_value.quantize(MONEY_STEP)


def parse_br_number(value) -> Decimal:
    """
    Parse a number string in Brazilian format (e.g., 1.234,56 or 89.90) to Decimal.

    More flexible than parse_br_decimal - allows variable decimal places and
    falls back to a plain "89.90" reading when the text is not BR-grouped.

    Raises:
        ValueError: if the value is invalid, empty or negative.
    """
    if value is None:
        raise ValueError('Formato inválido. Use 1.234,56 ou 1.234')
    if not isinstance(value, str):
        number = to_decimal(value)
        if number < 0:
            raise ValueError('O valor não pode ser negativo')
        return number

    cleaned = value.strip()
    if not cleaned:
        raise ValueError('Formato inválido. Use 1.234,56 ou 1.234')

    if BR_NUMBER_PATTERN.match(cleaned):
        normalized = cleaned.replace('.', '').replace(',', '.')
    else:
        normalized = cleaned.replace(',', '.')

    try:
        decimal_value = Decimal(normalized)
    except (InvalidOperation, ValueError):
        raise ValueError('Formato inválido. Use 1.234,56 ou 1.234')

    if not decimal_value.is_finite():
        raise ValueError('Formato inválido. Use 1.234,56 ou 1.234')
    if decimal_value < 0:
        raise ValueError('O valor não pode ser negativo')

    return decimal_value

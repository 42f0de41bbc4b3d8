"""
Display formatting utilities in Brazilian style.
Thousands separator is a dot, decimal separator a comma.
"""
import re
from decimal import Decimal, ROUND_HALF_UP
from datetime import date, datetime
from typing import Union, Optional

from lojapdv.utils.number_format import to_decimal, round2, round3

Number = Union[int, float, Decimal, str, None]


def _group_thousands(integer_part: str) -> str:
    reversed_int = integer_part[::-1]
    groups = [reversed_int[i:i+3] for i in range(0, len(reversed_int), 3)]
    return '.'.join(groups)[::-1]


def money_br(value: Number) -> str:
    """
    Format money with exactly 2 decimals.

    Examples:
        money_br(1500) -> "1.500,00"
        money_br(161.815) -> "161,82"
        money_br(None) -> "0,00"
    """
    num = round2(value)
    sign = "-" if num < 0 else ""
    integer_part, decimal_part = f"{abs(num):.2f}".split(".")
    return f"{sign}{_group_thousands(integer_part)},{decimal_part}"


def qty_br(value: Number) -> str:
    """
    Format a quantity: integers without decimals, otherwise up to 3 places.

    Examples:
        qty_br(5) -> "5"
        qty_br(1.5) -> "1,5"
        qty_br(0.125) -> "0,125"
    """
    num = round3(value)
    if num == num.to_integral_value():
        return str(int(num))
    text = f"{num:.3f}".rstrip('0').rstrip('.')
    return text.replace('.', ',')


def pct_br(value: Number) -> str:
    """
    Format a percentage rounded to 2 places, without trailing zeros.

    Examples:
        pct_br(10) -> "10"
        pct_br(16.6666) -> "16,67"
    """
    num = round2(value)
    if num == num.to_integral_value():
        return str(int(num))
    text = f"{num:.2f}".rstrip('0').rstrip('.')
    return text.replace('.', ',')


def code_br(code: Optional[int]) -> str:
    """Product display code: "12*", or an em dash when the product has none."""
    if code is None:
        return "—"
    return f"{code}*"


def date_br(value: Union[date, datetime, None]) -> str:
    """
    Format a date as DD/MM/YYYY ("—" when missing).

    Examples:
        date_br(date(2026, 1, 12)) -> "12/01/2026"
    """
    if value is None:
        return "—"

    if isinstance(value, datetime):
        value = value.date()

    if not isinstance(value, date):
        return "—"

    return value.strftime("%d/%m/%Y")


def local_naive(value: datetime) -> datetime:
    """Aware datetimes (PostgreSQL timestamptz) converted to naive server-local time."""
    if value.tzinfo is not None:
        return value.astimezone().replace(tzinfo=None)
    return value


def datetime_br(value: Union[datetime, None]) -> str:
    """
    Format a datetime as DD/MM/YYYY HH:MM ("—" when missing).

    Examples:
        datetime_br(datetime(2026, 1, 12, 15, 30)) -> "12/01/2026 15:30"
    """
    if not isinstance(value, datetime):
        return "—"
    return local_naive(value).strftime("%d/%m/%Y %H:%M")


def month_label_br(value: Union[date, datetime]) -> str:
    """Short month label used by the monthly series: "jan/26"."""
    months = ['jan', 'fev', 'mar', 'abr', 'mai', 'jun', 'jul', 'ago', 'set', 'out', 'nov', 'dez']
    return f"{months[value.month - 1]}/{str(value.year)[2:]}"


def decimal_str(value: Number, places: int = 2) -> str:
    """Plain JSON-safe decimal string ("161.82")."""
    step = Decimal(1).scaleb(-places)
    return str(to_decimal(value).quantize(step, rounding=ROUND_HALF_UP))


def safe_csv(value) -> str:
    """CSV cell for ';'-separated exports: newlines become spaces, ';' becomes ','."""
    text = re.sub(r'\r\n|\r|\n', ' ', str(value or '')).strip()
    return text.replace(';', ',')

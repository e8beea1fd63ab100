"""
Formatting utilities for PDFs and API responses.
Numbers and dates in Brazilian style (1.234,56 and DD/MM/YYYY).
"""
import math
from decimal import Decimal, InvalidOperation
from datetime import date, datetime
from typing import Union, Optional


def _group_thousands(integer_part: str) -> str:
    """Insert dots every three digits from the right."""
    reversed_int = integer_part[::-1]
    groups = [reversed_int[i:i+3] for i in range(0, len(reversed_int), 3)]
    return '.'.join(groups)[::-1]


def num_br(value: Union[int, float, Decimal, str, None], decimals: Optional[int] = None) -> str:
    """
    Format a number in Brazilian style.

    - Thousands separator: dot (.)
    - Decimal separator: comma (,)
    - Trailing zero decimals are dropped unless `decimals` is given

    Examples:
        num_br(1500) -> "1.500"
        num_br(1500.5) -> "1.500,5"
        num_br(2.5, decimals=2) -> "2,50"
        num_br(None) -> "-"
    """
    if value is None or value == "":
        return "-"

    try:
        if isinstance(value, str):
            value = value.replace(",", ".")
        num = Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        return "-"

    if not num.is_finite():
        return "-"

    if decimals is not None:
        num = num.quantize(Decimal(10) ** -decimals)

    num_str = f"{num:f}"
    if '.' in num_str:
        integer_part, decimal_part = num_str.split('.')
        if decimals is None:
            decimal_part = decimal_part.rstrip('0')
    else:
        integer_part, decimal_part = num_str, ""

    sign_str = ''
    if integer_part.startswith('-'):
        sign_str = '-'
        integer_part = integer_part[1:]

    integer_formatted = _group_thousands(integer_part)
    if decimal_part:
        return f"{sign_str}{integer_formatted},{decimal_part}"
    return f"{sign_str}{integer_formatted}"


def money_br(value: Union[int, float, Decimal, str, None]) -> str:
    """
    Format an amount as Brazilian reais with exactly two decimals.

    This is the only place totals get rounded.

    Examples:
        money_br(1950) -> "R$ 1.950,00"
        money_br(None) -> "R$ 0,00"
    """
    try:
        amount = float(value or 0)
    except (TypeError, ValueError):
        amount = 0.0
    if not math.isfinite(amount):
        amount = 0.0

    num = Decimal(str(amount)).quantize(Decimal('0.01'))
    sign = "-" if num < 0 else ""
    integer_part, decimal_part = f"{abs(num):.2f}".split(".")
    return f"R$ {sign}{_group_thousands(integer_part)},{decimal_part}"


def date_br(value: Union[date, datetime, str, None]) -> str:
    """
    Format a date as DD/MM/YYYY.

    Accepts date/datetime objects and ISO-8601 strings.

    Examples:
        date_br(date(2026, 1, 12)) -> "12/01/2026"
        date_br("2026-01-12T10:00:00+00:00") -> "12/01/2026"
    """
    if value is None or value == "":
        return "-"

    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.replace('Z', '+00:00'))
        except ValueError:
            return "-"

    if isinstance(value, datetime):
        value = value.date()

    if not isinstance(value, date):
        return "-"

    return value.strftime("%d/%m/%Y")

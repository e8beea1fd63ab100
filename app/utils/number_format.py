"""Number coercion and input formatting utilities for Brazilian forms."""
import math
import re

BR_NUMBER_PATTERN = re.compile(r"^-?(?:\d{1,3}(?:\.\d{3})+|\d+),\d+$")


def to_number(value) -> float:
    """
    Coerce a form value to float, never raising.

    Rules:
    - int/float pass through (bool counts as 0/1)
    - strings are stripped and parsed as plain numbers ("1234.5")
    - pt-BR strings with a decimal comma are accepted ("1.234,56", "12,5")
    - None, empty, malformed or non-finite values become 0.0
    """
    if value is None:
        return 0.0

    if isinstance(value, (int, float)):
        number = float(value)
        return number if math.isfinite(number) else 0.0

    cleaned = str(value).strip()
    if not cleaned:
        return 0.0

    try:
        number = float(cleaned)
    except ValueError:
        if not BR_NUMBER_PATTERN.match(cleaned):
            return 0.0
        number = float(cleaned.replace('.', '').replace(',', '.'))

    return number if math.isfinite(number) else 0.0


def to_int(value, default=None):
    """Coerce a form value to int, returning `default` when it is empty or invalid."""
    if value is None or value == '':
        return default
    try:
        return int(to_number(value)) if not isinstance(value, bool) else default
    except (OverflowError, ValueError):
        return default


def _digits(value) -> str:
    return re.sub(r'\D', '', str(value))


def format_pix_key(value, tipo: str) -> str:
    """
    Mask a PIX key according to its type.

    Examples:
        format_pix_key('12345678901', 'CPF') -> '123.456.789-01'
        format_pix_key('12345678000199', 'CNPJ') -> '12.345.678/0001-99'
        format_pix_key('11987654321', 'Celular') -> '(11) 98765-4321'
        format_pix_key('a@b.com', 'Email') -> 'a@b.com'
        format_pix_key(12345678901, 'CPF') -> '123.456.789-01'
    """
    if value is None:
        return ''

    clean = _digits(value)
    if tipo == 'CPF':
        return re.sub(r'^(\d{3})(\d{3})(\d{3})(\d{2})', r'\1.\2.\3-\4', clean)[:14]
    if tipo == 'CNPJ':
        return re.sub(r'^(\d{2})(\d{3})(\d{3})(\d{4})(\d{2})', r'\1.\2.\3/\4-\5', clean)[:18]
    if tipo == 'Celular':
        return re.sub(r'^(\d{2})(\d{5})(\d{4})', r'(\1) \2-\3', clean)[:15]
    return str(value)

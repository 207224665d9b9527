"""Currency arithmetic helpers for Bangladeshi Taka amounts.

Every stored or compared money value passes through these helpers. Values
are carried as :class:`~decimal.Decimal` quantized to two places; floats are
converted through their shortest ``repr`` so binary representation error
(``1.005`` being stored as ``1.00499999...``) never leaks into a rounding
decision. Two independently derived totals are compared with
:func:`currency_equals`, never with ``==`` on raw floats.
"""

from __future__ import annotations

import math
import re
from decimal import ROUND_FLOOR, ROUND_HALF_UP, Decimal, DecimalException, InvalidOperation, localcontext
from typing import Any, Union

from .constants import CURRENCY_SYMBOLS, BASE_CURRENCY


MoneyLike = Union[Decimal, int, float, str]

CENT = Decimal("0.01")
HALF_CENT = Decimal("0.005")
# Largest power of ten an amount may reach before it is rejected as out of range.
MAX_AMOUNT_EXPONENT = 64
ZERO = Decimal("0.00")

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")
_BDT_NOISE = re.compile(r"[৳\s,]")


def _within_range(value: Decimal, original: Any) -> Decimal:
    if not value.is_finite():
        raise ValueError(f"Amount is not a finite number: {original!r}")
    if value and value.adjusted() > MAX_AMOUNT_EXPONENT:
        raise ValueError(f"Amount is out of range: {original!r}")
    return value


def to_decimal(value: MoneyLike) -> Decimal:
    """Convert a numeric value into an exact :class:`Decimal`.

    Args:
        value (Decimal | int | float | str): Amount to convert. Floats are
            routed through ``repr`` which yields the shortest string that
            round-trips to the same float.

    Returns:
        Decimal: Unrounded decimal representation of ``value``.

    Raises:
        ValueError: If ``value`` is not a finite number or a numeric string,
            or its magnitude reaches ``10 ** (MAX_AMOUNT_EXPONENT + 1)``.
        TypeError: If ``value`` is a boolean or an unsupported type.
    """

    if isinstance(value, Decimal):
        return _within_range(value, value)
    if isinstance(value, bool):
        raise TypeError("Booleans are not monetary amounts")
    if isinstance(value, int):
        return _within_range(Decimal(value), value)
    if isinstance(value, float):
        if not math.isfinite(value):
            raise ValueError(f"Amount is not a finite number: {value}")
        return _within_range(Decimal(repr(value)), value)
    if isinstance(value, str):
        try:
            result = Decimal(value.strip())
        except InvalidOperation as exc:
            raise ValueError(f"Amount is not numeric: {value!r}") from exc
        return _within_range(result, value)
    raise TypeError(f"Unsupported amount type: {type(value).__name__}")


def round_to_currency(value: MoneyLike) -> Decimal:
    """Round ``value`` to two places, half away from zero.

    Raises:
        ValueError: If ``value`` is not a usable amount.
    """

    amount = to_decimal(value)
    with localcontext() as context:
        # Quantizing needs every integer digit plus the two decimal places.
        context.prec = max(context.prec, amount.adjusted() + 3)
        try:
            return amount.quantize(CENT, rounding=ROUND_HALF_UP)
        except DecimalException as exc:
            raise ValueError(f"Amount cannot be rounded: {value!r}") from exc


def add_currency(a: MoneyLike, b: MoneyLike) -> Decimal:
    return round_to_currency(to_decimal(a) + to_decimal(b))


def subtract_currency(a: MoneyLike, b: MoneyLike) -> Decimal:
    return round_to_currency(to_decimal(a) - to_decimal(b))


def multiply_currency(amount: MoneyLike, multiplier: MoneyLike) -> Decimal:
    return round_to_currency(to_decimal(amount) * to_decimal(multiplier))


def ensure_non_negative(value: MoneyLike) -> Decimal:
    """Round ``value`` and clamp it at zero."""

    return max(ZERO, round_to_currency(value))


def currency_equals(a: MoneyLike, b: MoneyLike) -> bool:
    """Return ``True`` when two amounts differ by less than half a cent."""

    return abs(to_decimal(a) - to_decimal(b)) < HALF_CENT


def calculate_percentage(part: MoneyLike, total: MoneyLike) -> Decimal:
    """Return ``part`` as a rounded percentage of ``total`` (0 for a zero total)."""

    total_value = to_decimal(total)
    if total_value == 0:
        return ZERO
    return round_to_currency(to_decimal(part) / total_value * 100)


def safe_parse_money(value: Any) -> Decimal:
    """Parse user or storage input into a decimal, returning 0 when invalid.

    Unlike :func:`to_decimal` this helper never raises; it is meant for
    validators and record readers that must keep going on bad input and let a
    business rule (``must be greater than 0``) report the problem instead.
    """

    if value is None:
        return Decimal("0")
    try:
        return to_decimal(value)
    except (TypeError, ValueError):
        return Decimal("0")


def safe_parse_int(value: Any) -> int:
    """Parse a quantity, returning 0 when the input holds no leading integer.

    Numeric input is floored; strings yield their leading integer digits so
    ``"12 pcs"`` parses as ``12`` and ``"3.7"`` as ``3``.
    """

    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    if isinstance(value, (float, Decimal)):
        try:
            return int(to_decimal(value).to_integral_value(rounding=ROUND_FLOOR))
        except (TypeError, ValueError):
            return 0
    match = _LEADING_INT.match(str(value))
    return int(match.group(1)) if match else 0


def _group_lac(digits: str) -> str:
    # Last three digits form the first group, every further group has two.
    if len(digits) <= 3:
        return digits
    head, tail = digits[:-3], digits[-3:]
    groups = []
    while len(head) > 2:
        groups.insert(0, head[-2:])
        head = head[:-2]
    if head:
        groups.insert(0, head)
    return ",".join([*groups, tail])


def format_bdt(amount: Any, currency: bool = True) -> str:
    """Format an amount using the Bangladeshi lac system (``x,xx,xx,xxx``).

    Args:
        amount (Any): Value to format. Non-numeric input renders as zero.
        currency (bool): Whether to prefix the Taka symbol.

    Returns:
        str: Grouped amount, with the decimal part shown only when it is not
            ``.00`` and the minus sign placed before the symbol.
    """

    symbol = CURRENCY_SYMBOLS[BASE_CURRENCY] if currency else ""
    try:
        value = round_to_currency(amount)
    except (TypeError, ValueError):
        return f"{symbol}0"

    sign = "-" if value < 0 else ""
    integer_part, decimal_part = f"{value.copy_abs():.2f}".split(".")
    grouped = _group_lac(integer_part)
    body = f"{grouped}.{decimal_part}" if decimal_part != "00" else grouped
    return f"{sign}{symbol}{body}"


def parse_bdt(formatted: str) -> Decimal:
    """Parse a :func:`format_bdt` string back to a decimal (0 when invalid)."""

    if not formatted:
        return Decimal("0")
    return safe_parse_money(_BDT_NOISE.sub("", formatted))


__all__ = [
    "MoneyLike",
    "CENT",
    "ZERO",
    "to_decimal",
    "round_to_currency",
    "add_currency",
    "subtract_currency",
    "multiply_currency",
    "ensure_non_negative",
    "currency_equals",
    "calculate_percentage",
    "safe_parse_money",
    "safe_parse_int",
    "format_bdt",
    "parse_bdt",
]

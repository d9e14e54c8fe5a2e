"""Amount parsing utilities."""

from decimal import Decimal, InvalidOperation
import re
from typing import Iterable, Optional

DECIMAL_MARKS = (".", ",")

_CURRENCY_MARKS = re.compile(r"[$€£¥]|\b(?:EUR|USD|GBP|JPY)\b", re.IGNORECASE)
_GROUPING_SPACES = re.compile(r"[\s\u00a0\u202f']")
_THOUSANDS_COMMA = re.compile(r"^\d{1,3}(,\d{3})+$")
_PLAIN_NUMBER = re.compile(r"^\d+(\.\d+)?$|^\.\d+$")
_LEADING_DIGITS = re.compile(r"\d*")


def parse_amount(amount_str: str, decimal_mark: Optional[str] = None) -> Decimal:
    """Parse an amount string into a Decimal.

    Handles various formats:
    - "123.45", "123,45"
    - "1,234.56", "1.234,56", "1 234,56", "1'234.56"
    - "-123.45", "+123.45", "123.45-"
    - "€123.45", "123.45 EUR"
    - "(123.45)" (negative in parentheses)

    When ``decimal_mark`` is given the other separator is a thousands mark.
    Otherwise the separators are resolved per value: with both present the
    right-most one is the decimal mark, a separator that repeats is a
    thousands mark, and a single comma followed by exactly three digits is
    a thousands mark.

    Args:
        amount_str: Amount string
        decimal_mark: "." or ",", usually detected once for a whole file

    Returns:
        Decimal amount

    Raises:
        ValueError: If amount string cannot be parsed
    """
    if decimal_mark is not None and decimal_mark not in DECIMAL_MARKS:
        raise ValueError(f"Unknown decimal mark: {decimal_mark!r}")
    if not amount_str or not amount_str.strip():
        raise ValueError("Empty amount string")

    original = amount_str
    amount_str = _CURRENCY_MARKS.sub("", amount_str.strip()).strip()

    # Handle sign notations
    is_negative = False
    if amount_str.startswith("(") and amount_str.endswith(")"):
        is_negative = True
        amount_str = amount_str[1:-1].strip()
    if amount_str.endswith("-"):
        is_negative = not is_negative
        amount_str = amount_str[:-1].strip()
    if amount_str.startswith("-"):
        is_negative = not is_negative
        amount_str = amount_str[1:].strip()
    elif amount_str.startswith("+"):
        amount_str = amount_str[1:].strip()

    amount_str = _GROUPING_SPACES.sub("", amount_str)
    if decimal_mark is None:
        amount_str = _normalize_separators(amount_str)
    else:
        thousands_mark = "," if decimal_mark == "." else "."
        amount_str = amount_str.replace(thousands_mark, "").replace(decimal_mark, ".")

    if not _PLAIN_NUMBER.match(amount_str):
        raise ValueError(f"Could not parse amount '{original.strip()}'")

    try:
        amount = Decimal(amount_str)
    except InvalidOperation as e:
        raise ValueError(f"Could not parse amount '{original.strip()}': {e}")
    return -amount if is_negative else amount


def _normalize_separators(amount_str: str) -> str:
    """Rewrite thousands/decimal separators to plain '1234.56' form."""
    last_dot = amount_str.rfind(".")
    last_comma = amount_str.rfind(",")

    if last_dot != -1 and last_comma != -1:
        if last_comma > last_dot:
            # 1.234,56
            return amount_str.replace(".", "").replace(",", ".")
        # 1,234.56
        return amount_str.replace(",", "")

    if last_comma != -1:
        if amount_str.count(",") > 1 or _THOUSANDS_COMMA.match(amount_str):
            return amount_str.replace(",", "")
        return amount_str.replace(",", ".")

    if amount_str.count(".") > 1:
        return amount_str.replace(".", "")

    return amount_str


def detect_decimal_mark(values: Iterable[str]) -> Optional[str]:
    """Decide the decimal mark of an amount column from its values.

    "1.234,56", "-5,00" and "1,5" show a decimal comma; "1,234.56" and
    "12.50" a decimal point. Values such as "1.500", "1,500" or "12" read
    both ways and decide nothing.

    Returns:
        "." or ",", or None when no value decides it
    """
    for value in values:
        text = _GROUPING_SPACES.sub("", _CURRENCY_MARKS.sub("", value or ""))
        last_dot = text.rfind(".")
        last_comma = text.rfind(",")
        if last_dot != -1 and last_comma != -1:
            return "," if last_comma > last_dot else "."

        for mark, position in ((".", last_dot), (",", last_comma)):
            if position == -1:
                continue
            if text.count(mark) > 1:
                # Repeated separators group thousands
                return "," if mark == "." else "."
            if len(_LEADING_DIGITS.match(text, position + 1).group()) != 3:
                return mark
    return None

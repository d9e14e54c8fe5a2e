"""Row normalization: one raw CSV record to one canonical transaction."""

import re
from dataclasses import dataclass
from typing import Mapping, Optional, Union

from pocketledger.domain.entities import (
    Money,
    ParsedTransaction,
    RejectedRow,
    UNKNOWN_DESCRIPTION,
    UNKNOWN_MERCHANT,
)
from pocketledger.utils.amount_parser import parse_amount
from pocketledger.utils.date_parser import parse_date

_WHITESPACE = re.compile(r"\s+")

CANONICAL_FIELDS = (
    "date",
    "amount",
    "description",
    "reference",
    "counterparty",
    "transaction_type",
    "category",
)
REQUIRED_FIELDS = ("date", "amount")


@dataclass(frozen=True)
class ColumnMap:
    """Source header carrying each canonical field (None when absent).

    ``dayfirst`` of None means not decided yet; it reads as month first.
    ``decimal_mark`` of None means each amount resolves its own separators.
    """

    date: Optional[str] = None
    amount: Optional[str] = None
    description: Optional[str] = None
    reference: Optional[str] = None
    counterparty: Optional[str] = None
    transaction_type: Optional[str] = None
    category: Optional[str] = None
    dayfirst: Optional[bool] = None
    decimal_mark: Optional[str] = None

    def column_for(self, field_name: str) -> Optional[str]:
        return getattr(self, field_name)

    def missing_required(self) -> list[str]:
        return [name for name in REQUIRED_FIELDS if self.column_for(name) is None]


def collapse_whitespace(text: str) -> str:
    """Trim and collapse runs of whitespace to single spaces."""
    return _WHITESPACE.sub(" ", text).strip()


def resolve_merchant(counterparty: Optional[str]) -> str:
    """Return the counterparty, or the placeholder when the bank left it empty.

    Transfers often carry no partner name; they still import.
    """
    if counterparty:
        return counterparty
    return UNKNOWN_MERCHANT


def build_description(*candidates: Optional[str]) -> str:
    """Return the first non-empty candidate, whitespace-collapsed."""
    for candidate in candidates:
        if candidate:
            cleaned = collapse_whitespace(candidate)
            if cleaned:
                return cleaned
    return UNKNOWN_DESCRIPTION


def _value(raw_row: Mapping[str, Optional[str]], column: Optional[str]) -> Optional[str]:
    if column is None:
        return None
    value = raw_row.get(column)
    if value is None:
        return None
    value = collapse_whitespace(value)
    return value or None


def normalize_row(
    raw_row: Mapping[str, Optional[str]],
    column_map: ColumnMap,
    currency: str,
    row_number: Optional[int] = None,
) -> Union[ParsedTransaction, RejectedRow]:
    """Turn one raw CSV record into a ParsedTransaction.

    Args:
        raw_row: Original header -> original value, in header order
        column_map: Which header carries which canonical field
        currency: ISO currency code supplied by the import command
        row_number: Physical CSV row number, used in diagnostics

    Returns:
        ParsedTransaction, or RejectedRow when amount or date is missing
        or unparsable
    """
    raw_data = {key: (value if value is not None else "") for key, value in raw_row.items()}

    date_str = _value(raw_row, column_map.date)
    if date_str is None:
        return RejectedRow(row_number=row_number, reason="Missing date", raw_row=raw_data)

    amount_str = _value(raw_row, column_map.amount)
    if amount_str is None:
        return RejectedRow(row_number=row_number, reason="Missing amount", raw_row=raw_data)

    try:
        transaction_date = parse_date(date_str, dayfirst=bool(column_map.dayfirst))
    except ValueError as e:
        return RejectedRow(row_number=row_number, reason=str(e), raw_row=raw_data)

    try:
        amount = parse_amount(amount_str, decimal_mark=column_map.decimal_mark)
    except ValueError as e:
        return RejectedRow(row_number=row_number, reason=str(e), raw_row=raw_data)

    reference = _value(raw_row, column_map.reference)
    counterparty = _value(raw_row, column_map.counterparty)
    transaction_type = _value(raw_row, column_map.transaction_type)

    return ParsedTransaction(
        amount=Money(amount=amount, currency=currency.upper()),
        description=build_description(
            _value(raw_row, column_map.description),
            reference,
            counterparty,
            transaction_type,
        ),
        transaction_date=transaction_date,
        merchant=resolve_merchant(counterparty),
        payment_reference=reference,
        counterparty=counterparty,
        category=_value(raw_row, column_map.category),
        transaction_type=transaction_type,
        raw_data=raw_data,
        row_number=row_number,
    )

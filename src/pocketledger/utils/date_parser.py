"""Date parsing utilities."""

import re
from datetime import date, datetime
from dateutil import parser as date_parser

_ISO_DATE = re.compile(r"^(\d{4}-\d{2}-\d{2})(?:[T ].*)?$")

# dateutil fills missing parts from its default; two defaults expose them
_DEFAULTS = (datetime(1904, 1, 1), datetime(1908, 2, 2))


def parse_date(date_str: str, dayfirst: bool = False) -> date:
    """Parse a bank date string into a calendar date.

    ISO dates ("2025-08-06", "2025-08-06T10:15:00") are read directly so
    that ``dayfirst`` never swaps their month and day. Everything else
    ("06.08.2025", "06/08/2025", "Aug 6, 2025") goes through dateutil and
    must name a day, a month and a year.

    Args:
        date_str: Date string in various formats
        dayfirst: Read ambiguous numeric dates as day/month/year

    Returns:
        Date object

    Raises:
        ValueError: If date string cannot be parsed
    """
    if not date_str or not date_str.strip():
        raise ValueError("Empty date string")

    date_str = date_str.strip()

    iso = _ISO_DATE.match(date_str)
    if iso:
        try:
            return date.fromisoformat(iso.group(1))
        except ValueError as e:
            raise ValueError(f"Could not parse date '{date_str}': {e}")

    try:
        first, second = (
            date_parser.parse(date_str, dayfirst=dayfirst, default=default).date()
            for default in _DEFAULTS
        )
    except (ValueError, OverflowError, TypeError) as e:
        raise ValueError(f"Could not parse date '{date_str}': {e}")

    if first != second:
        raise ValueError(f"Could not parse date '{date_str}': day, month or year missing")
    return first

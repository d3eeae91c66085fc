"""Date parsing utilities."""

import re
from datetime import date

from dateutil import parser as date_parser

_COMPACT_DATE = re.compile(r"^(\d{4})(\d{2})(\d{2})")


def parse_date(date_str: str) -> date:
    """Parse a statement date string into a date object.

    Accepts the calendar forms found in bank exports, e.g. "2024-01-15",
    "01/15/2024" or "Jan 15, 2024". Slash dates are read month first.

    Args:
        date_str: Date string

    Returns:
        Date object

    Raises:
        ValueError: If date string cannot be parsed
    """
    text = date_str.strip()
    if not text:
        raise ValueError("Empty date string")

    if len(text) >= 8 and text[:8].isdigit():
        return parse_compact_date(text)

    try:
        return date_parser.parse(text).date()
    except (ValueError, OverflowError) as e:
        raise ValueError(f"Could not parse date '{date_str}': {e}")


def parse_compact_date(value: str) -> date:
    """Parse an OFX-style compact timestamp such as "20240115120000[-5:EST]".

    Only the leading YYYYMMDD is significant.

    Raises:
        ValueError: If the value does not start with a valid YYYYMMDD date
    """
    match = _COMPACT_DATE.match(value.strip())
    if match is None:
        raise ValueError(f"Could not parse compact date '{value}'")
    year, month, day = (int(part) for part in match.groups())
    try:
        return date(year, month, day)
    except ValueError as e:
        raise ValueError(f"Could not parse compact date '{value}': {e}")

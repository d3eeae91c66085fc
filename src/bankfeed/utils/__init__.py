"""Utility functions for bankfeed."""

from bankfeed.utils.date_parser import parse_date, parse_compact_date
from bankfeed.utils.amount_parser import parse_amount

__all__ = ["parse_date", "parse_compact_date", "parse_amount"]

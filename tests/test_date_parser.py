"""Tests for statement date parsing."""

import pytest
from datetime import date

from bankfeed.utils.date_parser import parse_compact_date, parse_date


def test_parse_iso_date():
    """Test parsing ISO dates."""
    assert parse_date("2024-01-15") == date(2024, 1, 15)


def test_parse_slash_date_is_month_first():
    """Test that US slash dates are read month first."""
    assert parse_date("03/04/2024") == date(2024, 3, 4)


def test_parse_named_month():
    assert parse_date("Jan 15, 2024") == date(2024, 1, 15)


def test_parse_compact_date_through_parse_date():
    """Test that digit-only dates use the compact form."""
    assert parse_date("20240115") == date(2024, 1, 15)


def test_parse_compact_date_ignores_time_and_zone():
    assert parse_compact_date("20240305120000[-5:EST]") == date(2024, 3, 5)


@pytest.mark.parametrize("value", ["", "   ", "not a date"])
def test_parse_date_invalid(value):
    """Test that unparseable dates raise ValueError."""
    with pytest.raises(ValueError):
        parse_date(value)


def test_parse_compact_date_invalid_month():
    with pytest.raises(ValueError, match="compact date"):
        parse_compact_date("20241399")

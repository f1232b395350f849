"""Tests for date parsing with declared formats."""

import pytest
from datetime import date, datetime
from finledger.utils.date_parser import parse_date, parse_serial_date


def test_parse_iso_date():
    """Test parsing ISO dates."""
    assert parse_date("2024-01-15") == date(2024, 1, 15)


def test_parse_day_first():
    """Test day-first formats are never read month-first."""
    assert parse_date("03/04/2024") == date(2024, 4, 3)
    assert parse_date("15-01-2024") == date(2024, 1, 15)
    assert parse_date("15.01.2024") == date(2024, 1, 15)
    assert parse_date("15/01/24") == date(2024, 1, 15)


def test_parse_iso_datetime():
    """Test ISO datetimes keep only the date."""
    assert parse_date("2024-01-15T23:10:00") == date(2024, 1, 15)


def test_parse_date_objects():
    """Test spreadsheet cells holding dates."""
    assert parse_date(datetime(2024, 1, 15, 10, 30)) == date(2024, 1, 15)
    assert parse_date(date(2024, 1, 15)) == date(2024, 1, 15)


def test_parse_serial_dates():
    """Test spreadsheet serial numbers."""
    assert parse_date(45306) == date(2024, 1, 15)
    assert parse_date("45306") == date(2024, 1, 15)
    assert parse_serial_date(45306.75) == date(2024, 1, 15)


def test_serial_before_1970_rejected():
    """Test serials at or before 1970-01-01 are rejected."""
    with pytest.raises(ValueError):
        parse_serial_date(25569)


def test_custom_formats():
    """Test only the given formats are tried."""
    assert parse_date("15-01-24", formats=("%d-%m-%y",)) == date(2024, 1, 15)
    with pytest.raises(ValueError):
        parse_date("2024-01-15", formats=("%d/%m/%Y",))


@pytest.mark.parametrize("value", ["", "  ", None, "31/02/2024", "yesterday", "01/15/2024"])
def test_parse_invalid(value):
    """Test undeclared or impossible dates raise ValueError."""
    with pytest.raises(ValueError):
        parse_date(value)

"""Date parsing utilities.

Only explicitly declared orderings are accepted. Statements in this domain use
day-first dates, and a permissive parser would silently swap day and month
for values such as "03/04/2024".
"""

from datetime import date, datetime, timedelta
from decimal import Decimal
import re
from typing import Sequence

from dateutil.parser import isoparse

DEFAULT_DATE_FORMATS: tuple[str, ...] = (
    "%Y-%m-%d",
    "%d/%m/%Y",
    "%d-%m-%Y",
    "%d.%m.%Y",
    "%d/%m/%y",
)

# Spreadsheet serial dates count days from 1899-12-30; 25569 is 1970-01-01
SPREADSHEET_EPOCH = date(1899, 12, 30)
MIN_SPREADSHEET_SERIAL = 25569

_ISO_DATETIME = re.compile(r"^\d{4}-\d{2}-\d{2}T")
_SERIAL = re.compile(r"^\d{5}(\.\d+)?$")


def parse_serial_date(serial: float) -> date:
    """Convert a spreadsheet serial number into a date.

    Raises:
        ValueError: If the serial is before 1970-01-01
    """
    if serial <= MIN_SPREADSHEET_SERIAL:
        raise ValueError(f"Serial date {serial} is out of range")
    return SPREADSHEET_EPOCH + timedelta(days=int(serial))


def parse_date(value, formats: Sequence[str] = DEFAULT_DATE_FORMATS) -> date:
    """Parse a date value using only declared formats.

    Accepts:
    - date and datetime objects (spreadsheet cells)
    - strings matching one of ``formats`` ("2024-01-15", "15/01/2024", ...)
    - ISO datetimes ("2024-01-15T10:30:00")
    - spreadsheet serial numbers (45306)

    Args:
        value: Date value to parse
        formats: strptime formats to try, in order

    Returns:
        Date object

    Raises:
        ValueError: If the value does not match any declared format
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, (int, float, Decimal)) and not isinstance(value, bool):
        return parse_serial_date(float(value))
    if value is None:
        raise ValueError("Empty date string")

    date_str = str(value).strip()
    if not date_str:
        raise ValueError("Empty date string")

    if _ISO_DATETIME.match(date_str):
        try:
            return isoparse(date_str).date()
        except ValueError as e:
            raise ValueError(f"Could not parse date '{date_str}': {e}")

    if _SERIAL.match(date_str):
        return parse_serial_date(float(date_str))

    for fmt in formats:
        try:
            return datetime.strptime(date_str, fmt).date()
        except ValueError:
            continue

    raise ValueError(f"Could not parse date '{date_str}'")

"""Locale-aware amount parsing utilities.

Statements from different banks mix numeric conventions ("1.234,56" next to
"1,234.56"), so separators are classified by position instead of assuming a
single locale.
"""

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
import re
from typing import Optional

_CURRENCY_MARKERS = re.compile(r"(U\$S|US\$|USD|ARS|EUR|\$|€|£|¥)", re.IGNORECASE)
_VALID_BODY = re.compile(r"^[\d.,]+$")


@dataclass(frozen=True)
class NumericLocale:
    """Separator convention declared by a source or used to render amounts."""

    decimal_separator: str
    thousands_separator: str


ARGENTINE_LOCALE = NumericLocale(decimal_separator=",", thousands_separator=".")
US_LOCALE = NumericLocale(decimal_separator=".", thousands_separator=",")


def _strip_sign(text: str) -> tuple[str, bool]:
    negative = False
    if text.startswith("(") and text.endswith(")"):
        negative = True
        text = text[1:-1]
    if text.startswith("-"):
        negative = True
        text = text[1:]
    elif text.startswith("+"):
        text = text[1:]
    if text.endswith("-"):
        negative = True
        text = text[:-1]
    return text, negative


def _normalize_separators(body: str, locale: Optional[NumericLocale] = None) -> str:
    has_dot = "." in body
    has_comma = "," in body

    if has_dot and has_comma:
        # The separator appearing last is the decimal point
        if body.rfind(",") > body.rfind("."):
            return body.replace(".", "").replace(",", ".")
        return body.replace(",", "")

    if not has_dot and not has_comma:
        return body

    separator = "," if has_comma else "."
    if body.count(separator) > 1:
        return body.replace(separator, "")

    integer_part, fractional_part = body.split(separator)
    # A declared locale settles "1,234": its own decimal separator stays decimal
    if locale is not None and separator == locale.decimal_separator:
        return f"{integer_part or '0'}.{fractional_part}"
    if len(fractional_part) == 3 and integer_part.strip("0"):
        return integer_part + fractional_part
    return f"{integer_part or '0'}.{fractional_part}"


def parse_amount(amount_str: str, locale: Optional[NumericLocale] = None) -> Decimal:
    """Parse an amount string into a Decimal.

    Handles both separator conventions:
    - "1.234,56" and "1,234.56" (the later separator is the decimal point)
    - "1.234" and "1,234" (a single separator followed by three digits groups thousands)
    - "12,5" and "0.125" (otherwise the separator is the decimal point)
    - "-$ 1.234,56", "1.234,56-" and "(1.234,56)" (negative)

    When a locale is given, a single separator that is the locale's decimal
    separator is always decimal, so "1,234" reads as 1.234 under
    ARGENTINE_LOCALE. Tokens carrying both separators ignore the locale.

    Args:
        amount_str: Amount string, possibly carrying a currency symbol or code
        locale: Optional separator convention declared by the source

    Returns:
        Decimal amount

    Raises:
        ValueError: If amount string cannot be parsed
    """
    if amount_str is None:
        raise ValueError("Empty amount string")
    if isinstance(amount_str, (int, float, Decimal)) and not isinstance(amount_str, bool):
        return Decimal(str(amount_str))

    text = str(amount_str).strip()
    if not text:
        raise ValueError("Empty amount string")

    text = _CURRENCY_MARKERS.sub("", text)
    text = re.sub(r"\s+", "", text)
    text, negative = _strip_sign(text)

    if not text or not _VALID_BODY.match(text) or not re.search(r"\d", text):
        raise ValueError(f"Could not parse amount '{amount_str}'")

    try:
        amount = Decimal(_normalize_separators(text, locale))
    except InvalidOperation as e:
        raise ValueError(f"Could not parse amount '{amount_str}': {e}")
    return -amount if negative else amount


def format_amount(amount: Decimal, locale: NumericLocale = ARGENTINE_LOCALE) -> str:
    """Render an amount with two decimals under the given separator convention."""
    quantized = Decimal(amount).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    sign = "-" if quantized < 0 else ""
    integer_part, fractional_part = f"{abs(quantized):.2f}".split(".")
    groups = []
    while len(integer_part) > 3:
        groups.insert(0, integer_part[-3:])
        integer_part = integer_part[:-3]
    groups.insert(0, integer_part)
    return f"{sign}{locale.thousands_separator.join(groups)}{locale.decimal_separator}{fractional_part}"

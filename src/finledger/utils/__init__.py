"""Utility functions for finledger."""

from finledger.utils.date_parser import parse_date
from finledger.utils.amount_parser import parse_amount, format_amount
from finledger.utils.merchant import extract_merchant

__all__ = ["parse_date", "parse_amount", "format_amount", "extract_merchant"]

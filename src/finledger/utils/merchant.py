"""Merchant name derivation from statement descriptions."""

import re

MAX_MERCHANT_LENGTH = 100

_OPERATION_PREFIX = re.compile(
    r"^(compra|pago|transferencia|d[eé]bito|cr[eé]dito)\s+", re.IGNORECASE
)
_INSTALLMENT = re.compile(r"cuota\s+\d+\s+de\s+\d+", re.IGNORECASE)
_REVERSAL = re.compile(r"reverso\s*-?\s*", re.IGNORECASE)


def extract_merchant(description: str) -> str:
    """Derive a merchant name from a transaction description.

    "COMPRA NETFLIX - Cuota 1 de 3" becomes "NETFLIX".
    """
    if not description:
        return ""

    merchant = _INSTALLMENT.sub("", description)
    merchant = _REVERSAL.sub("", merchant)
    merchant = merchant.strip().lstrip("-").strip()
    merchant = _OPERATION_PREFIX.sub("", merchant)
    merchant = re.split(r"\s+-\s+", merchant)[0].strip().rstrip("-").strip()
    merchant = re.sub(r"\s{2,}", " ", merchant)

    return merchant[:MAX_MERCHANT_LENGTH]

"""Tests for merchant derivation."""

import pytest
from finledger.utils.merchant import MAX_MERCHANT_LENGTH, extract_merchant


@pytest.mark.parametrize(
    "description, expected",
    [
        ("COMPRA NETFLIX", "NETFLIX"),
        ("Pago SPOTIFY - Cuota 1 de 3", "SPOTIFY"),
        ("Débito AYSA SA", "AYSA SA"),
        ("REVERSO - COMPRA MERCADOLIBRE", "MERCADOLIBRE"),
        ("CAFE MARTINEZ PALERMO", "CAFE MARTINEZ PALERMO"),
        ("", ""),
    ],
)
def test_extract_merchant(description, expected):
    assert extract_merchant(description) == expected


def test_merchant_is_truncated():
    assert len(extract_merchant("X" * 250)) == MAX_MERCHANT_LENGTH

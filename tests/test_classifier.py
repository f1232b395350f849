"""Tests for document classification."""

import pytest
from finledger.domain.classifier import DocumentClassifier, type_confidence
from finledger.domain.entities import UNKNOWN
from finledger.domain.errors import ClassificationInconclusive
from finledger.domain.profiles import UNKNOWN_BANK_NAME


@pytest.fixture
def classifier():
    return DocumentClassifier()


def test_type_confidence_formula():
    """Test matched/total * 50 + priority/2 + matched * 5, rounded half up."""
    assert type_confidence(2, 8, 80) == 63
    assert type_confidence(1, 4, 65) == 50
    assert type_confidence(0, 4, 100) == 0


def test_type_confidence_capped():
    assert type_confidence(4, 4, 100) == 100


def test_bank_statement(classifier):
    text = "EXTRACTO DE CUENTA\nCaja de Ahorro en pesos\nBanco Galicia"

    result = classifier.classify(text)

    assert result.document_type == "bank_statement"
    assert result.type_confidence == 63
    assert result.bank_id == "galicia"
    assert result.bank_name == "Banco Galicia"
    assert result.bank_confidence == 100
    assert result.is_conclusive


def test_vep(classifier):
    result = classifier.classify("ARCA - Nro. VEP 123456789 - VEP")

    assert result.document_type == "vep"
    assert result.type_confidence == 100


def test_lowercase_vep_is_not_a_vep_token(classifier):
    result = classifier.classify("developer vep")

    assert result.document_type == UNKNOWN


def test_bank_only(classifier):
    """Test a bank can be identified without a document type."""
    result = classifier.classify("BRUBANK\n01/01/2024 algo")

    assert result.document_type == UNKNOWN
    assert result.bank_id == "brubank"
    assert result.is_conclusive


def test_inconclusive(classifier):
    result = classifier.classify("")

    assert result.document_type == UNKNOWN
    assert result.bank_id == UNKNOWN
    assert result.bank_name == UNKNOWN_BANK_NAME
    assert result.bank_confidence == 0
    with pytest.raises(ClassificationInconclusive):
        classifier.assert_conclusive(result)


def test_first_bank_in_catalog_wins(classifier):
    assert classifier.detect_bank("Transferencia de Santander a Galicia").bank_id == "santander"

"""Test doubles and builders shared by the test modules."""

from datetime import date
from decimal import Decimal

from finledger.domain.content_parser import DecodedContent, MediaKind
from finledger.domain.entities import ExtractionResult, TransactionCandidate
from finledger.domain.errors import CurrencyConversionUnavailable

TODAY = date(2024, 3, 15)


def make_candidate(**overrides) -> TransactionCandidate:
    """Build a candidate with sensible defaults."""
    values = dict(
        date=date(2024, 1, 15),
        description="COMPRA NETFLIX",
        merchant="NETFLIX",
        amount=Decimal("-1234.56"),
        reference_number="REF-1",
        raw_source="15/01/2024 COMPRA NETFLIX -1.234,56",
        extraction_confidence=90,
        currency="ARS",
    )
    values.update(overrides)
    return TransactionCandidate(**values)


def make_result(candidates=(), confidence: int = 80, **overrides) -> ExtractionResult:
    values = dict(
        candidates=tuple(candidates),
        bank_name_guess=None,
        statement_date=None,
        pipeline_confidence=confidence,
    )
    values.update(overrides)
    return ExtractionResult(**values)


class TextDecoder:
    """Decoder reading bytes as UTF-8 text and spreadsheets from a preset grid."""

    def __init__(self, grid=None):
        self.grid = grid or []

    def decode(self, content: bytes, media_kind: MediaKind) -> DecodedContent:
        if media_kind == MediaKind.SPREADSHEET:
            return DecodedContent(grid=self.grid)
        return DecodedContent(text=content.decode("utf-8"))


class FakeEnhancedExtractor:
    """Enhanced extractor returning a fixed result and recording calls."""

    def __init__(self, result: ExtractionResult = None, error: Exception = None, available: bool = True):
        self.result = result
        self.error = error
        self.available = available
        self.calls = []

    def is_available(self) -> bool:
        return self.available

    def extract_enhanced(self, text: str, file_name: str, owner_id: str) -> ExtractionResult:
        self.calls.append((text, file_name, owner_id))
        if self.error is not None:
            raise self.error
        return self.result


class FakeRateSource:
    """Rate source with fixed rates per currency, counting fetches."""

    name = "fake"

    def __init__(self, rates=None, error: Exception = None):
        self.rates = rates or {}
        self.error = error
        self.calls = []

    def fetch_rate(self, on_date, from_currency, to_currency):
        self.calls.append((on_date, from_currency, to_currency))
        if self.error is not None:
            raise self.error
        if from_currency not in self.rates:
            raise CurrencyConversionUnavailable(f"No rate for {from_currency}")
        return self.rates[from_currency]



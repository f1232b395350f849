"""Tests for the extraction engine."""

import dataclasses
import pytest
from datetime import date
from decimal import Decimal
from finledger.domain.classifier import DocumentClassifier
from finledger.domain.entities import ExtractionMethod, ParsedContent
from finledger.domain.extraction import (
    ExtractionEngine,
    apply_sign_policy,
    compute_pipeline_confidence,
    find_column,
)
from finledger.domain.profiles import (
    BRUBANK_LINE_PROFILE,
    GENERIC_TABULAR_PROFILE,
    SignPolicy,
)
from finledger.utils.amount_parser import ARGENTINE_LOCALE

from helpers import make_candidate


@pytest.fixture
def engine():
    return ExtractionEngine()


def classify(text: str):
    return DocumentClassifier().classify(text)


class TestPipelineConfidence:
    """Tests for document-level confidence."""

    def test_empty_scores_zero(self):
        assert compute_pipeline_confidence([]) == 0

    def test_single_complete_candidate(self):
        assert compute_pipeline_confidence([make_candidate()]) == 82

    def test_candidate_bonus_is_capped(self):
        candidates = [make_candidate(reference_number=str(i)) for i in range(15)]
        assert compute_pipeline_confidence(candidates) == 100

    def test_partial_fields(self):
        candidates = [make_candidate(), make_candidate(description="AB", amount=Decimal("0"))]
        # 50 + 4 + 10 + 5 + 5
        assert compute_pipeline_confidence(candidates) == 74


class TestFindColumn:
    """Tests for header matching."""

    def test_exact_match_wins(self):
        headers = ["Fecha valor", "Fecha"]
        assert find_column(headers, ("fecha",)) == "Fecha"

    def test_substring_match(self):
        assert find_column(["DEBITO EN $"], ("debito",)) == "DEBITO EN $"

    def test_taken_columns_are_skipped(self):
        assert find_column(["Saldo"], ("saldo",), taken={"Saldo"}) is None


class TestTabularExtraction:
    """Tests for row-based extraction."""

    def test_debit_column_row(self, engine):
        """Test a single debit row with Argentine number formatting."""
        parsed = ParsedContent(
            rows=({"FECHA": "15/01/2024", "DESCRIPCION": "NETFLIX SUSCRIPCION", "DEBITO EN $": "1.234,56"},)
        )

        result = engine.extract(parsed, classify(""), "movimientos.csv")

        assert len(result.candidates) == 1
        candidate = result.candidates[0]
        assert candidate.date == date(2024, 1, 15)
        assert candidate.amount == Decimal("-1234.56")
        assert candidate.transaction_type == "debit"
        assert candidate.currency == "ARS"
        assert candidate.description == "NETFLIX SUSCRIPCION"
        assert result.method == ExtractionMethod.DETERMINISTIC
        assert result.profile_id == "generic_columns"

    def test_debit_credit_profile(self, engine):
        rows = (
            {
                "FECHA": "02/01/2024",
                "DESCRIPCION": "TRANSFERENCIA RECIBIDA",
                "REFERENCIA": "0001",
                "DEBITO EN $": "",
                "CREDITO EN $": "50.000,00",
                "SALDO EN $": "60.000,00",
            },
            {
                "FECHA": "03/01/2024",
                "DESCRIPCION": "PAGO AYSA",
                "REFERENCIA": "0002",
                "DEBITO EN $": "4.500,25",
                "CREDITO EN $": "",
                "SALDO EN $": "55.499,75",
            },
            {
                "FECHA": "SALDO ANTERIOR",
                "DESCRIPCION": "",
                "REFERENCIA": "",
                "DEBITO EN $": "",
                "CREDITO EN $": "",
                "SALDO EN $": "10.000,00",
            },
        )

        result = engine.extract(ParsedContent(rows=rows), classify(""), "hipotecario.csv")

        assert result.profile_id == "debit_credit"
        assert result.bank_name_guess == "Banco Hipotecario"
        assert [c.amount for c in result.candidates] == [Decimal("50000.00"), Decimal("-4500.25")]
        assert [c.reference_number for c in result.candidates] == ["0001", "0002"]
        assert result.candidates[1].balance == Decimal("55499.75")
        assert result.candidates[0].extraction_confidence == 90
        assert result.skipped_rows == 0

    def test_signed_amount_profile_uses_operation_code(self, engine):
        rows = (
            {"Fecha": "10/02/2024", "Concepto": "Compra con tarjeta", "Cod. Operativo": "7788", "Importe": "-1.500,00", "Saldo": "8.500,00"},
        )

        result = engine.extract(ParsedContent(rows=rows), classify(""), "santander.xlsx")

        assert result.profile_id == "signed_amount_balance"
        assert result.candidates[0].reference_number == "7788"
        assert result.candidates[0].amount == Decimal("-1500.00")

    def test_dollar_column_sets_currency(self, engine):
        rows = ({"Fecha": "2024-01-05", "Descripcion": "AMAZON", "Importe U$S": "-25,99"},)

        result = engine.extract(ParsedContent(rows=rows), classify(""), "usd.csv")

        assert result.candidates[0].currency == "USD"

    def test_bad_rows_are_counted(self, engine):
        rows = (
            {"Fecha": "15/01/2024", "Descripcion": "OK", "Monto": "-10,00"},
            {"Fecha": "not a date", "Descripcion": "BAD DATE", "Monto": "-10,00"},
            {"Fecha": "16/01/2024", "Descripcion": "BAD AMOUNT", "Monto": "abc"},
            {"Fecha": "17/01/2024", "Descripcion": "ZERO", "Monto": "0,00"},
            {"Fecha": "", "Descripcion": "blank", "Monto": ""},
        )

        result = engine.extract(ParsedContent(rows=rows), classify(""), "mixed.csv")

        assert len(result.candidates) == 1
        assert result.skipped_rows == 3

    def test_missing_columns_yield_nothing(self, engine):
        rows = ({"Foo": "1", "Bar": "2"},)

        result = engine.extract(ParsedContent(rows=rows), classify(""), "unknown.csv")

        assert result.candidates == ()
        assert result.pipeline_confidence == 0

    def test_amount_sign_matches_type(self, engine):
        rows = tuple(
            {"Fecha": "15/01/2024", "Descripcion": f"MOV {i}", "Monto": amount}
            for i, amount in enumerate(["-1,00", "2,00", "(3,00)", "4,00-"])
        )

        result = engine.extract(ParsedContent(rows=rows), classify(""), "signs.csv")

        for candidate in result.candidates:
            assert (candidate.amount < 0) == (candidate.transaction_type == "debit")
        assert [c.transaction_type for c in result.candidates] == ["debit", "credit", "debit", "debit"]


class TestTextExtraction:
    """Tests for line-based extraction."""

    def test_brubank_lines(self, engine):
        text = "\n".join(
            [
                "BRUBANK - Estado de Cuenta del 31/01/2024",
                "15/01/2024 123456 COMPRA NETFLIX 1.234,56",
                "16/01/2024 123457 Reverso - COMPRA SPOTIFY 999,00",
            ]
        )

        result = engine.extract(ParsedContent(text=text), classify(text), "brubank.pdf")

        assert result.profile_id == "brubank_lines"
        assert result.bank_name_guess == "Brubank"
        assert result.statement_date == date(2024, 1, 31)
        first, second = result.candidates
        assert first.reference_number == "123456"
        assert first.description == "COMPRA NETFLIX"
        assert first.amount == Decimal("-1234.56")
        assert first.transaction_type == "debit"
        assert second.amount == Decimal("999.00")
        assert second.transaction_type == "credit"

    def test_generic_lines(self, engine):
        text = "\n".join(
            [
                "Movimientos del mes",
                "15/01/2024 SUPERMERCADO DIA -5.432,10",
                "16-01-24 | Sueldo enero | 850.000,00",
                "Total del período 844.567,90",
            ]
        )

        result = engine.extract(ParsedContent(text=text), classify(text), "resumen.pdf")

        assert result.profile_id == "generic_lines"
        assert result.bank_name_guess is None
        assert [c.description for c in result.candidates] == ["SUPERMERCADO DIA", "Sueldo enero"]
        assert [c.amount for c in result.candidates] == [Decimal("-5432.10"), Decimal("850000.00")]
        assert result.candidates[1].date == date(2024, 1, 16)
        assert all(c.reference_number is None for c in result.candidates)

    def test_bank_profile_without_matches_falls_back(self, engine):
        text = "Banco Santander\n15/01/2024 PAGO TARJETA 12.000,00 ARS"

        result = engine.extract(ParsedContent(text=text), classify(text), "santander.pdf")

        assert result.profile_id == "generic_lines"
        assert result.bank_name_guess == "Banco Santander"
        assert result.candidates[0].amount == Decimal("12000.00")

    def test_no_transactions(self, engine):
        result = engine.extract(ParsedContent(text="Nothing to see here"), classify(""), "empty.pdf")

        assert result.candidates == ()
        assert result.pipeline_confidence == 0

    def test_card_lines_with_printed_negative_are_credits(self, engine):
        text = "\n".join(
            [
                "BRUBANK - Estado de Cuenta del 31/01/2024",
                "20/01/2024 123460 PAGO DE TARJETA -15.000,00",
                "21/01/2024 123461 COMPRA MERCADOLIBRE 2.500,00",
            ]
        )

        result = engine.extract(ParsedContent(text=text), classify(text), "brubank.pdf")

        assert [c.amount for c in result.candidates] == [Decimal("15000.00"), Decimal("-2500.00")]
        assert [c.transaction_type for c in result.candidates] == ["credit", "debit"]


class TestSignPolicy:
    """Tests for mapping printed amounts onto debits and credits."""

    def test_as_printed_keeps_sign(self):
        profile = GENERIC_TABULAR_PROFILE
        assert profile.sign_policy is SignPolicy.AS_PRINTED
        assert apply_sign_policy(Decimal("12.50"), "REVERSO X", profile) == Decimal("12.50")
        assert apply_sign_policy(Decimal("-12.50"), "COMPRA", profile) == Decimal("-12.50")

    @pytest.mark.parametrize(
        "amount, description, expected",
        [
            ("100.00", "COMPRA NETFLIX", "-100.00"),
            ("100.00", "Reverso - COMPRA NETFLIX", "100.00"),
            ("-100.00", "PAGO RECIBIDO", "100.00"),
            ("100.00", "DEVOLUCION COMPRA", "100.00"),
        ],
    )
    def test_charges_policy(self, amount, description, expected):
        result = apply_sign_policy(Decimal(amount), description, BRUBANK_LINE_PROFILE)
        assert result == Decimal(expected)

    def test_charges_policy_on_rows(self):
        card_profile = dataclasses.replace(
            GENERIC_TABULAR_PROFILE,
            profile_id="card_rows",
            sign_policy=SignPolicy.CHARGES,
            reversal_markers=("reverso",),
        )
        engine = ExtractionEngine(tabular_profiles=(), generic_tabular_profile=card_profile)
        rows = (
            {"Fecha": "15/01/2024", "Descripcion": "COMPRA SPOTIFY", "Monto": "999,00"},
            {"Fecha": "16/01/2024", "Descripcion": "REVERSO COMPRA SPOTIFY", "Monto": "999,00"},
        )

        result = engine.extract(ParsedContent(rows=rows), classify(""), "tarjeta.csv")

        assert [c.amount for c in result.candidates] == [Decimal("-999.00"), Decimal("999.00")]


class TestProfileLocale:
    """Tests for profile-declared numeric conventions."""

    def test_argentine_profile_reads_single_comma_as_decimal(self, engine):
        rows = (
            {
                "FECHA": "03/01/2024",
                "DESCRIPCION": "PAGO AYSA",
                "REFERENCIA": "0002",
                "DEBITO EN $": "1,250",
                "CREDITO EN $": "",
                "SALDO EN $": "",
            },
        )

        result = engine.extract(ParsedContent(rows=rows), classify(""), "hipotecario.csv")

        assert result.profile_id == "debit_credit"
        assert result.candidates[0].amount == Decimal("-1.250")

    def test_generic_profile_keeps_grouping_rule(self, engine):
        rows = ({"Fecha": "15/01/2024", "Descripcion": "COMPRA", "Monto": "-1,250"},)

        result = engine.extract(ParsedContent(rows=rows), classify(""), "generic.csv")

        assert GENERIC_TABULAR_PROFILE.numeric_locale is None
        assert result.candidates[0].amount == Decimal("-1250")

    def test_bank_profiles_declare_locale(self):
        assert BRUBANK_LINE_PROFILE.numeric_locale == ARGENTINE_LOCALE

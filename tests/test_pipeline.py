"""End-to-end tests for the pipeline orchestrator."""

import pytest
from decimal import Decimal
from sqlalchemy.exc import OperationalError
from finledger.config import PipelineSettings
from finledger.domain.categorization import CategoryRuleService
from finledger.domain.category import CategoryService
from finledger.domain.entities import ExtractionMethod, ProcessingStatus, SourceDocument
from finledger.factories import create_pipeline

from helpers import FakeEnhancedExtractor, FakeRateSource, TextDecoder, make_candidate, make_result

HIPOTECARIO_CSV = "\n".join(
    [
        "FECHA;DESCRIPCION;REFERENCIA;DEBITO EN $;CREDITO EN $;SALDO EN $",
        "02/01/2024;TRANSFERENCIA RECIBIDA;0001;;50.000,00;60.000,00",
        "03/01/2024;PAGO AYSA;0002;4.500,25;;55.499,75",
        "04/01/2024;CAFE MARTINEZ PALERMO;0003;1.200,00;;54.299,75",
    ]
)

SETTINGS = PipelineSettings(default_monthly_quota=2)


def submit(db, content: str, media_type="text/csv", name="hipotecario.csv", owner="owner-1"):
    document_id = db.create_document(owner_id=owner, original_name=name, media_type=media_type)
    return SourceDocument(
        id=document_id, owner_id=owner, media_type=media_type, original_name=name, content=content.encode()
    )


@pytest.fixture
def rates():
    return FakeRateSource({"ARS": Decimal("1000")})


@pytest.fixture
def extractor():
    return FakeEnhancedExtractor(
        result=make_result([make_candidate(reference_number="AI-1")], confidence=95, bank_name_guess="Brubank")
    )


@pytest.fixture
def pipeline(temp_db, rates, extractor):
    return create_pipeline(
        temp_db,
        settings=SETTINGS,
        decoder=TextDecoder(),
        enhanced_extractor=extractor,
        rate_source=rates,
    )


def test_tabular_document(pipeline, temp_db, extractor):
    document = submit(temp_db, HIPOTECARIO_CSV)

    outcome = pipeline.process_document(document)

    assert outcome.status == ProcessingStatus.COMPLETED
    assert outcome.inserted_count == 3
    assert outcome.duplicate_count == 0
    assert outcome.method == ExtractionMethod.DETERMINISTIC
    assert outcome.pipeline_confidence == 86
    assert not outcome.needs_review
    assert outcome.bank_name_guess == "Banco Hipotecario"
    assert extractor.calls == []

    stored = temp_db.list_transactions(owner_id="owner-1", document_id=document.id)
    by_reference = {t.reference_number: t for t in stored}
    assert by_reference["0002"].amount == Decimal("-4500.25")
    assert by_reference["0002"].amount_in_reference_currency == Decimal("-4.50")
    assert by_reference["0001"].transaction_type == "credit"
    assert all(t.bank_name == "Banco Hipotecario" for t in stored)

    record = temp_db.get_document(document.id)
    assert record.status == "completed"
    assert record.inserted_count == 3
    assert record.method == "deterministic"


def test_reprocessing_reports_duplicates(pipeline, temp_db):
    pipeline.process_document(submit(temp_db, HIPOTECARIO_CSV))

    outcome = pipeline.process_document(submit(temp_db, HIPOTECARIO_CSV))

    assert outcome.inserted_count == 0
    assert outcome.duplicate_count == 3
    assert len(temp_db.list_transactions(owner_id="owner-1")) == 3


def test_rules_assign_categories(pipeline, temp_db):
    categories = CategoryService(temp_db)
    rules = CategoryRuleService(temp_db)
    food = categories.create_category("owner-1", "Food")
    coffee = categories.create_category("owner-1", "Coffee", parent_path="Food")
    rules.add_rule("owner-1", "CAFE", food, priority=5)
    rules.add_rule("owner-1", "CAFE MARTINEZ", coffee, priority=10)

    pipeline.process_document(submit(temp_db, HIPOTECARIO_CSV))

    by_reference = {t.reference_number: t for t in temp_db.list_transactions(owner_id="owner-1")}
    assert by_reference["0003"].category_id == coffee
    assert by_reference["0002"].category_id is None


def test_rate_failure_still_persists(temp_db, extractor):
    pipeline = create_pipeline(
        temp_db,
        settings=SETTINGS,
        decoder=TextDecoder(),
        enhanced_extractor=extractor,
        rate_source=FakeRateSource(error=ConnectionError("rate service down")),
    )

    outcome = pipeline.process_document(submit(temp_db, HIPOTECARIO_CSV))

    assert outcome.status == ProcessingStatus.COMPLETED
    assert outcome.inserted_count == 3
    assert any("could not be converted" in w for w in outcome.warnings)
    assert all(t.amount_in_reference_currency is None for t in temp_db.list_transactions(owner_id="owner-1"))


def test_low_confidence_text_escalates(pipeline, temp_db, extractor):
    outcome = pipeline.process_document(submit(temp_db, "nothing useful", "text/plain", "scan.txt"))

    assert len(extractor.calls) == 1
    assert outcome.method == ExtractionMethod.AI_ASSISTED
    assert outcome.needs_review
    assert outcome.bank_name_guess == "Brubank"
    (stored,) = temp_db.list_transactions(owner_id="owner-1")
    assert stored.reference_number == "AI-1"
    assert stored.needs_review


def test_quota_exhausted_keeps_deterministic_result(pipeline, temp_db, extractor):
    for _ in range(2):
        pipeline.process_document(submit(temp_db, "nothing useful", "text/plain", "scan.txt"))

    outcome = pipeline.process_document(submit(temp_db, "nothing useful", "text/plain", "scan.txt"))

    assert len(extractor.calls) == 2
    assert outcome.status == ProcessingStatus.COMPLETED
    assert outcome.method == ExtractionMethod.DETERMINISTIC
    assert outcome.needs_review
    assert outcome.inserted_count == 0


def test_unsupported_format_fails(pipeline, temp_db):
    document = submit(temp_db, "GIF89a", "image/gif", "photo.gif")

    outcome = pipeline.process_document(document)

    assert outcome.status == ProcessingStatus.FAILED
    assert "image/gif" in outcome.error
    assert outcome.to_dict()["status"] == "failed"
    assert temp_db.get_document(document.id).status == "failed"


def test_store_failure_fails_document(pipeline, temp_db, monkeypatch):
    def broken_insert(*args, **kwargs):
        raise OperationalError("INSERT", {}, Exception("disk I/O error"))

    monkeypatch.setattr(temp_db, "insert_transaction", broken_insert)

    outcome = pipeline.process_document(submit(temp_db, HIPOTECARIO_CSV))

    assert outcome.status == ProcessingStatus.FAILED
    assert "Could not store transactions" in outcome.error


def test_outcome_dict_shape(pipeline, temp_db):
    outcome = pipeline.process_document(submit(temp_db, HIPOTECARIO_CSV))

    assert outcome.to_dict() == {
        "status": "completed",
        "insertedCount": 3,
        "duplicateCount": 0,
        "pipelineConfidence": 86,
        "method": "deterministic",
        "needsReview": False,
        "bankNameGuess": "Banco Hipotecario",
    }

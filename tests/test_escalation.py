"""Tests for confidence-gated escalation."""

import pytest
from decimal import Decimal
from finledger.domain.entities import ExtractionMethod
from finledger.domain.escalation import EscalationController

from helpers import FakeEnhancedExtractor, make_candidate, make_result


def ai_result():
    return make_result(
        [make_candidate(reference_number="AI-1", amount=Decimal("-10.00"), extraction_confidence=100)],
        confidence=100,
        bank_name_guess="Brubank",
        method=ExtractionMethod.AI_ASSISTED,
    )


@pytest.fixture
def extractor():
    return FakeEnhancedExtractor(result=ai_result())


@pytest.fixture
def controller(quota_service, extractor):
    return EscalationController(quota_service, enhanced_extractor=extractor, threshold=60)


def deterministic(confidence):
    return make_result([make_candidate()], confidence=confidence, bank_name_guess="Banco Galicia")


def test_at_threshold_is_final(controller, extractor, quota_service):
    outcome = controller.resolve(deterministic(60), "text", "doc.pdf", "owner-1")

    assert not outcome.escalated
    assert not outcome.needs_review
    assert outcome.method == ExtractionMethod.DETERMINISTIC
    assert extractor.calls == []
    assert quota_service.check_quota("owner-1").used == 0


def test_below_threshold_escalates_once(controller, extractor, quota_service):
    outcome = controller.resolve(deterministic(59), "statement text", "doc.pdf", "owner-1")

    assert extractor.calls == [("statement text", "doc.pdf", "owner-1")]
    assert outcome.escalated
    assert outcome.method == ExtractionMethod.AI_ASSISTED
    assert outcome.needs_review
    assert all(c.needs_review for c in outcome.result.candidates)
    assert [c.reference_number for c in outcome.result.candidates] == ["AI-1"]
    assert outcome.result.bank_name_guess == "Brubank"
    assert quota_service.check_quota("owner-1").used == 1


def test_ai_review_flag_can_be_disabled(quota_service, extractor):
    controller = EscalationController(
        quota_service, enhanced_extractor=extractor, review_all_ai_results=False
    )

    outcome = controller.resolve(deterministic(10), "text", "doc.pdf", "owner-1")

    assert outcome.method == ExtractionMethod.AI_ASSISTED
    assert not any(c.needs_review for c in outcome.result.candidates)
    assert outcome.needs_review is False


def test_missing_bank_is_taken_from_deterministic_result(quota_service):
    extractor = FakeEnhancedExtractor(result=make_result([make_candidate()], confidence=95))
    controller = EscalationController(quota_service, enhanced_extractor=extractor)

    outcome = controller.resolve(deterministic(10), "text", "doc.pdf", "owner-1")

    assert outcome.result.bank_name_guess == "Banco Galicia"


def test_exhausted_quota_keeps_deterministic_result(controller, extractor, quota_service):
    for _ in range(3):
        quota_service.increment_usage("owner-1")

    outcome = controller.resolve(deterministic(40), "text", "doc.pdf", "owner-1")

    assert extractor.calls == []
    assert not outcome.escalated
    assert outcome.method == ExtractionMethod.DETERMINISTIC
    assert outcome.needs_review
    assert all(c.needs_review for c in outcome.result.candidates)
    assert "enhanced extractions" in outcome.reason


def test_no_extractor_configured(quota_service):
    controller = EscalationController(quota_service, enhanced_extractor=None)

    outcome = controller.resolve(deterministic(0), "text", "doc.pdf", "owner-1")

    assert outcome.method == ExtractionMethod.DETERMINISTIC
    assert outcome.needs_review


def test_unavailable_extractor(quota_service):
    extractor = FakeEnhancedExtractor(result=ai_result(), available=False)
    controller = EscalationController(quota_service, enhanced_extractor=extractor)

    outcome = controller.resolve(deterministic(0), "text", "doc.pdf", "owner-1")

    assert extractor.calls == []
    assert outcome.needs_review


def test_failed_call_is_hybrid_and_free(quota_service):
    extractor = FakeEnhancedExtractor(error=RuntimeError("timeout"))
    controller = EscalationController(quota_service, enhanced_extractor=extractor)

    outcome = controller.resolve(deterministic(30), "text", "doc.pdf", "owner-1")

    assert outcome.method == ExtractionMethod.HYBRID
    assert outcome.needs_review
    assert [c.reference_number for c in outcome.result.candidates] == ["REF-1"]
    assert "timeout" in outcome.reason
    assert quota_service.check_quota("owner-1").used == 0


def test_empty_ai_result_keeps_deterministic_candidates(quota_service):
    extractor = FakeEnhancedExtractor(result=make_result([], confidence=0))
    controller = EscalationController(quota_service, enhanced_extractor=extractor)

    outcome = controller.resolve(deterministic(30), "text", "doc.pdf", "owner-1")

    assert outcome.method == ExtractionMethod.HYBRID
    assert [c.reference_number for c in outcome.result.candidates] == ["REF-1"]
    assert quota_service.check_quota("owner-1").used == 1


def test_refused_increment_discards_ai_result(quota_service, extractor, monkeypatch):
    controller = EscalationController(quota_service, enhanced_extractor=extractor)
    monkeypatch.setattr(quota_service, "increment_usage", lambda owner_id: None)

    outcome = controller.resolve(deterministic(30), "text", "doc.pdf", "owner-1")

    assert outcome.method == ExtractionMethod.HYBRID
    assert [c.reference_number for c in outcome.result.candidates] == ["REF-1"]
    assert outcome.needs_review

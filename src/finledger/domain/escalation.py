"""Confidence-gated escalation to the enhanced extractor."""

from dataclasses import dataclass, replace
import logging
from typing import Optional, Protocol

from finledger.domain.entities import ExtractionMethod, ExtractionResult
from finledger.domain.errors import EscalationUnavailable, quota_exhausted
from finledger.domain.quota import QuotaService

logger = logging.getLogger(__name__)

DEFAULT_ESCALATION_THRESHOLD = 60


class EnhancedExtractor(Protocol):
    """High-cost extraction capability, billed against the owner's quota."""

    def is_available(self) -> bool:
        ...

    def extract_enhanced(self, text: str, file_name: str, owner_id: str) -> ExtractionResult:
        ...


@dataclass(frozen=True)
class EscalationOutcome:
    """Final extraction result and how it was reached."""

    result: ExtractionResult
    needs_review: bool
    escalated: bool
    reason: Optional[str] = None

    @property
    def method(self) -> ExtractionMethod:
        return self.result.method


def mark_for_review(result: ExtractionResult, method: ExtractionMethod) -> ExtractionResult:
    """Return a copy of ``result`` with every candidate flagged for review."""
    return replace(
        result,
        method=method,
        candidates=tuple(replace(c, needs_review=True) for c in result.candidates),
    )


class EscalationController:
    """Decides whether a deterministic result is final or needs enhanced extraction."""

    def __init__(
        self,
        quota_service: QuotaService,
        enhanced_extractor: Optional[EnhancedExtractor] = None,
        threshold: int = DEFAULT_ESCALATION_THRESHOLD,
        review_all_ai_results: bool = True,
    ):
        """Initialize escalation controller.

        Args:
            quota_service: Quota checks and atomic increments
            enhanced_extractor: High-cost extractor, or None when not configured
            threshold: Pipeline confidence at or above which results are final
            review_all_ai_results: Flag every enhanced candidate for review
        """
        self.quota_service = quota_service
        self.enhanced_extractor = enhanced_extractor
        self.threshold = threshold
        self.review_all_ai_results = review_all_ai_results

    def resolve(
        self, result: ExtractionResult, text: str, file_name: str, owner_id: str
    ) -> EscalationOutcome:
        """Return the final extraction result for a document.

        Args:
            result: Deterministic extraction result
            text: Parsed document text, sent to the enhanced extractor
            file_name: Original file name
            owner_id: Document owner, whose quota is consumed

        Returns:
            EscalationOutcome with the final result
        """
        if result.pipeline_confidence >= self.threshold:
            return EscalationOutcome(
                result=replace(result, method=ExtractionMethod.DETERMINISTIC),
                needs_review=False,
                escalated=False,
            )

        logger.info(
            "Pipeline confidence %d below %d for %s, considering enhanced extraction",
            result.pipeline_confidence,
            self.threshold,
            file_name,
        )

        # Check, invoke and increment as one unit per owner in this process;
        # the conditional UPDATE in the store guards across processes.
        with QuotaService.owner_lock(owner_id):
            try:
                self._ensure_available(owner_id)
            except EscalationUnavailable as e:
                logger.info("Enhanced extraction unavailable for %s: %s", file_name, e)
                return EscalationOutcome(
                    result=mark_for_review(result, ExtractionMethod.DETERMINISTIC),
                    needs_review=True,
                    escalated=False,
                    reason=str(e),
                )

            try:
                enhanced = self.enhanced_extractor.extract_enhanced(text, file_name, owner_id)
            except Exception as e:
                logger.warning("Enhanced extraction failed for %s: %s", file_name, e)
                return EscalationOutcome(
                    result=mark_for_review(result, ExtractionMethod.HYBRID),
                    needs_review=True,
                    escalated=True,
                    reason=f"Enhanced extraction failed: {e}",
                )

            if self.quota_service.increment_usage(owner_id) is None:
                return EscalationOutcome(
                    result=mark_for_review(result, ExtractionMethod.HYBRID),
                    needs_review=True,
                    escalated=True,
                    reason="Quota was consumed by a concurrent request; enhanced result discarded",
                )

        if not enhanced.candidates:
            logger.warning("Enhanced extraction returned no transactions for %s", file_name)
            return EscalationOutcome(
                result=mark_for_review(result, ExtractionMethod.HYBRID),
                needs_review=True,
                escalated=True,
                reason="Enhanced extraction returned no transactions",
            )

        merged = replace(
            enhanced,
            bank_name_guess=enhanced.bank_name_guess or result.bank_name_guess,
            statement_date=enhanced.statement_date or result.statement_date,
        )
        if self.review_all_ai_results:
            merged = mark_for_review(merged, ExtractionMethod.AI_ASSISTED)
        else:
            merged = replace(merged, method=ExtractionMethod.AI_ASSISTED)

        logger.info("Enhanced extraction produced %d candidates for %s", len(merged.candidates), file_name)
        needs_review = self.review_all_ai_results or any(c.needs_review for c in merged.candidates)
        return EscalationOutcome(result=merged, needs_review=needs_review, escalated=True)

    def _ensure_available(self, owner_id: str) -> None:
        """Raise EscalationUnavailable if the extractor cannot be used for the owner."""
        if self.enhanced_extractor is None or not self.enhanced_extractor.is_available():
            raise EscalationUnavailable("Enhanced extractor is not configured or unreachable")
        state = self.quota_service.check_quota(owner_id)
        if not state.available:
            raise EscalationUnavailable(quota_exhausted(owner_id, state.period_key, state.limit))

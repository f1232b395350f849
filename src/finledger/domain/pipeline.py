"""Pipeline orchestrator: one document from bytes to stored transactions."""

import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from finledger.database.base import Database
from finledger.domain.categorization import AutoCategorizer
from finledger.domain.classifier import DocumentClassifier
from finledger.domain.content_parser import ContentParser
from finledger.domain.currency import CurrencyNormalizer
from finledger.domain.deduplication import DeduplicationGate
from finledger.domain.entities import (
    ExtractionMethod,
    ProcessingOutcome,
    ProcessingStatus,
    SourceDocument,
    UNKNOWN,
)
from finledger.domain.errors import (
    ClassificationInconclusive,
    ContentDecodeError,
    UnsupportedFormat,
)
from finledger.domain.escalation import EscalationController
from finledger.domain.extraction import ExtractionEngine

logger = logging.getLogger(__name__)


class PipelineOrchestrator:
    """Runs the processing stages for a single document.

    Stages run strictly in order: parse, classify, extract, escalate,
    deduplicate, convert currency, categorize, persist. Only an unreadable
    document or a store failure while persisting fails the document; every
    other problem degrades to a review-flagged or partially converted result.
    """

    def __init__(
        self,
        db: Database,
        parser: ContentParser,
        classifier: DocumentClassifier,
        engine: ExtractionEngine,
        escalation: EscalationController,
        dedup_gate: DeduplicationGate,
        currency: CurrencyNormalizer,
        categorizer: AutoCategorizer,
    ):
        self.db = db
        self.parser = parser
        self.classifier = classifier
        self.engine = engine
        self.escalation = escalation
        self.dedup_gate = dedup_gate
        self.currency = currency
        self.categorizer = categorizer

    def process_document(self, document: SourceDocument) -> ProcessingOutcome:
        """Process a document and record its outcome.

        Args:
            document: Uploaded document

        Returns:
            ProcessingOutcome describing what was stored
        """
        logger.info(
            "Processing document %s (%s) for owner %s",
            document.id,
            document.original_name,
            document.owner_id,
        )
        warnings: list[str] = []

        try:
            parsed = self.parser.parse(document.content, document.media_type, document.original_name)
        except (UnsupportedFormat, ContentDecodeError) as e:
            return self._fail(document, str(e))

        classification = self.classifier.classify(parsed.text)
        try:
            self.classifier.assert_conclusive(classification)
        except ClassificationInconclusive as e:
            logger.warning("Document %s: %s", document.id, e)
            warnings.append(str(e))

        extraction = self.engine.extract(parsed, classification, document.original_name)
        if extraction.skipped_rows:
            warnings.append(f"{extraction.skipped_rows} rows could not be parsed")

        escalation = self.escalation.resolve(
            extraction, parsed.text, document.original_name, document.owner_id
        )
        result = escalation.result
        if escalation.reason:
            warnings.append(escalation.reason)

        bank_name = result.bank_name_guess
        if bank_name is None and classification.bank_id != UNKNOWN:
            bank_name = classification.bank_name

        try:
            dedup = self.dedup_gate.filter(document.owner_id, result.candidates)
            candidates = self.currency.normalize(dedup.fresh)
            unconverted = sum(1 for c in candidates if c.amount_in_reference_currency is None)
            if unconverted:
                warnings.append(
                    f"{unconverted} transactions could not be converted to "
                    f"{self.currency.reference_currency}"
                )

            rules = self.db.list_category_rules(document.owner_id)
            candidates = self.categorizer.categorize_all(candidates, rules)

            report = self.dedup_gate.persist(
                document.owner_id, candidates, document_id=document.id, bank_name=bank_name
            )
        except SQLAlchemyError as e:
            logger.exception("Store failure while persisting document %s", document.id)
            self.db.rollback()
            return self._fail(
                document,
                f"Could not store transactions: {e}",
                pipeline_confidence=result.pipeline_confidence,
                method=result.method,
                bank_name=bank_name,
                document_type=classification.document_type,
            )

        outcome = ProcessingOutcome(
            status=ProcessingStatus.COMPLETED,
            document_id=document.id,
            inserted_count=report.inserted_count,
            duplicate_count=report.duplicate_count + len(dedup.duplicates),
            pipeline_confidence=result.pipeline_confidence,
            method=result.method,
            needs_review=escalation.needs_review or any(c.needs_review for c in candidates),
            bank_name_guess=bank_name,
            document_type=classification.document_type,
            total_candidates=len(result.candidates),
            warnings=tuple(warnings),
        )
        self.db.record_document_outcome(
            document.id,
            status=outcome.status.value,
            document_type=outcome.document_type,
            bank_name=bank_name,
            pipeline_confidence=outcome.pipeline_confidence,
            method=outcome.method.value,
            needs_review=outcome.needs_review,
            statement_date=result.statement_date,
            inserted_count=outcome.inserted_count,
            duplicate_count=outcome.duplicate_count,
        )
        logger.info(
            "Document %s completed: %d inserted, %d duplicates, method %s",
            document.id,
            outcome.inserted_count,
            outcome.duplicate_count,
            outcome.method.value,
        )
        return outcome

    def _fail(
        self,
        document: SourceDocument,
        error: str,
        pipeline_confidence: int = 0,
        method: ExtractionMethod = ExtractionMethod.DETERMINISTIC,
        bank_name: Optional[str] = None,
        document_type: str = UNKNOWN,
    ) -> ProcessingOutcome:
        logger.error("Document %s failed: %s", document.id, error)
        self.db.record_document_outcome(
            document.id,
            status=ProcessingStatus.FAILED.value,
            document_type=document_type,
            bank_name=bank_name,
            pipeline_confidence=pipeline_confidence,
            method=method.value,
            error=error,
        )
        return ProcessingOutcome(
            status=ProcessingStatus.FAILED,
            document_id=document.id,
            pipeline_confidence=pipeline_confidence,
            method=method,
            bank_name_guess=bank_name,
            document_type=document_type,
            error=error,
        )

"""Document type and bank identity classification."""

import logging
from typing import Optional

from finledger.domain.entities import DocumentClassification, UNKNOWN
from finledger.domain.errors import ClassificationInconclusive
from finledger.domain.profiles import (
    BANK_IDENTITIES,
    DOCUMENT_TYPES,
    UNKNOWN_BANK_NAME,
    UNKNOWN_TYPE_NAME,
    BankIdentity,
    DocumentTypePatterns,
)

logger = logging.getLogger(__name__)


def type_confidence(matched: int, total: int, priority: int) -> int:
    """Score a document type group.

    ``matched / total * 50 + priority / 2 + matched * 5``, capped at 100.
    """
    if matched == 0 or total == 0:
        return 0
    score = (matched / total) * 50 + priority / 2 + matched * 5
    # Round half up to match the integer percentages reported elsewhere
    return int(min(score, 100) + 0.5)


class DocumentClassifier:
    """Scores text against document type and bank identity catalogs."""

    def __init__(
        self,
        document_types: tuple[DocumentTypePatterns, ...] = DOCUMENT_TYPES,
        bank_identities: tuple[BankIdentity, ...] = BANK_IDENTITIES,
    ):
        self.document_types = document_types
        self.bank_identities = bank_identities

    def classify(self, text: str) -> DocumentClassification:
        """Classify a document from its text.

        Document type and bank are resolved independently, so either may be
        ``unknown`` while the other is identified.

        Args:
            text: Parsed document text

        Returns:
            DocumentClassification for the text
        """
        type_id, type_name, confidence, matched = self._classify_type(text or "")
        bank = self.detect_bank(text or "")

        classification = DocumentClassification(
            document_type=type_id,
            document_type_name=type_name,
            type_confidence=confidence,
            matched_patterns=matched,
            bank_id=bank.bank_id if bank else UNKNOWN,
            bank_name=bank.name if bank else UNKNOWN_BANK_NAME,
            bank_confidence=100 if bank else 0,
        )
        logger.debug(
            "Classified document as %s (%d%%), bank %s",
            classification.document_type,
            classification.type_confidence,
            classification.bank_id,
        )
        return classification

    def detect_bank(self, text: str) -> Optional[BankIdentity]:
        """Return the first bank whose keyword appears in the text."""
        lowered = text.lower()
        for bank in self.bank_identities:
            if any(keyword in lowered for keyword in bank.keywords):
                return bank
        return None

    def assert_conclusive(self, classification: DocumentClassification) -> None:
        """Raise when neither document type nor bank was identified.

        Raises:
            ClassificationInconclusive: If type and bank are both unknown
        """
        if not classification.is_conclusive:
            raise ClassificationInconclusive("Could not identify document type or bank")

    def _classify_type(self, text: str) -> tuple[str, str, int, frozenset[str]]:
        if not text.strip():
            return UNKNOWN, UNKNOWN_TYPE_NAME, 0, frozenset()

        best: Optional[tuple[int, int, DocumentTypePatterns, frozenset[str]]] = None
        for group in self.document_types:
            matched = frozenset(p.pattern for p in group.patterns if p.search(text))
            if not matched:
                continue
            confidence = type_confidence(len(matched), len(group.patterns), group.priority)
            # Ties go to the higher-priority group, then to catalog order
            if best is None or (confidence, group.priority) > (best[0], best[1]):
                best = (confidence, group.priority, group, matched)

        if best is None:
            return UNKNOWN, UNKNOWN_TYPE_NAME, 0, frozenset()
        confidence, _, group, matched = best
        return group.type_id, group.name, confidence, matched

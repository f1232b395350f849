"""Deduplication and persistence of transaction candidates."""

from dataclasses import dataclass, field
import logging
from typing import Optional, Sequence

from finledger.database.base import Database
from finledger.domain.entities import TransactionCandidate
from finledger.domain.errors import DuplicateReference

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DedupResult:
    """Candidates split into new ones and known duplicates."""

    fresh: tuple[TransactionCandidate, ...]
    duplicates: tuple[TransactionCandidate, ...]


@dataclass(frozen=True)
class PersistenceReport:
    inserted_count: int
    duplicate_count: int
    transaction_ids: tuple[int, ...] = field(default_factory=tuple)


class DeduplicationGate:
    """Keeps already-stored transactions from being inserted again.

    Reference numbers are the natural key. Candidates without one cannot be
    matched and are always let through.
    """

    def __init__(self, db: Database):
        """Initialize deduplication gate.

        Args:
            db: Database instance
        """
        self.db = db

    def filter(self, owner_id: str, candidates: Sequence[TransactionCandidate]) -> DedupResult:
        """Split candidates into fresh ones and duplicates.

        A candidate is a duplicate when its reference number is already stored
        for the owner, or appeared earlier in the same batch.
        """
        references = [c.reference_number.strip() for c in candidates if c.has_reference]
        existing = self.db.find_existing_reference_numbers(owner_id, references)

        fresh = []
        duplicates = []
        seen: set[str] = set()
        for candidate in candidates:
            if not candidate.has_reference:
                fresh.append(candidate)
                continue
            reference = candidate.reference_number.strip()
            if reference in existing or reference in seen:
                duplicates.append(candidate)
                continue
            seen.add(reference)
            fresh.append(candidate)

        if duplicates:
            logger.info("Skipping %d duplicate transactions for owner %s", len(duplicates), owner_id)
        return DedupResult(fresh=tuple(fresh), duplicates=tuple(duplicates))

    def persist(
        self,
        owner_id: str,
        candidates: Sequence[TransactionCandidate],
        document_id: Optional[int] = None,
        bank_name: Optional[str] = None,
    ) -> PersistenceReport:
        """Insert candidates one by one.

        A uniqueness conflict raised by the store (another upload inserted the
        same reference after ``filter`` ran) counts as a duplicate. Any other
        store error propagates.

        Returns:
            PersistenceReport with inserted and duplicate counts
        """
        inserted_ids = []
        duplicates = 0
        for candidate in candidates:
            try:
                inserted_ids.append(
                    self.db.insert_transaction(
                        owner_id, candidate, document_id=document_id, bank_name=bank_name
                    )
                )
            except DuplicateReference as e:
                duplicates += 1
                logger.info("Late duplicate skipped: %s", e)
        return PersistenceReport(
            inserted_count=len(inserted_ids),
            duplicate_count=duplicates,
            transaction_ids=tuple(inserted_ids),
        )

    def save(
        self,
        owner_id: str,
        candidates: Sequence[TransactionCandidate],
        document_id: Optional[int] = None,
        bank_name: Optional[str] = None,
    ) -> PersistenceReport:
        """Filter then persist a batch, counting both kinds of duplicates."""
        result = self.filter(owner_id, candidates)
        report = self.persist(owner_id, result.fresh, document_id=document_id, bank_name=bank_name)
        return PersistenceReport(
            inserted_count=report.inserted_count,
            duplicate_count=report.duplicate_count + len(result.duplicates),
            transaction_ids=report.transaction_ids,
        )

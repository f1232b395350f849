"""Domain model entities for finledger.

These are pure data classes representing business concepts, independent of
database schema. Pipeline stages never mutate a record they receive: each
stage returns a new record built with ``dataclasses.replace``.
"""

from dataclasses import dataclass, field
from datetime import datetime, date
from decimal import Decimal
from enum import Enum
from typing import Any, Optional


class ExtractionMethod(str, Enum):
    """How the final set of candidates for a document was produced."""

    DETERMINISTIC = "deterministic"
    AI_ASSISTED = "ai-assisted"
    HYBRID = "hybrid"


class MatchField(str, Enum):
    """Which candidate text a category rule inspects."""

    DESCRIPTION = "description"
    MERCHANT = "merchant"
    BOTH = "both"


class ProcessingStatus(str, Enum):
    COMPLETED = "completed"
    FAILED = "failed"


UNKNOWN = "unknown"


@dataclass(frozen=True)
class SourceDocument:
    """Uploaded document, consumed once by the pipeline."""

    id: int
    owner_id: str
    media_type: str
    original_name: str
    content: bytes


@dataclass(frozen=True)
class ParsedContent:
    """Decoded document content: free text, tabular rows, or both."""

    text: str = ""
    rows: tuple[dict[str, Any], ...] = ()

    @property
    def is_tabular(self) -> bool:
        return len(self.rows) > 0


@dataclass(frozen=True)
class DocumentClassification:
    """Best-match document type and bank identity for a document."""

    document_type: str
    document_type_name: str
    type_confidence: int
    matched_patterns: frozenset[str]
    bank_id: str
    bank_name: str
    bank_confidence: int

    @property
    def is_conclusive(self) -> bool:
        return self.document_type != UNKNOWN or self.bank_id != UNKNOWN


@dataclass(frozen=True)
class TransactionCandidate:
    """Provisionally extracted transaction.

    The sign of ``amount`` carries the direction: negative amounts are
    debits, positive amounts are credits.
    """

    date: date
    description: str
    merchant: str
    amount: Decimal
    reference_number: Optional[str]
    raw_source: str
    extraction_confidence: int
    currency: str
    balance: Optional[Decimal] = None
    needs_review: bool = False
    category_id: Optional[int] = None
    amount_in_reference_currency: Optional[Decimal] = None
    exchange_rate: Optional[Decimal] = None
    exchange_rate_date: Optional[date] = None

    @property
    def transaction_type(self) -> str:
        return "debit" if self.amount < 0 else "credit"

    @property
    def has_reference(self) -> bool:
        return bool(self.reference_number and self.reference_number.strip())


@dataclass(frozen=True)
class ExtractionResult:
    """Candidates extracted from one document plus document-level metadata."""

    candidates: tuple[TransactionCandidate, ...]
    bank_name_guess: Optional[str]
    statement_date: Optional[date]
    pipeline_confidence: int
    method: ExtractionMethod = ExtractionMethod.DETERMINISTIC
    skipped_rows: int = 0
    profile_id: Optional[str] = None


@dataclass(frozen=True)
class QuotaState:
    """Escalation usage for one owner in one monthly period."""

    owner_id: str
    period_key: str
    used: int
    limit: int
    reset_date: date

    @property
    def remaining(self) -> int:
        return max(self.limit - self.used, 0)

    @property
    def available(self) -> bool:
        return self.used < self.limit


@dataclass(frozen=True)
class Category:
    """Category domain entity with hierarchical structure."""

    id: int
    owner_id: str
    name: str
    parent_id: Optional[int]
    created_at: datetime


@dataclass(frozen=True)
class CategoryRule:
    """Keyword or pattern rule that assigns a category."""

    id: int
    owner_id: str
    keyword: str
    match_field: MatchField
    priority: int
    case_sensitive: bool
    is_pattern: bool
    category_id: int
    created_at: datetime


@dataclass(frozen=True)
class ExchangeRateEntry:
    """Cached exchange rate: units of ``from_currency`` per one ``to_currency``."""

    date: date
    from_currency: str
    to_currency: str
    rate: Decimal
    source: str


@dataclass(frozen=True)
class Conversion:
    """Amount converted to the reference currency."""

    amount: Decimal
    rate: Decimal
    rate_date: date


@dataclass(frozen=True)
class StoredTransaction:
    """Persisted transaction."""

    id: int
    owner_id: str
    document_id: Optional[int]
    date: date
    description: str
    merchant: Optional[str]
    amount: Decimal
    transaction_type: str
    currency: str
    reference_number: Optional[str]
    bank_name: Optional[str]
    balance: Optional[Decimal]
    category_id: Optional[int]
    needs_review: bool
    extraction_confidence: Optional[int]
    amount_in_reference_currency: Optional[Decimal]
    exchange_rate: Optional[Decimal]
    exchange_rate_date: Optional[date]
    imported_at: datetime


@dataclass(frozen=True)
class DocumentRecord:
    """Stored document and the outcome of its last pipeline run."""

    id: int
    owner_id: str
    original_name: str
    media_type: str
    status: str
    document_type: Optional[str]
    bank_name: Optional[str]
    pipeline_confidence: Optional[int]
    method: Optional[str]
    needs_review: bool
    statement_date: Optional[date]
    inserted_count: int
    duplicate_count: int
    error: Optional[str]
    created_at: datetime
    processed_at: Optional[datetime]


@dataclass(frozen=True)
class ProcessingOutcome:
    """Structured result of running one document through the pipeline."""

    status: ProcessingStatus
    document_id: int
    inserted_count: int = 0
    duplicate_count: int = 0
    pipeline_confidence: int = 0
    method: ExtractionMethod = ExtractionMethod.DETERMINISTIC
    needs_review: bool = False
    bank_name_guess: Optional[str] = None
    document_type: str = UNKNOWN
    total_candidates: int = 0
    warnings: tuple[str, ...] = field(default_factory=tuple)
    error: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        """Return the outcome in the shape reported to callers."""
        result: dict[str, Any] = {
            "status": self.status.value,
            "insertedCount": self.inserted_count,
            "duplicateCount": self.duplicate_count,
            "pipelineConfidence": self.pipeline_confidence,
            "method": self.method.value,
            "needsReview": self.needs_review,
            "bankNameGuess": self.bank_name_guess,
        }
        if self.error is not None:
            result["error"] = self.error
        return result

"""Abstract database interface."""

from abc import ABC, abstractmethod
from typing import Optional, Any, Iterable
from datetime import date
from decimal import Decimal

# Import entities directly to avoid circular import through domain/__init__.py
from finledger.domain.entities import (
    Category,
    CategoryRule,
    DocumentRecord,
    ExchangeRateEntry,
    StoredTransaction,
    TransactionCandidate,
)


class Database(ABC):
    """Abstract database interface for finledger."""

    @abstractmethod
    def connect(self) -> None:
        """Connect to the database."""
        pass

    @abstractmethod
    def disconnect(self) -> None:
        """Disconnect from the database."""
        pass

    @abstractmethod
    def initialize_schema(self) -> None:
        """Initialize database schema (create tables)."""
        pass

    @abstractmethod
    def rollback(self) -> None:
        """Discard uncommitted changes after a failed operation."""
        pass

    # Document operations
    @abstractmethod
    def create_document(self, owner_id: str, original_name: str, media_type: str) -> int:
        """Register an uploaded document. Returns document ID."""
        pass

    @abstractmethod
    def get_document(self, document_id: int) -> Optional[DocumentRecord]:
        """Get document by ID."""
        pass

    @abstractmethod
    def record_document_outcome(
        self,
        document_id: int,
        status: str,
        document_type: Optional[str] = None,
        bank_name: Optional[str] = None,
        pipeline_confidence: Optional[int] = None,
        method: Optional[str] = None,
        needs_review: bool = False,
        statement_date: Optional[date] = None,
        inserted_count: int = 0,
        duplicate_count: int = 0,
        error: Optional[str] = None,
    ) -> None:
        """Store the outcome of processing a document."""
        pass

    # Transaction operations
    @abstractmethod
    def find_existing_reference_numbers(
        self, owner_id: str, reference_numbers: Iterable[str]
    ) -> set[str]:
        """Return the given reference numbers already stored for the owner."""
        pass

    @abstractmethod
    def insert_transaction(
        self,
        owner_id: str,
        candidate: TransactionCandidate,
        document_id: Optional[int] = None,
        bank_name: Optional[str] = None,
    ) -> int:
        """Insert a transaction. Returns transaction ID.

        Raises:
            DuplicateReference: If the owner already has the reference number
        """
        pass

    @abstractmethod
    def get_transaction(self, transaction_id: int) -> Optional[StoredTransaction]:
        """Get transaction by ID."""
        pass

    @abstractmethod
    def list_transactions(
        self,
        owner_id: Optional[str] = None,
        document_id: Optional[int] = None,
        unconverted_only: bool = False,
    ) -> list[StoredTransaction]:
        """List transactions with optional filters."""
        pass

    @abstractmethod
    def update_transaction_conversion(
        self,
        transaction_id: int,
        amount_in_reference_currency: Decimal,
        exchange_rate: Decimal,
        exchange_rate_date: date,
    ) -> None:
        """Store the reference-currency conversion of a transaction."""
        pass

    # Category operations
    @abstractmethod
    def create_category(self, owner_id: str, name: str, parent_id: Optional[int] = None) -> int:
        """Create a category. Returns category ID."""
        pass

    @abstractmethod
    def get_category(self, category_id: int) -> Optional[Category]:
        """Get category by ID."""
        pass

    @abstractmethod
    def get_category_by_path(self, owner_id: str, path: str) -> Optional[Category]:
        """Get category by path (e.g., 'Food & Dining > Coffee')."""
        pass

    @abstractmethod
    def list_categories(self, owner_id: str, parent_id: Optional[int] = None) -> list[Category]:
        """List categories, optionally filtered by parent."""
        pass

    @abstractmethod
    def get_category_tree(self, owner_id: str) -> list[dict[str, Any]]:
        """Get full category tree with hierarchy.

        Returns a list of dictionaries with category data and nested 'children' lists.
        """
        pass

    # Category rule operations
    @abstractmethod
    def create_category_rule(
        self,
        owner_id: str,
        keyword: str,
        category_id: int,
        match_field: str = "description",
        priority: int = 0,
        case_sensitive: bool = False,
        is_pattern: bool = False,
    ) -> int:
        """Create a category rule. Returns rule ID.

        Raises:
            ValidationError: If the owner already has the same keyword for the category
        """
        pass

    @abstractmethod
    def get_category_rule(self, rule_id: int) -> Optional[CategoryRule]:
        """Get category rule by ID."""
        pass

    @abstractmethod
    def list_category_rules(self, owner_id: str) -> list[CategoryRule]:
        """List an owner's rules, highest priority first, then in creation order."""
        pass

    @abstractmethod
    def delete_category_rule(self, rule_id: int) -> None:
        """Delete a category rule."""
        pass

    # Quota operations
    @abstractmethod
    def get_quota_usage(self, owner_id: str, period_key: str) -> Optional[tuple[int, int]]:
        """Return (used, limit) for an owner and period, or None if no row exists."""
        pass

    @abstractmethod
    def get_latest_quota_limit(self, owner_id: str) -> Optional[int]:
        """Return the limit of the owner's most recent period, if any."""
        pass

    @abstractmethod
    def try_increment_quota(self, owner_id: str, period_key: str, default_limit: int) -> Optional[int]:
        """Atomically add one use if the owner is under the limit.

        Returns the new usage count, or None when the limit was already reached.
        """
        pass

    @abstractmethod
    def set_quota_limit(self, owner_id: str, period_key: str, limit: int, default_limit: int) -> None:
        """Set the limit for an owner and period."""
        pass

    @abstractmethod
    def reset_quota_usage(self, owner_id: str, period_key: str) -> None:
        """Reset the usage count for an owner and period to zero."""
        pass

    @abstractmethod
    def list_quota_usage(self, owner_id: str) -> dict[str, tuple[int, int]]:
        """Return {period_key: (used, limit)} for every stored period of an owner."""
        pass

    # Exchange rate operations
    @abstractmethod
    def get_exchange_rate(
        self, rate_date: date, from_currency: str, to_currency: str
    ) -> Optional[ExchangeRateEntry]:
        """Get a cached exchange rate."""
        pass

    @abstractmethod
    def save_exchange_rate(self, entry: ExchangeRateEntry) -> bool:
        """Cache an exchange rate. Returns False if one was already stored."""
        pass

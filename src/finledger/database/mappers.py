"""Mapper functions to convert between domain models and SQLAlchemy models.

This layer isolates the conversion logic, making it easy to change when
the database schema changes.
"""

from finledger.domain import entities as domain
from finledger.database.models import (
    Category as ORMCategory,
    CategoryRule as ORMCategoryRule,
    Document as ORMDocument,
    ExchangeRate as ORMExchangeRate,
    Transaction as ORMTransaction,
)


def category_to_domain(orm_category: ORMCategory) -> domain.Category:
    """Convert SQLAlchemy Category model to domain Category entity."""
    return domain.Category(
        id=orm_category.id,
        owner_id=orm_category.owner_id,
        name=orm_category.name,
        parent_id=orm_category.parent_id,
        created_at=orm_category.created_at,
    )


def category_rule_to_domain(orm_rule: ORMCategoryRule) -> domain.CategoryRule:
    """Convert SQLAlchemy CategoryRule model to domain CategoryRule entity."""
    return domain.CategoryRule(
        id=orm_rule.id,
        owner_id=orm_rule.owner_id,
        keyword=orm_rule.keyword,
        match_field=domain.MatchField(orm_rule.match_field),
        priority=orm_rule.priority,
        case_sensitive=orm_rule.case_sensitive,
        is_pattern=orm_rule.is_pattern,
        category_id=orm_rule.category_id,
        created_at=orm_rule.created_at,
    )


def transaction_to_domain(orm_transaction: ORMTransaction) -> domain.StoredTransaction:
    """Convert SQLAlchemy Transaction model to domain StoredTransaction entity."""
    return domain.StoredTransaction(
        id=orm_transaction.id,
        owner_id=orm_transaction.owner_id,
        document_id=orm_transaction.document_id,
        date=orm_transaction.date,
        description=orm_transaction.description,
        merchant=orm_transaction.merchant,
        amount=orm_transaction.amount,
        transaction_type=orm_transaction.transaction_type,
        currency=orm_transaction.currency,
        reference_number=orm_transaction.reference_number,
        bank_name=orm_transaction.bank_name,
        balance=orm_transaction.balance,
        category_id=orm_transaction.category_id,
        needs_review=orm_transaction.needs_review,
        extraction_confidence=orm_transaction.extraction_confidence,
        amount_in_reference_currency=orm_transaction.amount_in_reference_currency,
        exchange_rate=orm_transaction.exchange_rate,
        exchange_rate_date=orm_transaction.exchange_rate_date,
        imported_at=orm_transaction.imported_at,
    )


def candidate_to_orm(
    candidate: domain.TransactionCandidate,
    owner_id: str,
    document_id: int | None = None,
    bank_name: str | None = None,
) -> ORMTransaction:
    """Build an unsaved SQLAlchemy Transaction from a candidate."""
    return ORMTransaction(
        owner_id=owner_id,
        document_id=document_id,
        date=candidate.date,
        description=candidate.description,
        merchant=candidate.merchant or None,
        amount=candidate.amount,
        transaction_type=candidate.transaction_type,
        currency=candidate.currency,
        reference_number=candidate.reference_number.strip() if candidate.has_reference else None,
        bank_name=bank_name,
        balance=candidate.balance,
        category_id=candidate.category_id,
        needs_review=candidate.needs_review,
        extraction_confidence=candidate.extraction_confidence,
        raw_source=candidate.raw_source,
        amount_in_reference_currency=candidate.amount_in_reference_currency,
        exchange_rate=candidate.exchange_rate,
        exchange_rate_date=candidate.exchange_rate_date,
    )


def document_to_domain(orm_document: ORMDocument) -> domain.DocumentRecord:
    """Convert SQLAlchemy Document model to domain DocumentRecord entity."""
    return domain.DocumentRecord(
        id=orm_document.id,
        owner_id=orm_document.owner_id,
        original_name=orm_document.original_name,
        media_type=orm_document.media_type,
        status=orm_document.status,
        document_type=orm_document.document_type,
        bank_name=orm_document.bank_name,
        pipeline_confidence=orm_document.pipeline_confidence,
        method=orm_document.method,
        needs_review=orm_document.needs_review,
        statement_date=orm_document.statement_date,
        inserted_count=orm_document.inserted_count,
        duplicate_count=orm_document.duplicate_count,
        error=orm_document.error,
        created_at=orm_document.created_at,
        processed_at=orm_document.processed_at,
    )


def exchange_rate_to_domain(orm_rate: ORMExchangeRate) -> domain.ExchangeRateEntry:
    """Convert SQLAlchemy ExchangeRate model to domain ExchangeRateEntry entity."""
    return domain.ExchangeRateEntry(
        date=orm_rate.date,
        from_currency=orm_rate.from_currency,
        to_currency=orm_rate.to_currency,
        rate=orm_rate.rate,
        source=orm_rate.source,
    )

"""SQLAlchemy models for finledger database."""

from datetime import datetime, UTC
from sqlalchemy import (
    Column,
    Integer,
    String,
    ForeignKey,
    DateTime,
    Date,
    Numeric,
    Boolean,
    Text,
    UniqueConstraint,
    Index,
    create_engine,
)
from sqlalchemy.orm import declarative_base, relationship, sessionmaker, Session

Base = declarative_base()


class Document(Base):
    """Uploaded document and its processing outcome."""

    __tablename__ = "documents"

    id = Column(Integer, primary_key=True)
    owner_id = Column(String, nullable=False, index=True)
    original_name = Column(String, nullable=False)
    media_type = Column(String, nullable=False)
    status = Column(String, default="pending", nullable=False)
    document_type = Column(String, nullable=True)
    bank_name = Column(String, nullable=True)
    pipeline_confidence = Column(Integer, nullable=True)
    method = Column(String, nullable=True)
    needs_review = Column(Boolean, default=False, nullable=False)
    statement_date = Column(Date, nullable=True)
    inserted_count = Column(Integer, default=0, nullable=False)
    duplicate_count = Column(Integer, default=0, nullable=False)
    error = Column(Text, nullable=True)
    created_at = Column(DateTime, default=lambda: datetime.now(UTC), nullable=False)
    processed_at = Column(DateTime, nullable=True)

    # Relationships
    transactions = relationship("Transaction", back_populates="document")


class Category(Base):
    """Category model with hierarchical structure."""

    __tablename__ = "categories"

    id = Column(Integer, primary_key=True)
    owner_id = Column(String, nullable=False, index=True)
    name = Column(String, nullable=False)
    parent_id = Column(Integer, ForeignKey("categories.id"), nullable=True)
    created_at = Column(DateTime, default=lambda: datetime.now(UTC), nullable=False)

    # Relationships
    parent = relationship("Category", remote_side=[id], backref="children")
    transactions = relationship("Transaction", back_populates="category")
    rules = relationship("CategoryRule", back_populates="category", cascade="all, delete-orphan")


class CategoryRule(Base):
    """Keyword or pattern rule assigning a category."""

    __tablename__ = "category_rules"

    id = Column(Integer, primary_key=True)
    owner_id = Column(String, nullable=False)
    keyword = Column(String, nullable=False)
    match_field = Column(String, default="description", nullable=False)
    priority = Column(Integer, default=0, nullable=False)
    case_sensitive = Column(Boolean, default=False, nullable=False)
    is_pattern = Column(Boolean, default=False, nullable=False)
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=False)
    created_at = Column(DateTime, default=lambda: datetime.now(UTC), nullable=False)

    __table_args__ = (
        UniqueConstraint("owner_id", "keyword", "category_id", name="uq_rule_owner_keyword_category"),
    )

    # Relationships
    category = relationship("Category", back_populates="rules")


class Transaction(Base):
    """Transaction model."""

    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True)
    owner_id = Column(String, nullable=False)
    document_id = Column(Integer, ForeignKey("documents.id"), nullable=True)
    date = Column(Date, nullable=False)
    description = Column(String, nullable=False, default="")
    merchant = Column(String, nullable=True)
    amount = Column(Numeric(14, 2), nullable=False)
    transaction_type = Column(String, nullable=False)
    currency = Column(String(3), nullable=False)
    reference_number = Column(String, nullable=True)
    bank_name = Column(String, nullable=True)
    balance = Column(Numeric(14, 2), nullable=True)
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=True)
    needs_review = Column(Boolean, default=False, nullable=False)
    extraction_confidence = Column(Integer, nullable=True)
    raw_source = Column(Text, nullable=True)
    amount_in_reference_currency = Column(Numeric(14, 2), nullable=True)
    exchange_rate = Column(Numeric(14, 6), nullable=True)
    exchange_rate_date = Column(Date, nullable=True)
    imported_at = Column(DateTime, default=lambda: datetime.now(UTC), nullable=False)

    # NULL reference numbers never collide, so only real references are unique
    __table_args__ = (
        UniqueConstraint("owner_id", "reference_number", name="uq_owner_reference_number"),
        Index("ix_transactions_owner_date", "owner_id", "date"),
    )

    # Relationships
    document = relationship("Document", back_populates="transactions")
    category = relationship("Category", back_populates="transactions")


class QuotaUsage(Base):
    """Enhanced extraction usage per owner and month."""

    __tablename__ = "quota_usage"

    id = Column(Integer, primary_key=True)
    owner_id = Column(String, nullable=False)
    period_key = Column(String(7), nullable=False)
    usage_count = Column(Integer, default=0, nullable=False)
    monthly_limit = Column(Integer, nullable=False)
    updated_at = Column(
        DateTime,
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
        nullable=False,
    )

    __table_args__ = (UniqueConstraint("owner_id", "period_key", name="uq_quota_owner_period"),)


class ExchangeRate(Base):
    """Cached exchange rate."""

    __tablename__ = "exchange_rates"

    id = Column(Integer, primary_key=True)
    date = Column(Date, nullable=False)
    from_currency = Column(String(3), nullable=False)
    to_currency = Column(String(3), nullable=False)
    rate = Column(Numeric(14, 6), nullable=False)
    source = Column(String, nullable=False)
    created_at = Column(DateTime, default=lambda: datetime.now(UTC), nullable=False)

    __table_args__ = (
        UniqueConstraint("date", "from_currency", "to_currency", name="uq_rate_date_pair"),
    )


def create_session_factory(database_url: str) -> sessionmaker[Session]:
    """Create a SQLAlchemy session factory."""
    engine = create_engine(database_url, echo=False)
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine)

"""SQLAlchemy models for pocketledger database."""

from datetime import datetime, UTC
from decimal import Decimal
from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    TypeDecorator,
    create_engine,
    text,
)
from sqlalchemy.orm import declarative_base, relationship, sessionmaker, Session

Base = declarative_base()


class ExactDecimal(TypeDecorator):
    """Decimal stored as plain text so no digit is lost on SQLite."""

    impl = String(40)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        value = Decimal(value)
        if value == 0:
            return "0"
        return format(value.normalize(), "f")

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return Decimal(value)


# Fingerprints must be unique among rows that passed duplicate detection.
# Flagged and unchecked rows may repeat a hash.
UNIQUE_HASH_CONDITION = "dedup_state = 'unique'"


class Category(Base):
    """Category model with hierarchical structure."""

    __tablename__ = "categories"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    parent_id = Column(Integer, ForeignKey("categories.id"), nullable=True)
    created_at = Column(DateTime, default=lambda: datetime.now(UTC), nullable=False)

    # Relationships
    parent = relationship("Category", remote_side=[id], backref="children")
    transactions = relationship("Transaction", back_populates="category")
    rules = relationship("CategorizationRule", back_populates="category")


class CategorizationRule(Base):
    """Categorization rule model."""

    __tablename__ = "categorization_rules"

    id = Column(Integer, primary_key=True)
    pattern_hash = Column(String(64), nullable=False, index=True)
    merchant = Column(String, nullable=True)
    description_pattern = Column(String, nullable=True)
    pattern_is_regex = Column(Boolean, default=False, nullable=False)
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=False)
    priority = Column(Integer, default=100, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=lambda: datetime.now(UTC), nullable=False)

    # Relationships
    category = relationship("Category", back_populates="rules")


class Transaction(Base):
    """Transaction model."""

    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True)
    hash = Column(String(64), nullable=False)
    pattern_hash = Column(String(64), nullable=False, index=True)
    dedup_state = Column(String(16), default="unique", nullable=False)
    transaction_date = Column(Date, nullable=False)
    amount = Column(ExactDecimal, nullable=False)
    currency = Column(String(3), nullable=False)
    description = Column(String, nullable=False)
    merchant = Column(String, nullable=False)
    payment_reference = Column(String, nullable=True)
    counterparty = Column(String, nullable=True)
    source_category = Column(String, nullable=True)
    transaction_type = Column(String, nullable=True)
    raw_data = Column(JSON, nullable=False, default=dict)
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=True)
    status = Column(String(16), default="completed", nullable=False)
    tags = Column(JSON, nullable=False, default=list)
    notes = Column(String, nullable=True)
    created_at = Column(DateTime, default=lambda: datetime.now(UTC), nullable=False)
    updated_at = Column(
        DateTime,
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
        nullable=False,
    )

    __table_args__ = (
        Index("ix_transactions_hash", "hash"),
        Index(
            "uq_transactions_unique_hash",
            "hash",
            unique=True,
            sqlite_where=text(UNIQUE_HASH_CONDITION),
            postgresql_where=text(UNIQUE_HASH_CONDITION),
        ),
    )

    # Relationships
    category = relationship("Category", back_populates="transactions")


def create_session_factory(database_url: str) -> sessionmaker[Session]:
    """Create a SQLAlchemy session factory."""
    engine = create_engine(database_url, echo=False)
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine)

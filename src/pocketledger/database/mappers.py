"""Mapper functions to convert between domain models and SQLAlchemy models.

This layer isolates the conversion logic, so schema changes stay out of
the domain entities.
"""

from pocketledger.domain import entities as domain
from pocketledger.database.models import (
    Category as ORMCategory,
    CategorizationRule as ORMCategorizationRule,
    Transaction as ORMTransaction,
)


def category_to_domain(orm_category: ORMCategory) -> domain.Category:
    """Convert SQLAlchemy Category model to domain Category entity."""
    return domain.Category(
        id=orm_category.id,
        name=orm_category.name,
        parent_id=orm_category.parent_id,
        created_at=orm_category.created_at,
    )


def rule_to_domain(orm_rule: ORMCategorizationRule) -> domain.CategorizationRule:
    """Convert SQLAlchemy CategorizationRule model to domain entity."""
    return domain.CategorizationRule(
        id=orm_rule.id,
        pattern_hash=orm_rule.pattern_hash,
        category_id=orm_rule.category_id,
        priority=orm_rule.priority,
        merchant=orm_rule.merchant,
        description_pattern=orm_rule.description_pattern,
        pattern_is_regex=orm_rule.pattern_is_regex,
        is_active=orm_rule.is_active,
        created_at=orm_rule.created_at,
    )


def transaction_to_domain(orm_transaction: ORMTransaction) -> domain.Transaction:
    """Convert SQLAlchemy Transaction model to domain Transaction entity."""
    return domain.Transaction(
        id=orm_transaction.id,
        amount=domain.Money(
            amount=orm_transaction.amount, currency=orm_transaction.currency
        ),
        description=orm_transaction.description,
        transaction_date=orm_transaction.transaction_date,
        merchant=orm_transaction.merchant,
        hash=orm_transaction.hash,
        pattern_hash=orm_transaction.pattern_hash,
        payment_reference=orm_transaction.payment_reference,
        counterparty=orm_transaction.counterparty,
        source_category=orm_transaction.source_category,
        transaction_type=orm_transaction.transaction_type,
        raw_data=dict(orm_transaction.raw_data or {}),
        category_id=orm_transaction.category_id,
        status=domain.TransactionStatus(orm_transaction.status),
        tags=tuple(orm_transaction.tags or ()),
        notes=orm_transaction.notes,
        dedup_state=domain.DedupState(orm_transaction.dedup_state),
        created_at=orm_transaction.created_at,
        updated_at=orm_transaction.updated_at,
    )


def transaction_to_orm(transaction: domain.Transaction) -> ORMTransaction:
    """Build a new SQLAlchemy Transaction row from a domain entity."""
    return ORMTransaction(
        hash=transaction.hash,
        pattern_hash=transaction.pattern_hash,
        dedup_state=transaction.dedup_state.value,
        transaction_date=transaction.transaction_date,
        amount=transaction.amount.amount,
        currency=transaction.amount.currency,
        description=transaction.description,
        merchant=transaction.merchant,
        payment_reference=transaction.payment_reference,
        counterparty=transaction.counterparty,
        source_category=transaction.source_category,
        transaction_type=transaction.transaction_type,
        raw_data=dict(transaction.raw_data),
        category_id=transaction.category_id,
        status=transaction.status.value,
        tags=list(transaction.tags),
        notes=transaction.notes,
    )

"""Abstract store interfaces.

The import core only depends on the capabilities below. Any store that
implements them (SQLAlchemy, an in-memory fake in tests, a remote service)
can be handed to the services at construction time.
"""

from abc import ABC, abstractmethod
from datetime import date
from typing import Iterable, Optional, Sequence

# Import entities directly to avoid circular import through domain/__init__.py
from pocketledger.domain.entities import (
    Category,
    CategorizationRule,
    DedupState,
    Transaction,
    TransactionStatus,
)


class TransactionStore(ABC):
    """Capability: persist transactions and look up their fingerprints."""

    @abstractmethod
    def find_existing_hashes(self, hashes: Iterable[str]) -> set[str]:
        """Return the subset of ``hashes`` already stored.

        Rows inserted as flagged duplicates count as existing too.
        """
        pass

    @abstractmethod
    def insert_batch(self, transactions: Sequence[Transaction]) -> list[int]:
        """Insert transactions in one logical batch. Returns ids in input order.

        Raises:
            PersistenceError: On failure; ``inserted_ids`` lists the rows
                that are durably stored despite the failure
        """
        pass

    @property
    def atomic_batches(self) -> bool:
        """Whether ``insert_batch`` commits all rows or none."""
        return False

    @abstractmethod
    def get_transaction(self, transaction_id: int) -> Optional[Transaction]:
        """Get transaction by ID."""
        pass

    @abstractmethod
    def list_transactions(
        self,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        category_id: Optional[int] = None,
        uncategorized: bool = False,
        include_hidden: bool = False,
        dedup_state: Optional[DedupState] = None,
    ) -> list[Transaction]:
        """List transactions with optional filters, newest first."""
        pass

    @abstractmethod
    def update_transaction(
        self,
        transaction_id: int,
        *,
        category_id: Optional[int] = None,
        clear_category: bool = False,
        status: Optional[TransactionStatus] = None,
        description: Optional[str] = None,
        pattern_hash: Optional[str] = None,
        notes: Optional[str] = None,
        tags: Optional[Sequence[str]] = None,
    ) -> None:
        """Update user-editable transaction fields.

        ``clear_category`` sets the category to NULL; fields left as None
        are unchanged.
        """
        pass


class RuleStore(ABC):
    """Capability: list and manage categorization rules."""

    @abstractmethod
    def list_active_rules(self) -> list[CategorizationRule]:
        """Active rules sorted by (priority, id)."""
        pass

    @abstractmethod
    def list_rules(self) -> list[CategorizationRule]:
        """All rules, active or not, sorted by (priority, id)."""
        pass

    @abstractmethod
    def get_rule(self, rule_id: int) -> Optional[CategorizationRule]:
        """Get rule by ID."""
        pass

    @abstractmethod
    def create_rule(
        self,
        pattern_hash: str,
        category_id: int,
        priority: int,
        merchant: Optional[str] = None,
        description_pattern: Optional[str] = None,
        pattern_is_regex: bool = False,
    ) -> int:
        """Create a rule. Returns rule ID."""
        pass

    @abstractmethod
    def set_rule_active(self, rule_id: int, is_active: bool) -> None:
        """Enable or disable a rule."""
        pass

    @abstractmethod
    def delete_rule(self, rule_id: int) -> None:
        """Delete a rule."""
        pass


class CategoryStore(ABC):
    """Capability: resolve and manage categories."""

    @abstractmethod
    def existing_category_ids(self, category_ids: Iterable[int]) -> set[int]:
        """Return the subset of ``category_ids`` that still exist."""
        pass

    @abstractmethod
    def create_category(self, name: str, parent_id: Optional[int] = None) -> int:
        """Create a category. Returns category ID."""
        pass

    @abstractmethod
    def get_category(self, category_id: int) -> Optional[Category]:
        """Get category by ID."""
        pass

    @abstractmethod
    def get_category_by_path(self, path: str) -> Optional[Category]:
        """Get category by path (e.g., 'Food & Dining > Groceries')."""
        pass

    @abstractmethod
    def list_categories(self, parent_id: Optional[int] = None) -> list[Category]:
        """List categories, optionally filtered by parent."""
        pass


class Database(TransactionStore, RuleStore, CategoryStore):
    """A single backend providing every store capability."""

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

"""Transaction domain service."""

import logging
from datetime import date
from typing import Optional

from pocketledger.database.base import CategoryStore, TransactionStore
from pocketledger.domain.entities import DedupState, Transaction, TransactionStatus
from pocketledger.domain.errors import (
    NotFoundError,
    ValidationError,
    category_path_not_found,
    transaction_not_found,
)
from pocketledger.domain.fingerprint import pattern_hash

logger = logging.getLogger(__name__)


class TransactionService:
    """Service for reviewing and editing imported transactions."""

    def __init__(self, transactions: TransactionStore, categories: CategoryStore):
        """Initialize transaction service.

        Args:
            transactions: Transaction store
            categories: Category store used to resolve category paths
        """
        self.transactions = transactions
        self.categories = categories

    def get_transaction(self, transaction_id: int) -> Optional[Transaction]:
        """Get transaction by ID.

        Args:
            transaction_id: Transaction ID

        Returns:
            Transaction entity or None if not found
        """
        return self.transactions.get_transaction(transaction_id)

    def list_transactions(
        self,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        category_id: Optional[int] = None,
        uncategorized: bool = False,
        include_hidden: bool = False,
        flagged_only: bool = False,
    ) -> list[Transaction]:
        """List transactions with filters.

        Args:
            start_date: Optional start date filter
            end_date: Optional end date filter
            category_id: Optional category ID filter
            uncategorized: Only transactions without a category
            include_hidden: Include hidden transactions
            flagged_only: Only rows imported as possible duplicates

        Returns:
            List of transaction entities, newest first
        """
        return self.transactions.list_transactions(
            start_date=start_date,
            end_date=end_date,
            category_id=category_id,
            uncategorized=uncategorized,
            include_hidden=include_hidden,
            dedup_state=DedupState.FLAGGED if flagged_only else None,
        )

    def update_category(self, transaction_id: int, category_path: Optional[str]) -> None:
        """Update transaction category.

        Args:
            transaction_id: Transaction ID
            category_path: Category path (e.g., "Food & Dining > Groceries") or
                None to clear the category

        Raises:
            NotFoundError: If transaction or category doesn't exist
        """
        self._require(transaction_id)

        if category_path is None:
            self.transactions.update_transaction(transaction_id, clear_category=True)
            return

        category = self.categories.get_category_by_path(category_path)
        if category is None:
            raise NotFoundError(category_path_not_found(category_path))
        self.transactions.update_transaction(transaction_id, category_id=category.id)

    def hide(self, transaction_id: int) -> None:
        """Hide a transaction from listings."""
        self._require(transaction_id)
        self.transactions.update_transaction(transaction_id, status=TransactionStatus.HIDDEN)

    def unhide(self, transaction_id: int) -> None:
        """Show a hidden transaction again."""
        self._require(transaction_id)
        self.transactions.update_transaction(transaction_id, status=TransactionStatus.COMPLETED)

    def update_description(self, transaction_id: int, description: str) -> None:
        """Rename a transaction.

        The rule-matching pattern follows the new text. The duplicate
        fingerprint keeps describing the row as the bank exported it.

        Raises:
            ValidationError: If the description is empty
            NotFoundError: If transaction doesn't exist
        """
        description = " ".join((description or "").split())
        if not description:
            raise ValidationError("Description cannot be empty")

        txn = self._require(transaction_id)
        self.transactions.update_transaction(
            transaction_id,
            description=description,
            pattern_hash=pattern_hash(txn.merchant, description),
        )

    def update_notes(self, transaction_id: int, notes: Optional[str]) -> None:
        """Update transaction notes.

        Args:
            transaction_id: Transaction ID
            notes: Notes text or None

        Raises:
            NotFoundError: If transaction doesn't exist
        """
        self._require(transaction_id)
        self.transactions.update_transaction(transaction_id, notes=notes or "")

    def add_tag(self, transaction_id: int, tag: str) -> None:
        """Attach a tag to a transaction; adding an existing tag is a no-op."""
        tag = (tag or "").strip()
        if not tag:
            raise ValidationError("Tag cannot be empty")

        txn = self._require(transaction_id)
        if tag in txn.tags:
            return
        self.transactions.update_transaction(transaction_id, tags=[*txn.tags, tag])
        logger.debug("Tagged transaction %d with '%s'", transaction_id, tag)

    def _require(self, transaction_id: int) -> Transaction:
        txn = self.transactions.get_transaction(transaction_id)
        if txn is None:
            raise NotFoundError(transaction_not_found(transaction_id))
        return txn

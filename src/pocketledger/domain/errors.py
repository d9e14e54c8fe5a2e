"""Shared domain error messages and error types."""

from typing import Iterable, Optional


class DomainError(ValueError):
    """Base class for domain-level errors.

    Subclasses provide semantic categories while preserving ValueError
    compatibility for existing error handling.
    """


class ValidationError(DomainError):
    """Invalid input or failed validation in domain logic."""


class CommandValidationError(ValidationError):
    """An import command violated one or more constraints.

    Carries every violated constraint, not just the first one.
    """

    def __init__(self, errors: Iterable[str]):
        self.errors = list(errors)
        super().__init__(f"Invalid command: {', '.join(self.errors)}")


class CSVStructureError(ValidationError):
    """The CSV content cannot be read as a table at all."""


class NotFoundError(DomainError):
    """Requested domain entity or path does not exist."""


class ConflictError(DomainError):
    """Domain conflict, such as uniqueness violations."""


class PersistenceError(DomainError):
    """The store failed to durably write or read data.

    ``inserted_ids`` lists the rows the store acknowledged before failing.
    It is empty for stores that roll back the whole batch.
    """

    def __init__(self, message: str, inserted_ids: Optional[Iterable[int]] = None):
        super().__init__(message)
        self.inserted_ids = list(inserted_ids or [])


def category_not_found(category_id: int) -> str:
    """Return message for missing category by ID."""
    return f"Category {category_id} not found"


def category_path_not_found(path: str) -> str:
    """Return message for missing category by path."""
    return f"Category '{path}' not found"


def transaction_not_found(transaction_id: int) -> str:
    """Return message for missing transaction."""
    return f"Transaction {transaction_id} not found"


def rule_not_found(rule_id: int) -> str:
    """Return message for missing categorization rule."""
    return f"Rule {rule_id} not found"


def row_error(row_number: Optional[int], reason: str) -> str:
    """Return message for a rejected CSV row."""
    if row_number is None:
        return reason
    return f"Row {row_number}: {reason}"

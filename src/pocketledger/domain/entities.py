"""Domain model entities for pocketledger.

These are pure data classes representing business concepts, independent of
database schema. Parsing produces ``ParsedTransaction`` values, the import
orchestrator turns the survivors into ``Transaction`` records, and the store
hands ``Transaction`` records back with their ids and timestamps filled in.
"""

from dataclasses import dataclass, field
from datetime import datetime, date
from decimal import Decimal
from enum import Enum
from typing import Optional

UNKNOWN_MERCHANT = "Unknown Merchant"
UNKNOWN_DESCRIPTION = "Unknown transaction"


class TransactionStatus(str, Enum):
    """Visibility state of a stored transaction."""

    COMPLETED = "completed"
    PENDING = "pending"
    HIDDEN = "hidden"


class DedupState(str, Enum):
    """How duplicate detection classified a transaction at import time."""

    UNIQUE = "unique"
    FLAGGED = "flagged"
    UNCHECKED = "unchecked"


@dataclass(frozen=True)
class Money:
    """Exact amount paired with an ISO 4217 currency code."""

    amount: Decimal
    currency: str

    @property
    def is_negative(self) -> bool:
        return self.amount < 0

    def __str__(self) -> str:
        return f"{self.amount} {self.currency}"


@dataclass(frozen=True)
class ParsedTransaction:
    """Canonical, bank-format-independent transaction produced by parsing."""

    amount: Money
    description: str
    transaction_date: date
    merchant: str = UNKNOWN_MERCHANT
    payment_reference: Optional[str] = None
    counterparty: Optional[str] = None
    category: Optional[str] = None
    transaction_type: Optional[str] = None
    raw_data: dict[str, str] = field(default_factory=dict, compare=False, hash=False)
    row_number: Optional[int] = field(default=None, compare=False)

    @property
    def kind(self) -> str:
        """Return 'expense' for outgoing money and 'income' otherwise."""
        return "expense" if self.amount.is_negative else "income"

    @property
    def is_expense(self) -> bool:
        return self.amount.is_negative


@dataclass(frozen=True)
class RejectedRow:
    """A CSV row that could not be turned into a transaction."""

    row_number: Optional[int]
    reason: str
    raw_row: dict[str, str] = field(default_factory=dict, compare=False, hash=False)


@dataclass(frozen=True)
class Category:
    """Category domain entity with hierarchical structure."""

    id: int
    name: str
    parent_id: Optional[int]
    created_at: datetime


@dataclass(frozen=True)
class CategorizationRule:
    """User-authored rule assigning a category to matching transactions."""

    id: int
    pattern_hash: str
    category_id: int
    priority: int
    merchant: Optional[str] = None
    description_pattern: Optional[str] = None
    pattern_is_regex: bool = False
    is_active: bool = True
    created_at: Optional[datetime] = None

    @property
    def sort_key(self) -> tuple[int, int]:
        """Total evaluation order: priority first, then id."""
        return (self.priority, self.id)

    @property
    def has_conditions(self) -> bool:
        return bool(self.merchant) or bool(self.description_pattern)


@dataclass(frozen=True)
class Transaction:
    """Persisted transaction domain entity."""

    amount: Money
    description: str
    transaction_date: date
    merchant: str
    hash: str
    pattern_hash: str
    payment_reference: Optional[str] = None
    counterparty: Optional[str] = None
    source_category: Optional[str] = None
    transaction_type: Optional[str] = None
    raw_data: dict[str, str] = field(default_factory=dict, compare=False, hash=False)
    category_id: Optional[int] = None
    status: TransactionStatus = TransactionStatus.COMPLETED
    tags: tuple[str, ...] = ()
    notes: Optional[str] = None
    dedup_state: DedupState = DedupState.UNIQUE
    id: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_hidden(self) -> bool:
        return self.status == TransactionStatus.HIDDEN

    @property
    def is_flagged_duplicate(self) -> bool:
        return self.dedup_state == DedupState.FLAGGED


@dataclass
class CSVParseResult:
    """Result of parsing one CSV document."""

    transactions: list[ParsedTransaction] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    rejected_rows: list[RejectedRow] = field(default_factory=list)
    layout: str = "generic"
    delimiter: str = ","

    @property
    def skipped_rows(self) -> int:
        return len(self.rejected_rows)


class RowDecision(str, Enum):
    """What an import does with one parsed row."""

    IMPORT = "import"
    FLAG = "flag"
    SKIP = "skip"


@dataclass(frozen=True)
class RowPreview:
    """One parsed row as a dry run would store it."""

    row_number: Optional[int]
    transaction_date: date
    amount: Money
    description: str
    merchant: str
    decision: RowDecision
    category_id: Optional[int] = None


@dataclass
class ImportResult:
    """Summary of one import call. Returned to the caller, never persisted."""

    imported: int = 0
    skipped_duplicates: int = 0
    skipped_invalid: int = 0
    categorized: int = 0
    flagged_duplicates: list[int] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    transaction_ids: list[int] = field(default_factory=list)
    previews: list[RowPreview] = field(default_factory=list)

    @property
    def skipped(self) -> int:
        return self.skipped_duplicates + self.skipped_invalid

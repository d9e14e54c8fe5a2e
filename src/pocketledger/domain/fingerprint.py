"""Transaction fingerprinting for duplicate detection.

Two independent digests are derived from a canonical transaction:

- ``transaction_hash`` identifies the booking itself (amount, day,
  description) and decides duplicates within and across imports.
- ``pattern_hash`` identifies what the booking looks like to the rule
  engine (merchant and description only) and groups transactions for
  rule re-matching.

Both work on normalized text so that two exports of the same statement
that differ only in case or spacing collide.
"""

import hashlib
import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Iterable, Optional, Sequence

from pocketledger.domain.entities import ParsedTransaction
from pocketledger.domain.normalizer import collapse_whitespace

logger = logging.getLogger(__name__)


def normalize_text(text: Optional[str]) -> str:
    """Lower-case and collapse whitespace."""
    return collapse_whitespace(text or "").lower()


def canonical_amount(amount: Decimal) -> str:
    """Exact decimal in plain notation without trailing zeros ("-45.67")."""
    if amount == 0:
        return "0"
    return format(amount.normalize(), "f")


def _digest(*parts: str) -> str:
    return hashlib.sha256("|".join(parts).encode("utf-8")).hexdigest()


def compute_hash(amount: Decimal, transaction_date: date, description: str) -> str:
    """Digest over the normalized (amount, day, description) projection."""
    return _digest(
        canonical_amount(amount),
        transaction_date.isoformat(),
        normalize_text(description),
    )


def transaction_hash(transaction: ParsedTransaction) -> str:
    """Return the duplicate-detection fingerprint of a parsed transaction."""
    return compute_hash(
        transaction.amount.amount, transaction.transaction_date, transaction.description
    )


def pattern_hash(merchant: Optional[str], description: Optional[str]) -> str:
    """Return the rule re-matching fingerprint for a merchant/description pair."""
    return _digest("pattern", normalize_text(merchant), normalize_text(description))


@dataclass(frozen=True)
class FingerprintedTransaction:
    """A parsed transaction together with its duplicate-detection hash."""

    hash: str
    transaction: ParsedTransaction


@dataclass
class DeduplicationResult:
    """Outcome of checking one import batch for duplicates."""

    unique: list[FingerprintedTransaction] = field(default_factory=list)
    flagged: list[FingerprintedTransaction] = field(default_factory=list)
    batch_duplicates: list[FingerprintedTransaction] = field(default_factory=list)
    existing_duplicates: list[FingerprintedTransaction] = field(default_factory=list)

    @property
    def skipped(self) -> int:
        return len(self.batch_duplicates) + len(self.existing_duplicates)


def fingerprint_all(transactions: Iterable[ParsedTransaction]) -> list[FingerprintedTransaction]:
    """Attach a hash to every transaction, keeping input order."""
    return [FingerprintedTransaction(transaction_hash(t), t) for t in transactions]


def collapse_batch(
    fingerprinted: Sequence[FingerprintedTransaction],
) -> tuple[list[FingerprintedTransaction], list[FingerprintedTransaction]]:
    """Split a batch into first occurrences and later repeats of the same hash."""
    seen: set[str] = set()
    first: list[FingerprintedTransaction] = []
    repeats: list[FingerprintedTransaction] = []
    for item in fingerprinted:
        if item.hash in seen:
            repeats.append(item)
        else:
            seen.add(item.hash)
            first.append(item)
    return first, repeats


class DuplicateDetector:
    """Detects duplicate transactions within a batch and against the store."""

    def __init__(self, store):
        """Initialize the duplicate detector.

        Args:
            store: TransactionStore used for the persisted-hash lookup
        """
        self.store = store

    def check_batch(
        self, transactions: Sequence[ParsedTransaction], skip_duplicates: bool = True
    ) -> DeduplicationResult:
        """Check a batch of transactions for duplicates.

        Within the batch only the first occurrence of a hash survives. The
        survivors are checked against persisted hashes with a single store
        query; matches are skipped, or kept and flagged for manual review
        when ``skip_duplicates`` is False.

        Args:
            transactions: Parsed transactions in input order
            skip_duplicates: Drop rows already in the store instead of flagging

        Returns:
            DeduplicationResult with unique, flagged and skipped transactions

        Raises:
            PersistenceError: If the store lookup fails
        """
        result = DeduplicationResult()
        survivors, result.batch_duplicates = collapse_batch(fingerprint_all(transactions))

        existing: set[str] = set()
        if survivors:
            existing = self.store.find_existing_hashes({item.hash for item in survivors})

        for item in survivors:
            if item.hash not in existing:
                result.unique.append(item)
            elif skip_duplicates:
                result.existing_duplicates.append(item)
            else:
                result.flagged.append(item)

        logger.debug(
            "Duplicate check: %d unique, %d flagged, %d repeated in batch, %d already stored",
            len(result.unique),
            len(result.flagged),
            len(result.batch_duplicates),
            len(result.existing_duplicates),
        )
        return result

"""Tests for transaction fingerprinting and duplicate detection."""

from datetime import date
from decimal import Decimal

from pocketledger.domain.entities import Money, ParsedTransaction
from pocketledger.domain.fingerprint import (
    DuplicateDetector,
    canonical_amount,
    compute_hash,
    pattern_hash,
    transaction_hash,
)


def make_txn(amount="-45.67", day=1, description="Amazon order", merchant="Amazon", row=None):
    return ParsedTransaction(
        amount=Money(Decimal(amount), "EUR"),
        description=description,
        transaction_date=date(2025, 8, day),
        merchant=merchant,
        row_number=row,
    )


class StubStore:
    """Records find_existing_hashes calls."""

    def __init__(self, existing=()):
        self.existing = set(existing)
        self.lookups = []

    def find_existing_hashes(self, hashes):
        hashes = set(hashes)
        self.lookups.append(hashes)
        return hashes & self.existing


def test_canonical_amount():
    """Trailing zeros and scale don't change the canonical text."""
    assert canonical_amount(Decimal("-45.670")) == "-45.67"
    assert canonical_amount(Decimal("100.00")) == "100"
    assert canonical_amount(Decimal("0.00")) == "0"
    assert canonical_amount(Decimal("-0")) == "0"


def test_hash_is_stable_across_formatting():
    """Case, spacing and amount scale don't affect the hash."""
    a = make_txn(amount="-45.670", description="Amazon  ORDER")
    b = make_txn(amount="-45.67", description=" amazon order ")

    assert transaction_hash(a) == transaction_hash(b)
    assert len(transaction_hash(a)) == 64


def test_hash_distinguishes_fields():
    """Amount, date and description all take part in the hash."""
    base = transaction_hash(make_txn())

    assert transaction_hash(make_txn(amount="-45.68")) != base
    assert transaction_hash(make_txn(day=2)) != base
    assert transaction_hash(make_txn(description="Amazon refund")) != base


def test_hash_ignores_merchant():
    """The merchant is not part of the duplicate fingerprint."""
    assert transaction_hash(make_txn(merchant="Amazon")) == transaction_hash(
        make_txn(merchant="AMZN Mktp")
    )


def test_compute_hash_matches_transaction_hash():
    txn = make_txn()
    assert compute_hash(Decimal("-45.67"), date(2025, 8, 1), "Amazon order") == transaction_hash(txn)


def test_pattern_hash_is_independent():
    """The pattern hash ignores amount and date and differs from the transaction hash."""
    assert pattern_hash("Amazon", "Amazon order") == pattern_hash(" AMAZON ", "amazon   order")
    assert pattern_hash("Amazon", "Amazon order") != transaction_hash(make_txn())


class TestDuplicateDetector:
    """Tests for batch and persisted duplicate detection."""

    def test_intra_batch_duplicates_keep_first(self):
        """Only the first of identical rows survives."""
        first = make_txn(row=2)
        second = make_txn(row=3)
        other = make_txn(description="Other", row=4)
        store = StubStore()

        result = DuplicateDetector(store).check_batch([first, second, other])

        assert [item.transaction.row_number for item in result.unique] == [2, 4]
        assert [item.transaction.row_number for item in result.batch_duplicates] == [3]
        assert result.skipped == 1

    def test_single_store_lookup(self):
        """Persisted hashes are looked up once per batch."""
        store = StubStore()
        batch = [make_txn(day=d) for d in range(1, 6)]

        DuplicateDetector(store).check_batch(batch)

        assert len(store.lookups) == 1
        assert len(store.lookups[0]) == 5

    def test_existing_duplicates_are_skipped(self):
        """Rows already stored are skipped by default."""
        known = make_txn(row=2)
        store = StubStore(existing={transaction_hash(known)})

        result = DuplicateDetector(store).check_batch([known, make_txn(day=2, row=3)])

        assert len(result.existing_duplicates) == 1
        assert len(result.unique) == 1
        assert result.flagged == []

    def test_existing_duplicates_can_be_flagged(self):
        """With skip_duplicates=False known rows are kept and flagged."""
        known = make_txn(row=2)
        store = StubStore(existing={transaction_hash(known)})

        result = DuplicateDetector(store).check_batch([known], skip_duplicates=False)

        assert [item.transaction.row_number for item in result.flagged] == [2]
        assert result.existing_duplicates == []
        assert result.skipped == 0

    def test_empty_batch_skips_lookup(self):
        store = StubStore()
        result = DuplicateDetector(store).check_batch([])
        assert store.lookups == []
        assert result.unique == []

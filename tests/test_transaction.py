"""Tests for transaction review and editing."""

from datetime import date

import pytest

from pocketledger.cli.main import cli
from pocketledger.domain.commands import ImportTransactionsCommand
from pocketledger.domain.entities import DedupState, TransactionStatus
from pocketledger.domain.errors import NotFoundError, ValidationError
from pocketledger.domain.fingerprint import pattern_hash

SAMPLE_CSV = (
    "date,amount,description,counterparty\n"
    "2025-08-01,-45.67,Order 302-118,Amazon\n"
    "2025-08-03,-23.10,LIDL SAGT DANKE,Lidl\n"
    "2025-08-07,2500.00,Salary August,Employer GmbH\n"
)


@pytest.fixture
def imported_ids(import_service):
    """Import three transactions and return their IDs in file order."""
    outcome = import_service.import_transactions(ImportTransactionsCommand(csv_content=SAMPLE_CSV))
    assert outcome.succeeded
    return outcome.result.transaction_ids


class TestTransactionService:
    """Tests for TransactionService."""

    def test_list_newest_first(self, transaction_service, imported_ids):
        transactions = transaction_service.list_transactions()
        assert [t.id for t in transactions] == list(reversed(imported_ids))

    def test_list_date_range(self, transaction_service, imported_ids):
        """Test filtering by an inclusive date range."""
        transactions = transaction_service.list_transactions(
            start_date=date(2025, 8, 2), end_date=date(2025, 8, 7)
        )
        assert [t.description for t in transactions] == ["Salary August", "LIDL SAGT DANKE"]

    def test_update_category(self, transaction_service, sample_categories, imported_ids):
        """Test assigning a category by path."""
        txn_id = imported_ids[1]
        transaction_service.update_category(txn_id, "Food & Dining > Groceries")

        txn = transaction_service.get_transaction(txn_id)
        assert txn.category_id == sample_categories["Food & Dining > Groceries"]

    def test_clear_category(self, transaction_service, sample_categories, imported_ids):
        """Test clearing a category."""
        txn_id = imported_ids[0]
        transaction_service.update_category(txn_id, "Shopping")
        transaction_service.update_category(txn_id, None)

        assert transaction_service.get_transaction(txn_id).category_id is None

    def test_uncategorized_filter(self, transaction_service, sample_categories, imported_ids):
        transaction_service.update_category(imported_ids[0], "Shopping")

        uncategorized = transaction_service.list_transactions(uncategorized=True)
        assert imported_ids[0] not in [t.id for t in uncategorized]
        assert len(uncategorized) == 2

        shopping = transaction_service.list_transactions(category_id=sample_categories["Shopping"])
        assert [t.id for t in shopping] == [imported_ids[0]]

    def test_update_category_unknown_path(self, transaction_service, imported_ids):
        with pytest.raises(NotFoundError, match="Category 'Nowhere' not found"):
            transaction_service.update_category(imported_ids[0], "Nowhere")

    def test_update_category_unknown_transaction(self, transaction_service, sample_categories):
        with pytest.raises(NotFoundError, match="Transaction 999 not found"):
            transaction_service.update_category(999, "Shopping")

    def test_hide_and_unhide(self, transaction_service, imported_ids):
        """Hidden transactions are left out of listings unless asked for."""
        txn_id = imported_ids[0]
        transaction_service.hide(txn_id)

        assert transaction_service.get_transaction(txn_id).status == TransactionStatus.HIDDEN
        assert txn_id not in [t.id for t in transaction_service.list_transactions()]
        assert txn_id in [t.id for t in transaction_service.list_transactions(include_hidden=True)]

        transaction_service.unhide(txn_id)
        assert transaction_service.get_transaction(txn_id).status == TransactionStatus.COMPLETED

    def test_hide_unknown_transaction(self, transaction_service):
        with pytest.raises(NotFoundError):
            transaction_service.hide(999)

    def test_update_description(self, transaction_service, imported_ids):
        """Renaming moves the pattern hash but keeps the duplicate fingerprint."""
        txn_id = imported_ids[0]
        before = transaction_service.get_transaction(txn_id)

        transaction_service.update_description(txn_id, "  Amazon   books ")

        after = transaction_service.get_transaction(txn_id)
        assert after.description == "Amazon books"
        assert after.hash == before.hash
        assert after.pattern_hash == pattern_hash("Amazon", "Amazon books")
        assert after.pattern_hash != before.pattern_hash

    def test_update_description_empty(self, transaction_service, imported_ids):
        with pytest.raises(ValidationError):
            transaction_service.update_description(imported_ids[0], "   ")

    def test_update_notes(self, transaction_service, imported_ids):
        """Test setting and clearing notes."""
        txn_id = imported_ids[2]
        transaction_service.update_notes(txn_id, "Includes bonus")
        assert transaction_service.get_transaction(txn_id).notes == "Includes bonus"

        transaction_service.update_notes(txn_id, None)
        assert transaction_service.get_transaction(txn_id).notes is None

    def test_add_tag(self, transaction_service, imported_ids):
        """Adding the same tag twice keeps a single copy."""
        txn_id = imported_ids[1]
        transaction_service.add_tag(txn_id, "weekly")
        transaction_service.add_tag(txn_id, "shared")
        transaction_service.add_tag(txn_id, "weekly")

        assert transaction_service.get_transaction(txn_id).tags == ("weekly", "shared")

    def test_add_empty_tag(self, transaction_service, imported_ids):
        with pytest.raises(ValidationError):
            transaction_service.add_tag(imported_ids[1], " ")

    def test_flagged_only(self, import_service, transaction_service, imported_ids):
        """Rows re-imported with skip_duplicates off show up as flagged."""
        outcome = import_service.import_transactions(
            ImportTransactionsCommand(csv_content=SAMPLE_CSV, skip_duplicates=False)
        )
        assert outcome.result.imported == 3

        flagged = transaction_service.list_transactions(flagged_only=True)
        assert len(flagged) == 3
        assert all(t.dedup_state == DedupState.FLAGGED for t in flagged)
        assert len(transaction_service.list_transactions()) == 6


def test_transactions_command(cli_runner, temp_db, imported_ids):
    """Test listing transactions."""
    result = cli_runner.invoke(cli, ["--db-path", temp_db.database_path, "transactions"])

    assert result.exit_code == 0
    assert "Found 3 transaction(s)" in result.output
    assert "Employer GmbH" in result.output
    assert "-45.67 EUR" in result.output


def test_transactions_command_date_filter(cli_runner, temp_db, imported_ids):
    result = cli_runner.invoke(
        cli,
        ["--db-path", temp_db.database_path, "transactions", "--start-date", "2025-08-05"],
    )

    assert result.exit_code == 0
    assert "Found 1 transaction(s)" in result.output
    assert "Salary August" in result.output


def test_transactions_command_invalid_date(cli_runner, temp_db):
    result = cli_runner.invoke(
        cli, ["--db-path", temp_db.database_path, "transactions", "--end-date", "someday"]
    )

    assert result.exit_code == 1
    assert "Invalid date" in result.output


def test_transactions_command_empty(cli_runner, temp_db):
    result = cli_runner.invoke(cli, ["--db-path", temp_db.database_path, "transactions"])

    assert result.exit_code == 0
    assert "No transactions found." in result.output


def test_categorize_command(cli_runner, temp_db, sample_categories, imported_ids):
    """Test categorizing several transactions at once."""
    ids = [str(i) for i in imported_ids[:2]]
    result = cli_runner.invoke(
        cli, ["--db-path", temp_db.database_path, "categorize", *ids, "Shopping"]
    )

    assert result.exit_code == 0
    assert f"Transaction {ids[0]} categorized as 'Shopping'" in result.output
    assert "2 succeeded, 0 failed" in result.output


def test_categorize_command_unknown_category(cli_runner, temp_db, imported_ids):
    result = cli_runner.invoke(
        cli, ["--db-path", temp_db.database_path, "categorize", str(imported_ids[0]), "Nowhere"]
    )

    assert result.exit_code == 1
    assert "Category 'Nowhere' not found" in result.output


def test_categorize_command_unknown_transaction(cli_runner, temp_db, sample_categories):
    result = cli_runner.invoke(
        cli, ["--db-path", temp_db.database_path, "categorize", "999", "Shopping"]
    )

    assert result.exit_code == 1
    assert "Transaction 999 not found" in result.output


def test_hide_command(cli_runner, temp_db, imported_ids):
    """Test hiding and showing a transaction."""
    txn_id = str(imported_ids[0])
    result = cli_runner.invoke(cli, ["--db-path", temp_db.database_path, "hide", txn_id])
    assert result.exit_code == 0
    assert f"Transaction {txn_id} hidden" in result.output

    listing = cli_runner.invoke(cli, ["--db-path", temp_db.database_path, "transactions"])
    assert "Found 2 transaction(s)" in listing.output

    result = cli_runner.invoke(
        cli, ["--db-path", temp_db.database_path, "hide", txn_id, "--undo"]
    )
    assert result.exit_code == 0
    assert f"Transaction {txn_id} shown" in result.output

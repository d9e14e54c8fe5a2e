"""Shared pytest fixtures for pocketledger tests."""

import tempfile
import os
from dataclasses import replace
from datetime import datetime, UTC
from pathlib import Path
from typing import Optional
import pytest

from pocketledger.database.base import Database
from pocketledger.database.factories import create_sqlite_database
from pocketledger.domain.category import CategoryService
from pocketledger.domain.csv_import import CSVImportService
from pocketledger.domain.entities import Category, CategorizationRule
from pocketledger.domain.errors import PersistenceError
from pocketledger.domain.rules import RuleService
from pocketledger.domain.transaction import TransactionService


class InMemoryStore(Database):
    """Dict-backed store. Inserts row by row and is not atomic.

    Set ``fail_after`` to make ``insert_batch`` fail once that many rows of
    the batch are stored.
    """

    def __init__(self):
        self.transactions = {}
        self.rules = {}
        self.categories = {}
        self.fail_after: Optional[int] = None
        self.calls = []
        self._next_id = 1

    def _new_id(self) -> int:
        new_id = self._next_id
        self._next_id += 1
        return new_id

    def connect(self):
        pass

    def disconnect(self):
        pass

    def initialize_schema(self):
        pass

    def find_existing_hashes(self, hashes):
        self.calls.append("find_existing_hashes")
        stored = {txn.hash for txn in self.transactions.values()}
        return set(hashes) & stored

    def insert_batch(self, transactions):
        self.calls.append("insert_batch")
        ids = []
        for txn in transactions:
            if self.fail_after is not None and len(ids) >= self.fail_after:
                raise PersistenceError("disk full", inserted_ids=ids)
            new_id = self._new_id()
            now = datetime.now(UTC)
            self.transactions[new_id] = replace(txn, id=new_id, created_at=now, updated_at=now)
            ids.append(new_id)
        return ids

    def get_transaction(self, transaction_id):
        return self.transactions.get(transaction_id)

    def list_transactions(
        self,
        start_date=None,
        end_date=None,
        category_id=None,
        uncategorized=False,
        include_hidden=False,
        dedup_state=None,
    ):
        result = []
        for txn in self.transactions.values():
            if start_date is not None and txn.transaction_date < start_date:
                continue
            if end_date is not None and txn.transaction_date > end_date:
                continue
            if uncategorized and txn.category_id is not None:
                continue
            if not uncategorized and category_id is not None and txn.category_id != category_id:
                continue
            if not include_hidden and txn.is_hidden:
                continue
            if dedup_state is not None and txn.dedup_state != dedup_state:
                continue
            result.append(txn)
        return sorted(result, key=lambda t: (t.transaction_date, t.id), reverse=True)

    def update_transaction(
        self,
        transaction_id,
        *,
        category_id=None,
        clear_category=False,
        status=None,
        description=None,
        pattern_hash=None,
        notes=None,
        tags=None,
    ):
        txn = self.transactions[transaction_id]
        changes = {}
        if clear_category:
            changes["category_id"] = None
        elif category_id is not None:
            changes["category_id"] = category_id
        if status is not None:
            changes["status"] = status
        if description is not None:
            changes["description"] = description
        if pattern_hash is not None:
            changes["pattern_hash"] = pattern_hash
        if notes is not None:
            changes["notes"] = notes or None
        if tags is not None:
            changes["tags"] = tuple(tags)
        self.transactions[transaction_id] = replace(txn, **changes)

    def list_active_rules(self):
        self.calls.append("list_active_rules")
        return [rule for rule in self.list_rules() if rule.is_active]

    def list_rules(self):
        return sorted(self.rules.values(), key=lambda r: r.sort_key)

    def get_rule(self, rule_id):
        return self.rules.get(rule_id)

    def create_rule(
        self,
        pattern_hash,
        category_id,
        priority,
        merchant=None,
        description_pattern=None,
        pattern_is_regex=False,
    ):
        rule_id = self._new_id()
        self.rules[rule_id] = CategorizationRule(
            id=rule_id,
            pattern_hash=pattern_hash,
            category_id=category_id,
            priority=priority,
            merchant=merchant,
            description_pattern=description_pattern,
            pattern_is_regex=pattern_is_regex,
        )
        return rule_id

    def set_rule_active(self, rule_id, is_active):
        self.rules[rule_id] = replace(self.rules[rule_id], is_active=is_active)

    def delete_rule(self, rule_id):
        del self.rules[rule_id]

    def existing_category_ids(self, category_ids):
        self.calls.append("existing_category_ids")
        return set(category_ids) & set(self.categories)

    def create_category(self, name, parent_id=None):
        category_id = self._new_id()
        self.categories[category_id] = Category(
            id=category_id, name=name, parent_id=parent_id, created_at=datetime.now(UTC)
        )
        return category_id

    def get_category(self, category_id):
        return self.categories.get(category_id)

    def get_category_by_path(self, path):
        parent_id = None
        found = None
        for part in (p.strip() for p in path.split(">")):
            found = next(
                (c for c in self.categories.values() if c.name == part and c.parent_id == parent_id),
                None,
            )
            if found is None:
                return None
            parent_id = found.id
        return found

    def list_categories(self, parent_id=None):
        return sorted(
            (c for c in self.categories.values() if c.parent_id == parent_id),
            key=lambda c: c.name,
        )


@pytest.fixture
def temp_db():
    """Create a temporary database for testing."""
    # Create a temporary file for the database
    fd, db_path = tempfile.mkstemp(suffix=".db")
    os.close(fd)

    # Create database
    db = create_sqlite_database(database_path=db_path)
    # Store the path for tests that need it
    db.database_path = db_path
    db.connect()
    db.initialize_schema()

    yield db

    # Cleanup
    db.disconnect()
    if os.path.exists(db_path):
        os.unlink(db_path)


@pytest.fixture
def memory_store():
    """Create an in-memory, non-atomic store."""
    return InMemoryStore()


@pytest.fixture
def category_service(temp_db):
    """Create a CategoryService with a temporary database."""
    return CategoryService(temp_db)


@pytest.fixture
def rule_service(temp_db):
    """Create a RuleService with a temporary database."""
    return RuleService(rules=temp_db, categories=temp_db, transactions=temp_db)


@pytest.fixture
def transaction_service(temp_db):
    """Create a TransactionService with a temporary database."""
    return TransactionService(transactions=temp_db, categories=temp_db)


@pytest.fixture
def import_service(temp_db):
    """Create a CSVImportService with a temporary database."""
    return CSVImportService(transactions=temp_db, rules=temp_db, categories=temp_db)


@pytest.fixture
def memory_import_service(memory_store):
    """Create a CSVImportService backed by the in-memory store."""
    return CSVImportService(
        transactions=memory_store, rules=memory_store, categories=memory_store
    )


SAMPLE_CATEGORIES = [
    ("Shopping", None),
    ("Retail", None),
    ("Subscriptions", None),
    ("Income", None),
    ("Food & Dining", None),
    ("Groceries", "Food & Dining"),
]


@pytest.fixture
def sample_categories(category_service):
    """Create sample categories and return their IDs by path."""
    category_ids = {}
    for name, parent in SAMPLE_CATEGORIES:
        category_id = category_service.create_category(name=name, parent_path=parent)
        path = f"{parent} > {name}" if parent else name
        category_ids[path] = category_id
    return category_ids


@pytest.fixture
def cli_runner():
    """Create a Click CLI test runner."""
    from click.testing import CliRunner

    return CliRunner()


@pytest.fixture
def fixtures_dir():
    """Return the path to the test fixtures directory."""
    return Path(__file__).parent / "fixtures"

"""Database layer for pocketledger application."""

from pocketledger.database.base import (
    CategoryStore,
    Database,
    RuleStore,
    TransactionStore,
)
from pocketledger.database.factories import create_sqlite_database

__all__ = [
    "CategoryStore",
    "Database",
    "RuleStore",
    "TransactionStore",
    "create_sqlite_database",
]

"""Domain layer for pocketledger application."""

_SERVICES = {
    "CSVImportService": "pocketledger.domain.csv_import",
    "CategoryService": "pocketledger.domain.category",
    "RuleService": "pocketledger.domain.rules",
    "TransactionService": "pocketledger.domain.transaction",
}

__all__ = list(_SERVICES)


# Import services lazily; the store interfaces import domain entities
def __getattr__(name):
    if name in _SERVICES:
        from importlib import import_module

        return getattr(import_module(_SERVICES[name]), name)
    raise AttributeError(f"module '{__name__}' has no attribute '{name}'")

"""Commands accepted by the import core."""

from dataclasses import dataclass, field

SUPPORTED_CURRENCIES = frozenset({"EUR", "USD", "JPY", "GBP"})
MAX_CSV_BYTES = 10 * 1024 * 1024


@dataclass(frozen=True)
class CommandValidation:
    """Outcome of validating a command: every violated constraint."""

    valid: bool
    errors: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class ImportTransactionsCommand:
    """Request to import transactions from CSV text."""

    csv_content: str
    currency: str = "EUR"
    auto_categorization_enabled: bool = True
    duplicate_detection_enabled: bool = True
    skip_duplicates: bool = True

    @property
    def normalized_currency(self) -> str:
        return (self.currency or "").strip().upper()

    @property
    def content_size(self) -> int:
        """Size of the CSV content in UTF-8 bytes."""
        return len((self.csv_content or "").encode("utf-8"))

    def is_valid(self) -> CommandValidation:
        """Validate command data, reporting every violation."""
        errors: list[str] = []

        if not self.csv_content or not self.csv_content.strip():
            errors.append("CSV content cannot be empty")

        currency = self.normalized_currency
        if len(currency) != 3:
            errors.append("Currency must be a 3-letter ISO code")
        if currency not in SUPPORTED_CURRENCIES:
            errors.append(f"Unsupported currency: {self.currency}")

        if self.content_size > MAX_CSV_BYTES:
            errors.append("CSV content exceeds maximum size of 10MB")

        return CommandValidation(valid=not errors, errors=errors)

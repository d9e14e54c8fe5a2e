"""CSV import domain service.

Runs one import through the stages validating, parsing, deduplicating,
categorizing and committing. Command validation problems raise; everything
after that ends in an ``ImportOutcome`` whose state is either completed or
failed. A dry run stops before committing and reports what each row would
become.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional, Sequence

from pocketledger.database.base import CategoryStore, RuleStore, TransactionStore
from pocketledger.domain.commands import ImportTransactionsCommand
from pocketledger.domain.csv_format import CSVParser, decode_content
from pocketledger.domain.entities import (
    DedupState,
    ImportResult,
    ParsedTransaction,
    RowDecision,
    RowPreview,
    Transaction,
)
from pocketledger.domain.errors import (
    CommandValidationError,
    CSVStructureError,
    DomainError,
    NotFoundError,
    PersistenceError,
    row_error,
)
from pocketledger.domain.fingerprint import (
    DuplicateDetector,
    FingerprintedTransaction,
    fingerprint_all,
    pattern_hash,
)
from pocketledger.domain.rules import RuleMatcher

logger = logging.getLogger(__name__)


class ImportState(str, Enum):
    """Stage of an import call."""

    VALIDATING = "validating"
    PARSING = "parsing"
    DEDUPLICATING = "deduplicating"
    CATEGORIZING = "categorizing"
    COMMITTING = "committing"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class ImportOutcome:
    """Terminal state of an import call plus its result."""

    state: ImportState
    result: ImportResult = field(default_factory=ImportResult)
    error: Optional[DomainError] = None
    failed_during: Optional[ImportState] = None
    dry_run: bool = False

    @property
    def succeeded(self) -> bool:
        return self.state == ImportState.COMPLETED


@dataclass(frozen=True)
class _Candidate:
    """A row that survived deduplication and is about to be stored."""

    hash: str
    transaction: ParsedTransaction
    dedup_state: DedupState
    category_id: Optional[int] = None


class CSVImportService:
    """Service for importing bank CSV exports."""

    def __init__(
        self,
        transactions: TransactionStore,
        rules: RuleStore,
        categories: CategoryStore,
        parser: Optional[CSVParser] = None,
    ):
        """Initialize CSV import service.

        Args:
            transactions: Store receiving the imported transactions
            rules: Store providing the active categorization rules
            categories: Store used to check that rule targets still exist
            parser: Parser to use instead of one built per command currency
        """
        self.transactions = transactions
        self.rules = rules
        self.categories = categories
        self.parser = parser

    def import_file(
        self,
        csv_file_path: str,
        currency: str = "EUR",
        auto_categorization_enabled: bool = True,
        duplicate_detection_enabled: bool = True,
        skip_duplicates: bool = True,
        dry_run: bool = False,
    ) -> ImportOutcome:
        """Import transactions from a CSV file on disk.

        With ``dry_run`` the file is analyzed but nothing is stored.

        Raises:
            NotFoundError: If the file doesn't exist
            CSVStructureError: If the file isn't readable text
            CommandValidationError: If the resulting command is invalid
        """
        csv_path = Path(csv_file_path)
        if not csv_path.is_file():
            raise NotFoundError(f"CSV file not found: {csv_file_path}")

        command = ImportTransactionsCommand(
            csv_content=decode_content(csv_path.read_bytes()),
            currency=currency,
            auto_categorization_enabled=auto_categorization_enabled,
            duplicate_detection_enabled=duplicate_detection_enabled,
            skip_duplicates=skip_duplicates,
        )
        return self.import_transactions(command, dry_run=dry_run)

    def import_transactions(
        self, command: ImportTransactionsCommand, dry_run: bool = False
    ) -> ImportOutcome:
        """Import transactions from CSV text.

        Args:
            command: Import request
            dry_run: Stop before committing and report what each row would
                become in ``result.previews``

        Returns:
            ImportOutcome in state COMPLETED or FAILED. On failure ``error``
            holds the cause and ``result.imported`` the rows that are
            durably stored anyway.

        Raises:
            CommandValidationError: If the command is invalid; nothing is
                parsed or written
        """
        logger.debug("Import state: %s", ImportState.VALIDATING.value)
        validation = command.is_valid()
        if not validation.valid:
            raise CommandValidationError(validation.errors)

        result = ImportResult()

        logger.debug("Import state: %s", ImportState.PARSING.value)
        parser = self.parser or CSVParser(currency=command.normalized_currency)
        try:
            parsed = parser.parse(command.csv_content)
        except CSVStructureError as e:
            return self._fail(result, e, ImportState.PARSING)

        result.warnings.extend(parsed.warnings)
        result.skipped_invalid = parsed.skipped_rows
        result.errors.extend(row_error(r.row_number, r.reason) for r in parsed.rejected_rows)

        logger.debug("Import state: %s", ImportState.DEDUPLICATING.value)
        try:
            candidates, skipped = self._deduplicate(command, parsed.transactions, result)
        except PersistenceError as e:
            return self._fail(result, e, ImportState.DEDUPLICATING)

        if command.auto_categorization_enabled and candidates:
            logger.debug("Import state: %s", ImportState.CATEGORIZING.value)
            candidates = self._categorize(candidates, result)

        if dry_run:
            result.categorized = sum(1 for c in candidates if c.category_id is not None)
            result.previews = self._preview(candidates, skipped)
            logger.info(
                "Dry run: %d of %d rows would be imported, nothing committed",
                len(candidates),
                len(result.previews),
            )
            return ImportOutcome(state=ImportState.COMPLETED, result=result, dry_run=True)

        logger.debug("Import state: %s", ImportState.COMMITTING.value)
        records = [self._build_transaction(c) for c in candidates]
        if records:
            try:
                ids = self.transactions.insert_batch(records)
            except PersistenceError as e:
                result.imported = len(e.inserted_ids)
                result.transaction_ids = list(e.inserted_ids)
                if self.transactions.atomic_batches:
                    result.warnings.append("Nothing was stored; the batch was rolled back")
                else:
                    result.warnings.append(
                        f"{result.imported} transactions were stored before the failure"
                    )
                return self._fail(result, e, ImportState.COMMITTING)
        else:
            ids = []

        result.imported = len(ids)
        result.transaction_ids = list(ids)
        result.categorized = sum(1 for c in candidates if c.category_id is not None)

        logger.info(
            "Import completed: %d imported, %d duplicates skipped, %d invalid rows, %d categorized",
            result.imported,
            result.skipped_duplicates,
            result.skipped_invalid,
            result.categorized,
        )
        return ImportOutcome(state=ImportState.COMPLETED, result=result)

    def _deduplicate(
        self,
        command: ImportTransactionsCommand,
        transactions: Sequence[ParsedTransaction],
        result: ImportResult,
    ) -> tuple[list[_Candidate], list[FingerprintedTransaction]]:
        """Split rows into candidates to store and duplicates to skip."""
        if not command.duplicate_detection_enabled:
            candidates = [
                _Candidate(item.hash, item.transaction, DedupState.UNCHECKED)
                for item in fingerprint_all(transactions)
            ]
            return candidates, []

        dedup = DuplicateDetector(self.transactions).check_batch(
            transactions, skip_duplicates=command.skip_duplicates
        )
        result.skipped_duplicates = dedup.skipped
        result.flagged_duplicates = [
            item.transaction.row_number
            for item in dedup.flagged
            if item.transaction.row_number is not None
        ]

        # Keep input order across unique and flagged rows
        order = {id(t): index for index, t in enumerate(transactions)}
        flagged_hashes = {item.hash for item in dedup.flagged}
        survivors: list[FingerprintedTransaction] = sorted(
            dedup.unique + dedup.flagged, key=lambda item: order[id(item.transaction)]
        )
        candidates = [
            _Candidate(
                item.hash,
                item.transaction,
                DedupState.FLAGGED if item.hash in flagged_hashes else DedupState.UNIQUE,
            )
            for item in survivors
        ]
        return candidates, dedup.batch_duplicates + dedup.existing_duplicates

    def _categorize(self, candidates: list[_Candidate], result: ImportResult) -> list[_Candidate]:
        try:
            matcher = RuleMatcher(self.rules.list_active_rules())
            valid_categories = self.categories.existing_category_ids(
                {rule.category_id for rule in matcher.rules}
            )
        except PersistenceError as e:
            message = f"Categorization rules unavailable, importing uncategorized: {e}"
            logger.warning(message)
            result.warnings.append(message)
            return candidates

        result.warnings.extend(matcher.warnings)

        dangling: set[int] = set()
        categorized: list[_Candidate] = []
        for candidate in candidates:
            rule = matcher.match(candidate.transaction)
            if rule is None:
                categorized.append(candidate)
                continue
            if rule.category_id not in valid_categories:
                if rule.id not in dangling:
                    dangling.add(rule.id)
                    message = (
                        f"Rule {rule.id} points to missing category {rule.category_id}; "
                        "matching rows left uncategorized"
                    )
                    logger.warning(message)
                    result.warnings.append(message)
                categorized.append(candidate)
                continue
            categorized.append(
                _Candidate(
                    candidate.hash,
                    candidate.transaction,
                    candidate.dedup_state,
                    category_id=rule.category_id,
                )
            )
        return categorized

    @staticmethod
    def _preview(
        candidates: Sequence[_Candidate], skipped: Sequence[FingerprintedTransaction]
    ) -> list[RowPreview]:
        rows = [
            (
                c.transaction,
                RowDecision.FLAG if c.dedup_state == DedupState.FLAGGED else RowDecision.IMPORT,
                c.category_id,
            )
            for c in candidates
        ]
        rows.extend((item.transaction, RowDecision.SKIP, None) for item in skipped)
        previews = [
            RowPreview(
                row_number=parsed.row_number,
                transaction_date=parsed.transaction_date,
                amount=parsed.amount,
                description=parsed.description,
                merchant=parsed.merchant,
                decision=decision,
                category_id=category_id,
            )
            for parsed, decision, category_id in rows
        ]
        return sorted(previews, key=lambda p: p.row_number or 0)

    @staticmethod
    def _build_transaction(candidate: _Candidate) -> Transaction:
        parsed = candidate.transaction
        return Transaction(
            amount=parsed.amount,
            description=parsed.description,
            transaction_date=parsed.transaction_date,
            merchant=parsed.merchant,
            hash=candidate.hash,
            pattern_hash=pattern_hash(parsed.merchant, parsed.description),
            payment_reference=parsed.payment_reference,
            counterparty=parsed.counterparty,
            source_category=parsed.category,
            transaction_type=parsed.transaction_type,
            raw_data=dict(parsed.raw_data),
            category_id=candidate.category_id,
            dedup_state=candidate.dedup_state,
        )

    @staticmethod
    def _fail(result: ImportResult, error: DomainError, stage: ImportState) -> ImportOutcome:
        result.errors.append(str(error))
        logger.warning("Import failed during %s: %s", stage.value, error)
        return ImportOutcome(
            state=ImportState.FAILED, result=result, error=error, failed_during=stage
        )

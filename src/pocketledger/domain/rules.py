"""Rule matching engine and rule management."""

import logging
import re
from dataclasses import dataclass
from typing import Iterable, Optional, Union

from pocketledger.database.base import CategoryStore, RuleStore, TransactionStore
from pocketledger.domain.entities import (
    CategorizationRule,
    ParsedTransaction,
    Transaction,
    UNKNOWN_MERCHANT,
)
from pocketledger.domain.errors import (
    NotFoundError,
    ValidationError,
    category_not_found,
    rule_not_found,
    transaction_not_found,
)
from pocketledger.domain.fingerprint import normalize_text, pattern_hash

logger = logging.getLogger(__name__)

DEFAULT_PRIORITY = 100

Matchable = Union[ParsedTransaction, Transaction]


@dataclass(frozen=True)
class _CompiledRule:
    rule: CategorizationRule
    merchant: Optional[str]
    substring: Optional[str]
    regex: Optional[re.Pattern[str]]

    def matches(self, merchant: str, description: str) -> bool:
        if self.merchant is not None and self.merchant != merchant:
            return False
        if self.substring is not None and self.substring not in description:
            return False
        if self.regex is not None and not self.regex.search(description):
            return False
        return True


class RuleMatcher:
    """Evaluates rules in (priority, id) order; the first match wins.

    Inactive rules, rules without any condition and rules whose regex does
    not compile never match. The latter are reported in ``warnings``.
    """

    def __init__(self, rules: Iterable[CategorizationRule]):
        self.warnings: list[str] = []
        self._compiled: list[_CompiledRule] = []

        for rule in sorted(rules, key=lambda r: r.sort_key):
            if not rule.is_active or not rule.has_conditions:
                continue
            compiled = self._compile(rule)
            if compiled is not None:
                self._compiled.append(compiled)

    def _compile(self, rule: CategorizationRule) -> Optional[_CompiledRule]:
        merchant = normalize_text(rule.merchant) if rule.merchant else None
        substring = None
        regex = None
        if rule.description_pattern:
            if rule.pattern_is_regex:
                try:
                    regex = re.compile(rule.description_pattern, re.IGNORECASE)
                except re.error as e:
                    message = f"Rule {rule.id} ignored: invalid pattern '{rule.description_pattern}' ({e})"
                    logger.warning(message)
                    self.warnings.append(message)
                    return None
            else:
                substring = normalize_text(rule.description_pattern)
        return _CompiledRule(rule=rule, merchant=merchant, substring=substring, regex=regex)

    @property
    def rules(self) -> list[CategorizationRule]:
        """Rules that can match, in evaluation order."""
        return [c.rule for c in self._compiled]

    def match(self, transaction: Matchable) -> Optional[CategorizationRule]:
        """Return the first rule matching the transaction, or None."""
        merchant = normalize_text(transaction.merchant)
        description = normalize_text(transaction.description)
        for compiled in self._compiled:
            if compiled.matches(merchant, description):
                return compiled.rule
        return None

    def categorize(self, transaction: Matchable) -> Optional[int]:
        """Return the category of the first matching rule, or None."""
        rule = self.match(transaction)
        return rule.category_id if rule is not None else None


def categorize(transaction: Matchable, rules: Iterable[CategorizationRule]) -> Optional[int]:
    """Categorize one transaction against a rule set."""
    return RuleMatcher(rules).categorize(transaction)


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None or not value.strip():
        return None
    return value.strip()


def rule_pattern_hash(merchant: Optional[str], description_pattern: Optional[str]) -> str:
    """Fingerprint of a rule's matching pattern."""
    return pattern_hash(merchant, description_pattern)


class RuleService:
    """Service for managing categorization rules."""

    def __init__(
        self,
        rules: RuleStore,
        categories: CategoryStore,
        transactions: Optional[TransactionStore] = None,
    ):
        """Initialize rule service.

        Args:
            rules: Rule store
            categories: Category store used to check rule targets
            transactions: Transaction store, needed for learning and re-matching
        """
        self.rules = rules
        self.categories = categories
        self.transactions = transactions

    def create_rule(
        self,
        category_id: int,
        merchant: Optional[str] = None,
        description_pattern: Optional[str] = None,
        priority: int = DEFAULT_PRIORITY,
        pattern_is_regex: bool = False,
    ) -> int:
        """Create a categorization rule.

        Args:
            category_id: Category assigned by the rule
            merchant: Exact merchant name (case-insensitive)
            description_pattern: Substring, or regex when pattern_is_regex
            priority: Lower numbers are evaluated first
            pattern_is_regex: Treat description_pattern as a regular expression

        Returns:
            Rule ID

        Raises:
            ValidationError: If the rule has no condition or an invalid regex
            NotFoundError: If the category doesn't exist
        """
        merchant = _clean(merchant)
        description_pattern = _clean(description_pattern)

        if merchant is None and description_pattern is None:
            raise ValidationError("A rule needs a merchant or a description pattern")

        if pattern_is_regex and description_pattern is not None:
            try:
                re.compile(description_pattern)
            except re.error as e:
                raise ValidationError(f"Invalid regular expression '{description_pattern}': {e}")

        if self.categories.get_category(category_id) is None:
            raise NotFoundError(category_not_found(category_id))

        rule_id = self.rules.create_rule(
            pattern_hash=rule_pattern_hash(merchant, description_pattern),
            category_id=category_id,
            priority=priority,
            merchant=merchant,
            description_pattern=description_pattern,
            pattern_is_regex=pattern_is_regex,
        )
        logger.info("Created rule %d for category %d", rule_id, category_id)
        return rule_id

    def create_rule_from_transaction(
        self, transaction_id: int, category_id: int, priority: int = DEFAULT_PRIORITY
    ) -> int:
        """Learn a rule from a stored transaction.

        Uses the merchant when the bank provided one, otherwise the
        description as a substring pattern.

        Raises:
            NotFoundError: If the transaction or category doesn't exist
        """
        txn = self._require_transactions().get_transaction(transaction_id)
        if txn is None:
            raise NotFoundError(transaction_not_found(transaction_id))

        if txn.merchant and txn.merchant != UNKNOWN_MERCHANT:
            return self.create_rule(category_id, merchant=txn.merchant, priority=priority)
        return self.create_rule(category_id, description_pattern=txn.description, priority=priority)

    def get_rule(self, rule_id: int) -> Optional[CategorizationRule]:
        return self.rules.get_rule(rule_id)

    def list_rules(self) -> list[CategorizationRule]:
        return self.rules.list_rules()

    def set_rule_active(self, rule_id: int, is_active: bool) -> None:
        if self.rules.get_rule(rule_id) is None:
            raise NotFoundError(rule_not_found(rule_id))
        self.rules.set_rule_active(rule_id, is_active)

    def delete_rule(self, rule_id: int) -> None:
        if self.rules.get_rule(rule_id) is None:
            raise NotFoundError(rule_not_found(rule_id))
        self.rules.delete_rule(rule_id)

    def apply_rules(self, only_uncategorized: bool = True) -> int:
        """Re-run the active rules over stored transactions.

        Transactions sharing a pattern hash look the same to every rule, so
        each distinct pattern is matched once.

        Args:
            only_uncategorized: Leave already categorized transactions alone

        Returns:
            Number of transactions whose category changed
        """
        store = self._require_transactions()
        matcher = RuleMatcher(self.rules.list_active_rules())
        valid_categories = self.categories.existing_category_ids(
            {rule.category_id for rule in matcher.rules}
        )

        groups: dict[str, list[Transaction]] = {}
        for txn in store.list_transactions(uncategorized=only_uncategorized, include_hidden=True):
            groups.setdefault(txn.pattern_hash, []).append(txn)

        updated = 0
        for members in groups.values():
            category_id = matcher.categorize(members[0])
            if category_id is None or category_id not in valid_categories:
                continue
            for txn in members:
                if txn.id is None or txn.category_id == category_id:
                    continue
                store.update_transaction(txn.id, category_id=category_id)
                updated += 1

        logger.info(
            "Applied %d rules to %d pattern groups; %d updated",
            len(matcher.rules),
            len(groups),
            updated,
        )
        return updated

    def _require_transactions(self) -> TransactionStore:
        if self.transactions is None:
            raise ValidationError("Rule service was created without a transaction store")
        return self.transactions

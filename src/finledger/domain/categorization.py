"""Rule-based category assignment."""

from dataclasses import replace
import logging
import re
from typing import Optional, Sequence

from finledger.database.base import Database
from finledger.domain.entities import CategoryRule, MatchField, TransactionCandidate
from finledger.domain.errors import (
    NotFoundError,
    ValidationError,
    category_not_found,
    rule_not_found,
)

logger = logging.getLogger(__name__)

WILDCARD = "%"


def search_text(candidate: TransactionCandidate, match_field: MatchField) -> str:
    """Build the text a rule is matched against."""
    description = candidate.description or ""
    merchant = candidate.merchant or ""
    if match_field == MatchField.MERCHANT:
        return merchant
    if match_field == MatchField.BOTH:
        return f"{description} {merchant}"
    return description


def rule_matches(rule: CategoryRule, text: str) -> bool:
    """Whether a rule matches the given text.

    Pattern rules are regular expressions searched anywhere in the text.
    Keywords containing ``%`` treat it as "any characters". Anything else is
    a plain substring test.
    """
    flags = 0 if rule.case_sensitive else re.IGNORECASE
    if rule.is_pattern:
        try:
            return re.search(rule.keyword, text, flags) is not None
        except re.error as e:
            logger.warning("Invalid pattern in rule %s: %s", rule.id, e)
            return False

    if WILDCARD in rule.keyword:
        pattern = ".*".join(re.escape(part) for part in rule.keyword.split(WILDCARD))
        return re.search(pattern, text, flags | re.DOTALL) is not None

    if rule.case_sensitive:
        return rule.keyword in text
    return rule.keyword.casefold() in text.casefold()


def order_rules(rules: Sequence[CategoryRule]) -> list[CategoryRule]:
    """Highest priority first; equal priorities keep their given order."""
    return sorted(rules, key=lambda rule: -rule.priority)


class AutoCategorizer:
    """Assigns categories to candidates using an owner's rules."""

    def categorize(
        self, candidate: TransactionCandidate, rules: Sequence[CategoryRule]
    ) -> Optional[int]:
        """Return the category of the first matching rule.

        Candidates that already carry a category keep it.

        Args:
            candidate: Transaction candidate
            rules: Owner's rules, in any order

        Returns:
            Category ID, or None when no rule matches
        """
        if candidate.category_id is not None:
            return candidate.category_id
        for rule in order_rules(rules):
            if rule_matches(rule, search_text(candidate, rule.match_field)):
                logger.debug("Rule %s matched '%s'", rule.id, candidate.description)
                return rule.category_id
        return None

    def categorize_all(
        self, candidates: Sequence[TransactionCandidate], rules: Sequence[CategoryRule]
    ) -> list[TransactionCandidate]:
        """Return candidates with categories assigned where a rule matches."""
        ordered = order_rules(rules)
        result = []
        for candidate in candidates:
            category_id = self.categorize(candidate, ordered)
            if category_id is not None and category_id != candidate.category_id:
                candidate = replace(candidate, category_id=category_id)
            result.append(candidate)
        return result


class CategoryRuleService:
    """Service for managing category rules."""

    def __init__(self, db: Database):
        """Initialize category rule service.

        Args:
            db: Database instance
        """
        self.db = db

    def add_rule(
        self,
        owner_id: str,
        keyword: str,
        category_id: int,
        match_field: str = MatchField.DESCRIPTION.value,
        priority: int = 0,
        case_sensitive: bool = False,
        is_pattern: bool = False,
    ) -> int:
        """Create a category rule.

        Args:
            owner_id: Rule owner
            keyword: Substring, ``%`` wildcard or regular expression
            category_id: Category assigned on match
            match_field: 'description', 'merchant' or 'both'
            priority: Higher priorities are checked first
            case_sensitive: Match case exactly
            is_pattern: Treat keyword as a regular expression

        Returns:
            Rule ID

        Raises:
            ValidationError: If the keyword, match field or pattern is invalid
            NotFoundError: If the category doesn't exist for the owner
        """
        keyword = (keyword or "").strip()
        if not keyword:
            raise ValidationError("Rule keyword cannot be empty")
        try:
            field = MatchField(match_field)
        except ValueError as e:
            raise ValidationError(
                f"Invalid match field '{match_field}'. Use one of: "
                + ", ".join(f.value for f in MatchField)
            ) from e
        if is_pattern:
            try:
                re.compile(keyword)
            except re.error as e:
                raise ValidationError(f"Invalid pattern '{keyword}': {e}") from e

        category = self.db.get_category(category_id)
        if category is None or category.owner_id != owner_id:
            raise NotFoundError(category_not_found(category_id))

        return self.db.create_category_rule(
            owner_id=owner_id,
            keyword=keyword,
            category_id=category_id,
            match_field=field.value,
            priority=priority,
            case_sensitive=case_sensitive,
            is_pattern=is_pattern,
        )

    def list_rules(self, owner_id: str) -> list[CategoryRule]:
        """List an owner's rules, highest priority first."""
        return self.db.list_category_rules(owner_id)

    def delete_rule(self, owner_id: str, rule_id: int) -> None:
        """Delete one of the owner's rules.

        Raises:
            NotFoundError: If the rule doesn't exist for the owner
        """
        rule = self.db.get_category_rule(rule_id)
        if rule is None or rule.owner_id != owner_id:
            raise NotFoundError(rule_not_found(rule_id))
        self.db.delete_category_rule(rule_id)

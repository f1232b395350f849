"""Extraction engine: parsed content to transaction candidates.

Strategies are selected from static profiles, once per document:

- tabular rows are matched against known column signatures, then generic
  column synonyms
- free text uses the line profile of the detected bank, then the generic
  line extractor
"""

from datetime import date
from decimal import Decimal
import json
import logging
import re
from typing import Any, Iterable, Optional, Sequence

from finledger.domain.entities import (
    DocumentClassification,
    ExtractionMethod,
    ExtractionResult,
    ParsedContent,
    TransactionCandidate,
    UNKNOWN,
)
from finledger.domain.errors import RowParseSkipped
from finledger.domain.profiles import (
    FOREIGN_CURRENCY_MARKERS,
    GENERIC_AMOUNT_TOKEN,
    GENERIC_DATE_TOKEN,
    GENERIC_LINE_PROFILE,
    GENERIC_TABULAR_PROFILE,
    LINE_PROFILES,
    NON_TRANSACTION_MARKERS,
    TABULAR_PROFILES,
    ExtractionProfile,
    LinePattern,
    SignPolicy,
)
from finledger.utils.amount_parser import NumericLocale, parse_amount
from finledger.utils.date_parser import parse_date
from finledger.utils.merchant import extract_merchant

logger = logging.getLogger(__name__)

MIN_DESCRIPTION_LENGTH = 3


def compute_pipeline_confidence(candidates: Sequence[TransactionCandidate]) -> int:
    """Score the extraction quality of a whole document.

    Base 50, plus 2 points per candidate (up to 20), plus up to 10 each for
    the fraction of candidates with a date, with a non-zero amount and with a
    description longer than 3 characters. An empty result scores 0.
    """
    total = len(candidates)
    if total == 0:
        return 0

    with_date = sum(1 for c in candidates if c.date is not None)
    with_amount = sum(1 for c in candidates if c.amount is not None and c.amount != 0)
    with_description = sum(
        1 for c in candidates if c.description and len(c.description.strip()) > MIN_DESCRIPTION_LENGTH
    )

    score = (
        50
        + min(total * 2, 20)
        + 10 * with_date / total
        + 10 * with_amount / total
        + 10 * with_description / total
    )
    return max(0, min(int(score + 0.5), 100))


def _text(value: Any) -> str:
    """Render a cell as text, dropping the ``.0`` spreadsheets add to integers."""
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def _is_empty(value: Any) -> bool:
    return _text(value) == ""


def _header_matches(header: str, fragment: str) -> bool:
    return fragment.casefold() in header.casefold()


def find_column(
    headers: Iterable[str], synonyms: Sequence[str], taken: Optional[set[str]] = None
) -> Optional[str]:
    """Find the header for a field.

    Exact (case-insensitive) matches win over substring matches; within
    each pass the synonym order decides.
    """
    taken = taken or set()
    available = [h for h in headers if h not in taken]
    for synonym in synonyms:
        for header in available:
            if header.strip().casefold() == synonym.casefold():
                return header
    for synonym in synonyms:
        for header in available:
            if _header_matches(header, synonym):
                return header
    return None


def matches_signature(headers: Sequence[str], profile: ExtractionProfile) -> bool:
    """Whether the headers carry every column group the profile requires."""
    if not profile.required_columns:
        return False
    return all(
        any(_header_matches(header, fragment) for header in headers for fragment in group)
        for group in profile.required_columns
    )


def apply_sign_policy(amount: Decimal, description: str, profile: ExtractionProfile) -> Decimal:
    """Map a printed amount onto the negative=debit convention.

    Under ``charges`` an unsigned amount is a purchase (debit), while a
    printed negative or a reversal-marked description is a refund (credit).
    """
    if profile.sign_policy is SignPolicy.AS_PRINTED:
        return amount
    lowered = description.lower()
    if amount < 0 or any(marker in lowered for marker in profile.reversal_markers):
        return abs(amount)
    return -abs(amount)


def currency_for_column(header: Optional[str], default_currency: str) -> str:
    if header:
        upper = header.upper()
        for currency, markers in FOREIGN_CURRENCY_MARKERS.items():
            if any(marker in upper for marker in markers):
                return currency
    return default_currency


class ExtractionEngine:
    """Selects an extraction strategy and produces transaction candidates."""

    def __init__(
        self,
        default_currency: str = "ARS",
        tabular_profiles: tuple[ExtractionProfile, ...] = TABULAR_PROFILES,
        generic_tabular_profile: ExtractionProfile = GENERIC_TABULAR_PROFILE,
        line_profiles: Optional[dict[str, ExtractionProfile]] = None,
        generic_line_profile: ExtractionProfile = GENERIC_LINE_PROFILE,
    ):
        """Initialize extraction engine.

        Args:
            default_currency: Currency assumed when a column does not state one
            tabular_profiles: Column signatures tried in order before the generic one
            generic_tabular_profile: Synonym-based fallback for tabular rows
            line_profiles: Line profiles keyed by bank identity
            generic_line_profile: Fallback for free text
        """
        self.default_currency = default_currency
        self.tabular_profiles = tabular_profiles
        self.generic_tabular_profile = generic_tabular_profile
        self.line_profiles = line_profiles if line_profiles is not None else LINE_PROFILES
        self.generic_line_profile = generic_line_profile

    def extract(
        self,
        parsed: ParsedContent,
        classification: DocumentClassification,
        file_name: str,
    ) -> ExtractionResult:
        """Extract transaction candidates from parsed content.

        Args:
            parsed: Parsed document content
            classification: Document classification
            file_name: Original file name, for diagnostics

        Returns:
            ExtractionResult, possibly with no candidates
        """
        if parsed.rows:
            profile = self.select_tabular_profile(list(parsed.rows[0].keys()))
            candidates, skipped = self._extract_rows(parsed.rows, profile)
            statement_date = None
        else:
            profile, candidates, skipped = self._extract_text(parsed.text, classification.bank_id)
            statement_date = self._statement_date(parsed.text, profile)

        bank_name = profile.bank_name
        if bank_name is None and classification.bank_id != UNKNOWN:
            bank_name = classification.bank_name

        if skipped:
            logger.info("Skipped %d unparseable rows in %s", skipped, file_name)
        logger.info(
            "Extracted %d candidates from %s using profile %s",
            len(candidates),
            file_name,
            profile.profile_id,
        )

        return ExtractionResult(
            candidates=tuple(candidates),
            bank_name_guess=bank_name,
            statement_date=statement_date,
            pipeline_confidence=compute_pipeline_confidence(candidates),
            method=ExtractionMethod.DETERMINISTIC,
            skipped_rows=skipped,
            profile_id=profile.profile_id,
        )

    def select_tabular_profile(self, headers: Sequence[str]) -> ExtractionProfile:
        """Return the first profile whose column signature the headers carry."""
        for profile in self.tabular_profiles:
            if matches_signature(headers, profile):
                return profile
        return self.generic_tabular_profile

    # Tabular extraction

    def _resolve_columns(
        self, headers: Sequence[str], profile: ExtractionProfile
    ) -> dict[str, Optional[str]]:
        taken: set[str] = set()
        columns: dict[str, Optional[str]] = {}
        # Amount-like fields first so "total" or "importe" never become descriptions
        order = ["date", "debit", "credit", "amount", "balance", "reference", "operation_code", "description"]
        for name in order:
            synonyms = profile.column_synonyms.get(name)
            if not synonyms:
                continue
            column = find_column(headers, synonyms, taken)
            columns[name] = column
            if column is not None:
                taken.add(column)
        return columns

    def _extract_rows(
        self, rows: Sequence[dict[str, Any]], profile: ExtractionProfile
    ) -> tuple[list[TransactionCandidate], int]:
        headers = list(rows[0].keys())
        columns = self._resolve_columns(headers, profile)
        if columns.get("date") is None or (
            columns.get("amount") is None and columns.get("debit") is None and columns.get("credit") is None
        ):
            logger.warning("No date or amount column found in headers %s", headers)
            return [], 0

        candidates = []
        skipped = 0
        for index, row in enumerate(rows, start=1):
            raw_date = row.get(columns["date"])
            if _is_empty(raw_date) or self._is_summary_row(raw_date):
                continue
            try:
                candidates.append(self._row_to_candidate(row, columns, profile))
            except RowParseSkipped as e:
                skipped += 1
                logger.debug("Row %d skipped: %s", index, e)
        return candidates, skipped

    @staticmethod
    def _is_summary_row(raw_date: Any) -> bool:
        text = _text(raw_date).lower()
        return any(marker in text for marker in NON_TRANSACTION_MARKERS)

    def _row_to_candidate(
        self,
        row: dict[str, Any],
        columns: dict[str, Optional[str]],
        profile: ExtractionProfile,
    ) -> TransactionCandidate:
        try:
            txn_date = parse_date(row.get(columns["date"]), profile.date_formats)
        except ValueError as e:
            raise RowParseSkipped(str(e)) from e

        amount, currency = self._row_amount(row, columns, profile)
        if amount == 0:
            raise RowParseSkipped("Zero amount")

        description = _text(row.get(columns["description"])) if columns.get("description") else ""
        reference = _text(row.get(columns["reference"])) if columns.get("reference") else ""
        if not reference and columns.get("operation_code"):
            reference = _text(row.get(columns["operation_code"]))

        balance = None
        if columns.get("balance") and not _is_empty(row.get(columns["balance"])):
            try:
                balance = parse_amount(row.get(columns["balance"]), profile.numeric_locale)
            except ValueError:
                logger.debug("Unparseable balance %r", row.get(columns["balance"]))

        return TransactionCandidate(
            date=txn_date,
            description=description,
            merchant=extract_merchant(description),
            amount=amount,
            reference_number=reference or None,
            raw_source=json.dumps(row, ensure_ascii=False, default=str),
            extraction_confidence=profile.confidence,
            currency=currency,
            balance=balance,
        )

    def _row_amount(
        self, row: dict[str, Any], columns: dict[str, Optional[str]], profile: ExtractionProfile
    ) -> tuple[Decimal, str]:
        amount_column = columns.get("amount")
        if amount_column is not None and not _is_empty(row.get(amount_column)):
            try:
                amount = parse_amount(row.get(amount_column), profile.numeric_locale)
            except ValueError as e:
                raise RowParseSkipped(str(e)) from e
            description = _text(row.get(columns["description"])) if columns.get("description") else ""
            amount = apply_sign_policy(amount, description, profile)
            return amount, currency_for_column(amount_column, self.default_currency)

        debit_column = columns.get("debit")
        credit_column = columns.get("credit")
        if debit_column is None and credit_column is None:
            raise RowParseSkipped("Missing amount")

        try:
            debit = self._optional_amount(row, debit_column, profile.numeric_locale)
            credit = self._optional_amount(row, credit_column, profile.numeric_locale)
        except ValueError as e:
            raise RowParseSkipped(str(e)) from e

        if credit > 0:
            return credit, currency_for_column(credit_column, self.default_currency)
        if debit != 0:
            return -abs(debit), currency_for_column(debit_column, self.default_currency)
        return Decimal("0"), self.default_currency

    @staticmethod
    def _optional_amount(
        row: dict[str, Any], column: Optional[str], locale: Optional[NumericLocale]
    ) -> Decimal:
        if column is None or _is_empty(row.get(column)):
            return Decimal("0")
        return parse_amount(row.get(column), locale)

    # Line extraction

    def _extract_text(
        self, text: str, bank_id: str
    ) -> tuple[ExtractionProfile, list[TransactionCandidate], int]:
        profile = self.line_profiles.get(bank_id)
        if profile is not None:
            candidates, skipped = self._extract_lines(text, profile)
            if candidates:
                return profile, candidates, skipped
            logger.info("Profile %s found no transactions, using generic lines", profile.profile_id)

        candidates, skipped = self._extract_generic_lines(text, self.generic_line_profile)
        return self.generic_line_profile, candidates, skipped

    def _extract_lines(
        self, text: str, profile: ExtractionProfile
    ) -> tuple[list[TransactionCandidate], int]:
        candidates = []
        skipped = 0
        for line in (text or "").splitlines():
            line = line.strip()
            if len(line) < profile.min_line_length:
                continue
            for pattern in profile.line_patterns:
                match = pattern.regex.search(line)
                if match is None:
                    continue
                if self._has_skip_keyword(match.group("description"), pattern):
                    break
                try:
                    candidates.append(self._line_to_candidate(line, match, pattern, profile))
                except RowParseSkipped as e:
                    skipped += 1
                    logger.debug("Line skipped (%s): %s", e, line)
                break
        return candidates, skipped

    @staticmethod
    def _has_skip_keyword(description: str, pattern: LinePattern) -> bool:
        lowered = description.lower()
        return any(keyword in lowered for keyword in pattern.skip_keywords)

    def _line_to_candidate(
        self, line: str, match: re.Match, pattern: LinePattern, profile: ExtractionProfile
    ) -> TransactionCandidate:
        fields = match.groupdict()
        description = re.sub(r"\s{2,}", " ", fields["description"].strip())
        if len(description) < pattern.min_description_length:
            raise RowParseSkipped("Description too short")

        try:
            txn_date = parse_date(fields["date"], profile.date_formats)
            amount = parse_amount(fields["amount"], profile.numeric_locale)
        except ValueError as e:
            raise RowParseSkipped(str(e)) from e

        amount = apply_sign_policy(amount, description, profile)
        if amount == 0:
            raise RowParseSkipped("Zero amount")

        reference = (fields.get("reference") or "").strip()
        return TransactionCandidate(
            date=txn_date,
            description=description,
            merchant=extract_merchant(description),
            amount=amount,
            reference_number=reference or None,
            raw_source=line,
            extraction_confidence=profile.confidence,
            currency=self.default_currency,
        )

    def _extract_generic_lines(
        self, text: str, profile: ExtractionProfile
    ) -> tuple[list[TransactionCandidate], int]:
        candidates = []
        skipped = 0
        for line in (text or "").splitlines():
            line = line.strip()
            if len(line) < profile.min_line_length:
                continue
            date_match = GENERIC_DATE_TOKEN.search(line)
            if date_match is None:
                continue
            rest = line[: date_match.start()] + " " + line[date_match.end() :]
            amount_matches = list(GENERIC_AMOUNT_TOKEN.finditer(rest))
            if not amount_matches:
                continue
            amount_match = amount_matches[-1]
            description = rest[: amount_match.start()] + " " + rest[amount_match.end() :]
            description = re.sub(r"\s+", " ", description).strip(" -|")
            try:
                if len(description) < MIN_DESCRIPTION_LENGTH:
                    raise RowParseSkipped("Description too short")
                try:
                    txn_date = parse_date(date_match.group(1), profile.date_formats)
                    amount = parse_amount(amount_match.group(0), profile.numeric_locale)
                except ValueError as e:
                    raise RowParseSkipped(str(e)) from e
                amount = apply_sign_policy(amount, description, profile)
                if amount == 0:
                    raise RowParseSkipped("Zero amount")
            except RowParseSkipped as e:
                skipped += 1
                logger.debug("Line skipped (%s): %s", e, line)
                continue

            candidates.append(
                TransactionCandidate(
                    date=txn_date,
                    description=description,
                    merchant=extract_merchant(description),
                    amount=amount,
                    reference_number=None,
                    raw_source=line,
                    extraction_confidence=profile.confidence,
                    currency=self.default_currency,
                )
            )
        return candidates, skipped

    @staticmethod
    def _statement_date(text: str, profile: ExtractionProfile) -> Optional[date]:
        if profile.statement_date_pattern is None or not text:
            return None
        match = profile.statement_date_pattern.search(text)
        if match is None:
            return None
        try:
            return parse_date(match.group(1), profile.date_formats)
        except ValueError:
            return None

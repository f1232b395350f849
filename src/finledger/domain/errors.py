"""Shared domain error messages and error types."""


class DomainError(ValueError):
    """Base class for domain-level errors.

    Subclasses provide semantic categories while preserving ValueError
    compatibility for existing error handling.
    """


class ValidationError(DomainError):
    """Invalid input or failed validation in domain logic."""


class NotFoundError(DomainError):
    """Requested domain entity does not exist."""


class UnsupportedFormat(DomainError):
    """Media type is not recognized. Fatal for the document."""


class ContentDecodeError(DomainError):
    """Recognized media type whose bytes could not be decoded. Fatal for the document."""


class ClassificationInconclusive(DomainError):
    """Neither document type nor bank could be identified."""


class RowParseSkipped(DomainError):
    """A row or line could not be turned into a candidate and was dropped."""


class EscalationUnavailable(DomainError):
    """Quota is exhausted or the enhanced extractor cannot be reached."""


class CurrencyConversionUnavailable(DomainError):
    """No exchange rate could be obtained; the amount stays unconverted."""


class DuplicateReference(DomainError):
    """A candidate's reference number is already stored for the owner."""


def unsupported_media_type(media_type: str, file_name: str) -> str:
    """Return message for an unrecognized media type."""
    return f"Unsupported media type '{media_type}' for file '{file_name}'"


def category_not_found(category_id: int) -> str:
    """Return message for missing category by ID."""
    return f"Category {category_id} not found"


def category_path_not_found(path: str) -> str:
    """Return message for missing category by path."""
    return f"Category '{path}' not found"


def rule_not_found(rule_id: int) -> str:
    """Return message for missing category rule."""
    return f"Category rule {rule_id} not found"


def duplicate_reference(reference_number: str, owner_id: str) -> str:
    """Return message for a reference number already stored for an owner."""
    return f"Transaction with reference '{reference_number}' already exists for owner {owner_id}"


def quota_exhausted(owner_id: str, period_key: str, limit: int) -> str:
    """Return message when an owner has used every escalation in a period."""
    return f"Owner {owner_id} has used all {limit} enhanced extractions for {period_key}"

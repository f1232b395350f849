"""CLI error rendering."""

import click

from finledger.domain.errors import (
    ContentDecodeError,
    DomainError,
    NotFoundError,
    UnsupportedFormat,
    ValidationError,
)

# First matching type wins
ERROR_LABELS: tuple[tuple[type[Exception], str], ...] = (
    (NotFoundError, "Not found"),
    (ValidationError, "Invalid input"),
    (UnsupportedFormat, "Unsupported document"),
    (ContentDecodeError, "Unreadable document"),
)


def describe_error(error: Exception) -> str:
    """Prefix an error message with a label for its kind."""
    for error_type, label in ERROR_LABELS:
        if isinstance(error, error_type):
            return f"{label}: {error}"
    return f"Error: {error}"


def handle_domain_error(ctx: click.Context, error: DomainError | ValueError) -> None:
    """Render a domain error and exit with failure."""
    click.echo(describe_error(error), err=True)
    ctx.exit(1)

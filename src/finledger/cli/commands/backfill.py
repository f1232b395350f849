"""Exchange rate backfill command."""

import click
from finledger.domain.currency import CurrencyNormalizer
from finledger.factories import create_rate_source


@click.command("backfill-rates")
@click.option("--owner", help="Only convert this owner's transactions")
@click.pass_context
def backfill_rates(ctx, owner: str | None):
    """Convert stored transactions that still lack a reference-currency amount."""
    settings = ctx.obj["settings"]
    normalizer = CurrencyNormalizer(
        ctx.obj["db"], create_rate_source(settings), reference_currency=settings.reference_currency
    )
    result = normalizer.backfill(owner_id=owner)
    click.echo(f"Converted: {result['processed']} transactions")
    if result["failed"]:
        click.echo(f"Still unconverted: {result['failed']} transactions")


def register_commands(cli):
    """Register backfill command with main CLI."""
    cli.add_command(backfill_rates)

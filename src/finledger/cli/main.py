"""Main CLI entry point."""

import logging

import click
from finledger.config import ConfigValidationError, PipelineSettings
from finledger.database.factories import DB_PATH_ENV_VAR, create_sqlite_database

# Import and register all commands at module level
from finledger.cli.commands import (
    backfill,
    category,
    process,
    quota,
    rule,
)

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"


@click.group()
@click.option(
    "--db-path",
    type=click.Path(),
    help=f"Path to database file (overrides {DB_PATH_ENV_VAR} environment variable)",
    envvar=DB_PATH_ENV_VAR,
)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx, db_path: str | None, verbose: bool):
    """Finledger - Financial document processing.

    Extract transactions from bank statements, card statements and exports,
    then deduplicate, convert and categorize them.
    """
    ctx.ensure_object(dict)
    logging.basicConfig(level=logging.DEBUG if verbose else logging.INFO, format=LOG_FORMAT)

    # Initialize database connection only when actually running a command
    # (not when showing help)
    if ctx.invoked_subcommand is not None:
        try:
            ctx.obj["settings"] = PipelineSettings.from_env()
        except ConfigValidationError as e:
            click.echo(f"Configuration error: {e}", err=True)
            ctx.exit(1)
        db = create_sqlite_database(database_path=db_path)
        db.connect()
        db.initialize_schema()
        ctx.obj["db"] = db
        ctx.call_on_close(db.disconnect)


# Register all commands
process.register_commands(cli)
rule.register_commands(cli)
category.register_commands(cli)
quota.register_commands(cli)
backfill.register_commands(cli)


def main():
    """Main entry point for CLI."""
    cli()


if __name__ == "__main__":
    main()

"""Document processing command."""

import json
import mimetypes
from pathlib import Path

import click

from finledger.cli.error_handling import handle_domain_error
from finledger.domain.entities import ProcessingStatus, SourceDocument
from finledger.domain.errors import ContentDecodeError
from finledger.factories import create_pipeline


def guess_media_type(file_path: Path) -> str:
    media_type, _ = mimetypes.guess_type(file_path.name)
    return media_type or "application/octet-stream"


@click.command("process")
@click.argument("document_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--owner", required=True, help="Owner the transactions belong to")
@click.option("--media-type", help="Media type of the file (guessed from the extension if omitted)")
@click.option("--json", "as_json", is_flag=True, help="Print the outcome as JSON")
@click.pass_context
def process_document(ctx, document_file: str, owner: str, media_type: str | None, as_json: bool):
    """Extract and store the transactions of a document."""
    db = ctx.obj["db"]
    path = Path(document_file)
    media_type = media_type or guess_media_type(path)
    try:
        content = path.read_bytes()
    except OSError as e:
        handle_domain_error(ctx, ContentDecodeError(f"Could not read {path.name}: {e.strerror}"))

    document_id = db.create_document(owner_id=owner, original_name=path.name, media_type=media_type)
    document = SourceDocument(
        id=document_id,
        owner_id=owner,
        media_type=media_type,
        original_name=path.name,
        content=content,
    )
    pipeline = create_pipeline(db, settings=ctx.obj["settings"])
    outcome = pipeline.process_document(document)

    if as_json:
        click.echo(json.dumps(outcome.to_dict(), indent=2))
    else:
        click.echo(f"\nDocument {outcome.document_id}: {outcome.status.value}")
        if outcome.status == ProcessingStatus.FAILED:
            click.echo(f"  Error: {outcome.error}", err=True)
        else:
            click.echo(f"  Type: {outcome.document_type}")
            click.echo(f"  Bank: {outcome.bank_name_guess or 'unknown'}")
            click.echo(f"  Method: {outcome.method.value} (confidence {outcome.pipeline_confidence})")
            click.echo(f"  Inserted: {outcome.inserted_count} transactions")
            click.echo(f"  Skipped: {outcome.duplicate_count} duplicates")
            if outcome.needs_review:
                click.echo("  Needs review: yes")
            for warning in outcome.warnings:
                click.echo(f"  Warning: {warning}")

    if outcome.status == ProcessingStatus.FAILED:
        ctx.exit(1)


def register_commands(cli):
    """Register process command with main CLI."""
    cli.add_command(process_document)

"""CSV import command."""

from pathlib import Path

import click
from bankmap.cli.commands.analyze import print_analysis
from bankmap.cli.helpers import handle_domain_error, resolve_account_option
from bankmap.cli.mapping_options import describe_mapping, has_mapping_options, mapping_options, overlay_mapping
from bankmap.domain.column_analysis import ColumnAnalyzer
from bankmap.domain.import_pipeline import ImportPipeline, ImportPipelineContext
from bankmap.domain.transaction_parser import mapping_from_analysis
from bankmap.utils.csv_reader import read_csv_rows

# Exit code when the layout needs a human-confirmed mapping
EXIT_NEEDS_MAPPING = 2


def print_staged(context: ImportPipelineContext) -> None:
    batch = context.batch
    click.echo(f"\nStaged import batch {batch.batch_id}:")
    click.echo(f"  Mapping:    {context.mapping_name}")
    if context.template is not None:
        click.echo(f"  Template:   reused '{context.template.name}' (ID: {context.template.id})")
    elif context.template_id is not None:
        click.echo(f"  Template:   saved (ID: {context.template_id})")
    click.echo(f"  Rows:       {len(batch.transactions)}")
    click.echo(
        f"  Duplicates: {batch.duplicate_count} "
        f"({batch.within_file_duplicates} in file, {batch.database_duplicates} already imported)"
    )
    malformed = sum(1 for txn in batch.transactions if txn.errors)
    if malformed:
        click.echo(f"  Malformed:  {malformed} (fix with 'queue edit')")
    for warning in context.warnings:
        click.echo(f"Warning: {warning}", err=True)
    click.echo(f"\nReview with 'bankmap queue show {batch.batch_id}', then 'bankmap queue commit {batch.batch_id}'.")


@click.command("import")
@click.argument("csv_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--account", required=True, help="Account name or ID")
@mapping_options
@click.option("--template-name", help="Name for the template saved from a manual mapping")
@click.option("--categorize", is_flag=True, help="Suggest categories from merchant history")
@click.pass_context
def import_csv(ctx, csv_file: str, account: str, template_name: str | None, categorize: bool, **options):
    """Stage a CSV export for review.

    The column layout is detected automatically, or taken from a template
    saved for the same layout. When detection is not confident enough the
    command prints its suggestion and exits with status 2; re-run it with
    the column options (--date-col, --amount-col, ...) to confirm a mapping.
    Nothing is written to the transaction history until 'queue commit'.
    """
    db = ctx.obj["db"]
    account_id = resolve_account_option(ctx, db, account)
    pipeline = ImportPipeline(db)
    file_name = Path(csv_file).name

    try:
        rows = read_csv_rows(csv_file)
        manual_mapping = None
        if has_mapping_options(options):
            analysis = ColumnAnalyzer().analyze(rows)
            manual_mapping = overlay_mapping(mapping_from_analysis(analysis, rows), rows, options)
        context = pipeline.start(
            rows,
            file_name=file_name,
            account_id=account_id,
            categorize=categorize,
            manual_mapping=manual_mapping,
            template_name=template_name,
        )
    except (ValueError, FileNotFoundError) as e:
        handle_domain_error(ctx, e)
        return

    if context.awaiting_mapping:
        click.echo(f"Could not confidently detect the columns of {file_name}.", err=True)
        print_analysis(context.analysis)
        headers = list(rows[0]) if context.analysis.has_headers else None
        click.echo("\nSuggested mapping:")
        for line in describe_mapping(context.suggested_mapping, headers):
            click.echo(line)
        click.echo("\nRe-run with --date-col, --description-col and --amount-col (or --debit-col/--credit-col).")
        ctx.exit(EXIT_NEEDS_MAPPING)
        return

    print_staged(context)


def register_commands(cli):
    """Register import command with main CLI."""
    cli.add_command(import_csv)

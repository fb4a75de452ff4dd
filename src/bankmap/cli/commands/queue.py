"""Import queue review commands."""

from decimal import Decimal

import click
from bankmap.cli.helpers import handle_domain_error, resolve_account_option
from bankmap.cli.mapping_options import describe_mapping, has_mapping_options, mapping_options, overlay_mapping
from bankmap.domain.category import CategoryService
from bankmap.domain.entities import CategorySplit, DuplicateType, ParsedTransaction, QueuedImportBatch
from bankmap.domain.errors import (
    NotFoundError,
    ValidationError,
    category_path_not_found,
    staged_transaction_not_found,
)
from bankmap.domain.import_queue import ImportQueueService
from bankmap.utils.amount_parser import parse_amount
from bankmap.utils.date_parser import parse_date


def _status_flags(txn: ParsedTransaction) -> str:
    flags = []
    if txn.duplicate_type == DuplicateType.WITHIN_FILE:
        flags.append("dup-file")
    elif txn.duplicate_type == DuplicateType.DATABASE:
        flags.append("dup-db")
    if txn.errors:
        flags.append("error")
    if txn.user_reviewed:
        flags.append("reviewed")
    return ",".join(flags)


def print_batch_summary(batch: QueuedImportBatch) -> None:
    pending = []
    if batch.duplicate_check_pending:
        pending.append("duplicate check")
    if batch.categorization_pending:
        pending.append("categorization")
    pending_str = f" | retry: {', '.join(pending)}" if pending else ""
    click.echo(
        f"{batch.batch_id} | {batch.file_name[:30]:30s} | account {batch.account_id} | "
        f"{len(batch.transactions)} rows, {batch.duplicate_count} duplicates{pending_str}"
    )


@click.group()
def queue_group():
    """Review staged import batches."""
    pass


@queue_group.command("list")
@click.option("--account", help="Filter by account name or ID")
@click.pass_context
def list_batches(ctx, account: str | None):
    """List staged batches awaiting review."""
    db = ctx.obj["db"]
    account_id = resolve_account_option(ctx, db, account)
    batches = ImportQueueService(db).list_batches(account_id=account_id)
    if not batches:
        click.echo("No staged imports.")
        return

    click.echo("\nStaged imports:")
    click.echo("-" * 100)
    for batch in batches:
        print_batch_summary(batch)


@queue_group.command("show")
@click.argument("batch_id")
@click.pass_context
def show_batch(ctx, batch_id: str):
    """Show the rows of a staged batch."""
    db = ctx.obj["db"]
    service = ImportQueueService(db)
    category_service = CategoryService(db)

    try:
        batch = service.load_batch(batch_id)
    except ValueError as e:
        handle_domain_error(ctx, e)
        return

    click.echo(f"\nBatch {batch.batch_id} from {batch.file_name} ({batch.mapping_name})")
    headers = list(batch.raw_rows[0]) if batch.mapping.has_headers and batch.raw_rows else None
    for line in describe_mapping(batch.mapping, headers):
        click.echo(line)
    if batch.duplicate_check_pending:
        click.echo("Duplicate check did not complete; run 'queue recheck' before committing.")
    if batch.categorization_pending:
        click.echo("Categorization did not complete; run 'queue categorize' to retry.")

    click.echo("-" * 120)
    click.echo(
        f"{'ID':<6} {'Row':<5} {'Date':<12} {'Amount':>12}  {'Status':<10} {'Flags':<18} "
        f"{'Category':<24} Description"
    )
    click.echo("-" * 120)
    for txn in batch.transactions:
        amount_str = f"{txn.amount:,.2f}" if txn.amount is not None else "?"
        date_str = str(txn.date) if txn.date is not None else "?"
        if len(txn.splits) > 1:
            category = f"{len(txn.splits)} splits"
        elif txn.splits:
            category = category_service.format_category_path(txn.splits[0].category_id)
        else:
            category = ""
        click.echo(
            f"{txn.id:<6} {txn.row_number:<5} {date_str:<12} {amount_str:>12}  {txn.status.value:<10} "
            f"{_status_flags(txn):<18} {category[:24]:<24} {txn.description[:40]}"
        )
        for error in txn.errors:
            click.echo(f"{'':<6} ! {error}")


@queue_group.command("recheck")
@click.argument("batch_id")
@click.pass_context
def recheck_duplicates(ctx, batch_id: str):
    """Re-run duplicate detection for a batch."""
    service = ImportQueueService(ctx.obj["db"])

    try:
        batch = service.recheck_duplicates(batch_id)
    except ValueError as e:
        handle_domain_error(ctx, e)
        return
    click.echo(
        f"Duplicate check complete: {batch.within_file_duplicates} within file, "
        f"{batch.database_duplicates} already imported."
    )


@queue_group.command("categorize")
@click.argument("batch_id")
@click.pass_context
def categorize_batch(ctx, batch_id: str):
    """Suggest categories for uncategorized rows from merchant history."""
    service = ImportQueueService(ctx.obj["db"])

    try:
        categorized = service.categorize(batch_id)
    except ValueError as e:
        handle_domain_error(ctx, e)
        return
    click.echo(f"Categorized {categorized} transaction(s).")


@queue_group.command("include")
@click.argument("batch_id")
@click.argument("transaction_ids", nargs=-1, type=int)
@click.option("--all", "include_all", is_flag=True, help="Include every well-formed row")
@click.option("--duplicates", is_flag=True, help="With --all, include duplicates too")
@click.pass_context
def include_rows(ctx, batch_id: str, transaction_ids: tuple[int, ...], include_all: bool, duplicates: bool):
    """Mark rows to be committed, overriding duplicate exclusion."""
    service = ImportQueueService(ctx.obj["db"])

    if not include_all and not transaction_ids:
        click.echo("Error: Give transaction IDs or --all", err=True)
        ctx.exit(1)
        return

    try:
        if include_all:
            count = service.include_all(batch_id, include_duplicates=duplicates)
        else:
            count = service.include(batch_id, transaction_ids)
    except ValueError as e:
        handle_domain_error(ctx, e)
        return
    click.echo(f"Included {count} transaction(s).")


@queue_group.command("exclude")
@click.argument("batch_id")
@click.argument("transaction_ids", nargs=-1, type=int, required=True)
@click.pass_context
def exclude_rows(ctx, batch_id: str, transaction_ids: tuple[int, ...]):
    """Mark rows to be left out of the commit."""
    service = ImportQueueService(ctx.obj["db"])

    try:
        count = service.exclude(batch_id, transaction_ids)
    except ValueError as e:
        handle_domain_error(ctx, e)
        return
    click.echo(f"Excluded {count} transaction(s).")


def _parse_splits(category_service: CategoryService, values: tuple[str, ...]) -> list[CategorySplit]:
    splits = []
    for value in values:
        path, sep, amount = value.rpartition("=")
        if not sep or not path.strip():
            raise ValidationError(f"Split '{value}' must look like 'Category > Path=AMOUNT'")
        category = category_service.get_category_by_path(path.strip())
        if category is None:
            raise NotFoundError(category_path_not_found(path.strip()))
        splits.append(CategorySplit(category_id=category.id, amount=parse_amount(amount)))
    return splits


def _full_amount_split(
    service: ImportQueueService,
    category_service: CategoryService,
    batch_id: str,
    transaction_id: int,
    path: str,
    new_amount: Decimal | None,
) -> CategorySplit:
    category = category_service.get_category_by_path(path.strip())
    if category is None:
        raise NotFoundError(category_path_not_found(path.strip()))
    amount = new_amount
    if amount is None:
        txn = service.load_batch(batch_id).get_transaction(transaction_id)
        if txn is None:
            raise NotFoundError(staged_transaction_not_found(transaction_id, batch_id))
        amount = txn.amount
    if amount is None:
        raise ValidationError(f"Transaction {transaction_id} needs a valid amount before it can be categorized")
    return CategorySplit(category_id=category.id, amount=amount)


@queue_group.command("edit")
@click.argument("batch_id")
@click.argument("transaction_id", type=int)
@click.option("--date", "date_str", help="New date")
@click.option("--description", help="New description")
@click.option("--amount", "amount_str", help="New signed amount (expenses negative)")
@click.option("--category", help="Category path for the whole amount")
@click.option("--split", "split_values", multiple=True, help="Split as 'Category > Path=AMOUNT'; repeatable")
@click.pass_context
def edit_row(
    ctx,
    batch_id: str,
    transaction_id: int,
    date_str: str | None,
    description: str | None,
    amount_str: str | None,
    category: str | None,
    split_values: tuple[str, ...],
):
    """Edit a staged row.

    Examples:
        bankmap queue edit 3f2a9c1b7d4e 12 --date 2024-01-15
        bankmap queue edit 3f2a9c1b7d4e 12 --category "Food & Dining > Groceries"
        bankmap queue edit 3f2a9c1b7d4e 12 --split "Shopping=-40.00" --split "Food & Dining=-10.00"
    """
    db = ctx.obj["db"]
    service = ImportQueueService(db)
    category_service = CategoryService(db)

    if category and split_values:
        click.echo("Error: Use either --category or --split, not both", err=True)
        ctx.exit(1)
        return

    try:
        new_date = parse_date(date_str) if date_str is not None else None
        new_amount = parse_amount(amount_str) if amount_str is not None else None
        splits = None
        if split_values:
            splits = _parse_splits(category_service, split_values)
        elif category:
            splits = [_full_amount_split(service, category_service, batch_id, transaction_id, category, new_amount)]
        txn = service.edit_transaction(
            batch_id,
            transaction_id,
            date=new_date,
            description=description,
            amount=new_amount,
            splits=splits,
        )
    except ValueError as e:
        handle_domain_error(ctx, e)
        return

    click.echo(f"Updated transaction {txn.id}.")
    for error in txn.errors:
        click.echo(f"  Still malformed: {error}")


@queue_group.command("remap")
@click.argument("batch_id")
@mapping_options
@click.option("--template-name", help="Name for the batch's mapping")
@click.option("--save-template", is_flag=True, help="Save the new mapping as a template for this layout")
@click.pass_context
def remap_batch(ctx, batch_id: str, template_name: str | None, save_template: bool, **options):
    """Re-parse a batch with a corrected column mapping.

    Options left out keep the batch's current mapping. Review decisions on
    the old rows are discarded.
    """
    service = ImportQueueService(ctx.obj["db"])

    if not has_mapping_options(options):
        click.echo("Error: Give at least one mapping option (e.g. --amount-col)", err=True)
        ctx.exit(1)
        return

    try:
        batch = service.load_batch(batch_id)
        mapping = overlay_mapping(batch.mapping, batch.raw_rows, options)
        batch = service.remap(batch_id, mapping, template_name=template_name, save_template=save_template)
    except ValueError as e:
        handle_domain_error(ctx, e)
        return

    click.echo(f"Remapped batch {batch.batch_id}: {len(batch.transactions)} rows, {batch.duplicate_count} duplicates.")
    if batch.duplicate_check_pending:
        click.echo("Duplicate check did not complete; run 'queue recheck' before committing.")


@queue_group.command("commit")
@click.argument("batch_id")
@click.pass_context
def commit_batch(ctx, batch_id: str):
    """Write the batch's included rows to the transaction history."""
    service = ImportQueueService(ctx.obj["db"])

    try:
        result = service.commit(batch_id)
    except ValueError as e:
        handle_domain_error(ctx, e)
        return
    click.echo(f"Committed {result.committed} transaction(s), skipped {result.skipped}.")


@queue_group.command("delete")
@click.argument("batch_id")
@click.pass_context
def delete_batch(ctx, batch_id: str):
    """Discard a staged batch without importing it."""
    service = ImportQueueService(ctx.obj["db"])

    try:
        batch = service.load_batch(batch_id)
    except ValueError as e:
        handle_domain_error(ctx, e)
        return

    if not click.confirm(f"Are you sure you want to discard batch {batch_id} ({batch.file_name})?"):
        click.echo("Deletion cancelled.")
        return

    service.delete(batch_id)
    click.echo(f"Deleted batch {batch_id}")


def register_commands(cli):
    """Register queue commands with main CLI."""
    cli.add_command(queue_group, name="queue")

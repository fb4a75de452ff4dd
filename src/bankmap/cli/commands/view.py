"""Committed transaction viewing command."""

import click
from bankmap.cli.helpers import EXIT_FAILURE, resolve_account_option
from bankmap.domain.account import AccountService
from bankmap.domain.category import CategoryService
from bankmap.domain.transaction import TransactionService
from bankmap.utils.date_parser import parse_date


def _parse_bound(ctx, value: str | None, label: str):
    if not value:
        return None
    try:
        return parse_date(value)
    except ValueError as e:
        click.echo(f"Error: Invalid {label} date: {e}", err=True)
        ctx.exit(EXIT_FAILURE)


@click.command("view")
@click.option("--start-date", help="Start date (YYYY-MM-DD)")
@click.option("--end-date", help="End date (YYYY-MM-DD)")
@click.option("--account", help="Account name or ID")
@click.pass_context
def view_transactions(ctx, start_date: str | None, end_date: str | None, account: str | None):
    """View committed transactions with optional filters."""
    db = ctx.obj["db"]
    service = TransactionService(db)
    category_service = CategoryService(db)
    account_service = AccountService(db)

    start = _parse_bound(ctx, start_date, "start")
    end = _parse_bound(ctx, end_date, "end")

    account_id = resolve_account_option(ctx, db, account)
    transactions = service.list_transactions(account_id=account_id, start_date=start, end_date=end)
    if not transactions:
        click.echo("No transactions found.")
        return

    accounts = {acc.id: acc.name for acc in account_service.list_accounts()}

    click.echo(f"\nFound {len(transactions)} transaction(s):")
    click.echo("-" * 110)
    click.echo(
        f"{'ID':<6} {'Date':<12} {'Amount':>12}  {'Account':<18} {'Category':<28} {'Description':<30}"
    )
    click.echo("-" * 110)
    for txn in transactions:
        if len(txn.splits) > 1:
            category_name = f"{len(txn.splits)} splits"
        elif txn.category_id is not None:
            category_name = category_service.format_category_path(txn.category_id)
        else:
            category_name = "Uncategorized"
        click.echo(
            f"{txn.id:<6} {str(txn.date):<12} {txn.amount:>12,.2f}  "
            f"{accounts.get(txn.account_id, 'Unknown')[:18]:<18} {category_name[:28]:<28} {txn.description[:30]:<30}"
        )

    income, expenses = service.totals(transactions)
    click.echo("-" * 110)
    click.echo(f"Income: {income:,.2f}  Expenses: {expenses:,.2f}  Net: {income - expenses:,.2f}")


def register_commands(cli):
    """Register view command with main CLI."""
    cli.add_command(view_transactions)

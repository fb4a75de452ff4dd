"""Account commands."""

from collections import Counter

import click
from bankmap.cli.helpers import handle_domain_error
from bankmap.domain.account import AccountService
from bankmap.domain.import_queue import ImportQueueService


@click.group()
def account_group():
    """Manage the accounts imports are committed to."""


@account_group.command("create")
@click.argument("name", metavar="ACCOUNT_NAME")
@click.option("--bank", help="Bank name (defaults to the account name)")
@click.pass_context
def create_account(ctx, name: str, bank: str | None):
    """Create an account.

    Examples:
        bankmap account create "Chase"
        bankmap account create "Joint Checking" --bank "Wells Fargo"
    """
    service = AccountService(ctx.obj["db"])
    name = name.strip()

    try:
        account_id = service.create_account(name=name, bank_name=bank or name)
    except ValueError as e:
        handle_domain_error(ctx, e)
        return
    click.echo(f"Created account '{name}' (ID: {account_id})")
    if bank is None:
        click.echo(f"Bank name set to '{name}'")


@account_group.command("list")
@click.pass_context
def list_accounts(ctx):
    """List accounts and how many batches each has waiting for review."""
    db = ctx.obj["db"]
    accounts = AccountService(db).list_accounts()
    if not accounts:
        click.echo("No accounts found.")
        return

    staged = Counter(batch.account_id for batch in ImportQueueService(db).list_batches())
    click.echo(f"\n{'ID':>4}  {'Name':<24} {'Bank':<24} Staged")
    click.echo("-" * 64)
    for acc in accounts:
        click.echo(f"{acc.id:>4}  {acc.name[:24]:<24} {acc.bank_name[:24]:<24} {staged[acc.id]}")


def register_commands(cli):
    cli.add_command(account_group, name="account")

"""Shared CLI helpers: error reporting and account lookup."""

import logging
from typing import NoReturn, Optional

import click

from bankmap.database.base import Database
from bankmap.domain.account import AccountService
from bankmap.domain.categorization import CATEGORIZATION_STEP
from bankmap.domain.duplicates import DUPLICATE_CHECK_STEP
from bankmap.domain.errors import StepUnavailableError

logger = logging.getLogger(__name__)

EXIT_FAILURE = 1

STEP_RETRY_HINTS = {
    DUPLICATE_CHECK_STEP: "Previous duplicate marks were kept; run 'queue recheck' again later.",
    CATEGORIZATION_STEP: "Rows were left unchanged; run 'queue categorize' again later.",
}


def handle_domain_error(ctx: click.Context, error: ValueError) -> NoReturn:
    """Print a domain error (plus a retry hint for unavailable steps) and exit."""
    logger.debug("Command %s failed", ctx.command_path, exc_info=error)
    click.echo(f"Error: {error}", err=True)
    if isinstance(error, StepUnavailableError) and error.step in STEP_RETRY_HINTS:
        click.echo(STEP_RETRY_HINTS[error.step], err=True)
    ctx.exit(EXIT_FAILURE)


def resolve_account_option(ctx: click.Context, db: Database, account: Optional[str]) -> Optional[int]:
    """Resolve an --account value (name or ID); None passes through."""
    if account is None:
        return None
    try:
        return AccountService(db).resolve(account)
    except ValueError as e:
        handle_domain_error(ctx, e)

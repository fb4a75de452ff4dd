"""Main CLI entry point."""

import logging

import click
from bankmap.database.factories import create_sqlite_database

# Import and register all commands at module level
from bankmap.cli.commands import (
    account,
    analyze,
    category,
    import_cmd,
    init_categories,
    queue,
    template,
    view,
)

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]


@click.group()
@click.option(
    "--db-path",
    type=click.Path(),
    help="Path to database file (overrides BANKMAP_DB_PATH environment variable)",
    envvar="BANKMAP_DB_PATH",
)
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default="WARNING",
    show_default=True,
    envvar="BANKMAP_LOG_LEVEL",
    help="Logging level",
)
@click.pass_context
def cli(ctx, db_path: str | None, log_level: str):
    """Bankmap - Bank statement import.

    Detects the column layout of bank CSV exports, remembers confirmed
    layouts as templates and stages every import in a review queue before
    anything is committed.
    """
    ctx.ensure_object(dict)
    logging.basicConfig(
        level=log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # Initialize database connection only when actually running a command
    # (not when showing help)
    if ctx.invoked_subcommand is not None:
        db = create_sqlite_database(database_path=db_path)
        db.connect()
        db.initialize_schema()
        ctx.obj["db"] = db
        ctx.call_on_close(db.disconnect)


# Register all commands
account.register_commands(cli)
analyze.register_commands(cli)
category.register_commands(cli)
import_cmd.register_commands(cli)
init_categories.register_commands(cli)
queue.register_commands(cli)
template.register_commands(cli)
view.register_commands(cli)


def main():
    """Main entry point for CLI."""
    cli()


if __name__ == "__main__":
    main()

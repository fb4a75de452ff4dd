"""Initialize default categories."""

import click
from bankmap.cli.helpers import handle_domain_error
from bankmap.domain.category import PATH_SEPARATOR, CategoryService


# Parents are listed before their children
INITIAL_CATEGORIES = [
    ("Income", None),
    ("Food & Dining", None),
    ("Transportation", None),
    ("Shopping", None),
    ("Bills & Utilities", None),
    ("Entertainment", None),
    ("Health & Fitness", None),
    ("Travel", None),
    ("Transfers", None),
    ("Other", None),
    ("Salary", "Income"),
    ("Interest", "Income"),
    ("Refunds", "Income"),
    ("Groceries", "Food & Dining"),
    ("Restaurants", "Food & Dining"),
    ("Coffee & Snacks", "Food & Dining"),
    ("Gas", "Transportation"),
    ("Public Transit", "Transportation"),
    ("Parking", "Transportation"),
    ("Rideshare", "Transportation"),
    ("Clothing", "Shopping"),
    ("Electronics", "Shopping"),
    ("Home & Garden", "Shopping"),
    ("Online", "Shopping"),
    ("Rent & Mortgage", "Bills & Utilities"),
    ("Electricity", "Bills & Utilities"),
    ("Internet", "Bills & Utilities"),
    ("Phone", "Bills & Utilities"),
    ("Subscriptions", "Entertainment"),
    ("Movies", "Entertainment"),
    ("Gym", "Health & Fitness"),
    ("Pharmacy", "Health & Fitness"),
    ("Doctor", "Health & Fitness"),
    ("Flights", "Travel"),
    ("Hotels", "Travel"),
    ("Credit Card Payment", "Transfers"),
    ("Savings", "Transfers"),
]


@click.command("init-categories")
@click.pass_context
def init_categories(ctx):
    """Create the default category tree.

    Categories that already exist are left alone, so running this again
    only fills in what is missing.
    """
    service = CategoryService(ctx.obj["db"])

    created = 0
    for name, parent in INITIAL_CATEGORIES:
        path = f"{parent}{PATH_SEPARATOR}{name}" if parent else name
        if service.get_category_by_path(path) is not None:
            continue
        try:
            service.create_category(name=name, parent_path=parent)
        except ValueError as e:
            handle_domain_error(ctx, e)
            return
        created += 1

    if created == 0:
        click.echo("All default categories already exist.")
    else:
        click.echo(f"Created {created} default categories.")


def register_commands(cli):
    cli.add_command(init_categories)

"""Category commands."""

from typing import Any, Iterator

import click
from bankmap.cli.helpers import handle_domain_error
from bankmap.domain.category import PATH_SEPARATOR, CategoryService


def walk_category_tree(
    nodes: list[dict[str, Any]], parent_path: str = "", depth: int = 0
) -> Iterator[tuple[dict[str, Any], str, int]]:
    """Yield (node, full path, depth) in display order."""
    for node in nodes:
        path = f"{parent_path}{PATH_SEPARATOR}{node['name']}" if parent_path else node["name"]
        yield node, path, depth
        yield from walk_category_tree(node.get("children", []), path, depth + 1)


@click.group()
def category_group():
    """Manage the categories splits are assigned to."""


@category_group.command("list")
@click.option("--paths", is_flag=True, help="Show full paths, as accepted by 'queue edit --category'")
@click.pass_context
def list_categories(ctx, paths: bool):
    """Show the category tree."""
    tree = CategoryService(ctx.obj["db"]).get_category_tree()
    if not tree:
        click.echo("No categories found. Run 'init-categories' to create the default tree.")
        return

    click.echo("\nCategories:")
    for node, path, depth in walk_category_tree(tree):
        label = path if paths else "  " * depth + node["name"]
        click.echo(f"{node['id']:>4}  {label}")


@category_group.command("add")
@click.argument("name")
@click.option("--parent", help="Parent category path (e.g. 'Food & Dining')")
@click.pass_context
def add_category(ctx, name: str, parent: str | None):
    """Add a category, optionally under a parent."""
    service = CategoryService(ctx.obj["db"])

    try:
        category_id = service.create_category(name=name, parent_path=parent)
    except ValueError as e:
        handle_domain_error(ctx, e)
        return
    click.echo(f"Created category '{service.format_category_path(category_id)}' (ID: {category_id})")


def register_commands(cli):
    cli.add_command(category_group, name="category")

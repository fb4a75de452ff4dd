"""Mapping template commands."""

import click
from bankmap.cli.helpers import handle_domain_error
from bankmap.domain.mapping_template import MappingTemplateService


@click.group()
def template_group():
    """Manage saved column mapping templates."""
    pass


@template_group.command("list")
@click.pass_context
def list_templates(ctx):
    """List saved templates."""
    service = MappingTemplateService(ctx.obj["db"])

    templates = service.list_templates()
    if not templates:
        click.echo("No mapping templates saved.")
        return

    click.echo("\nMapping templates:")
    click.echo("-" * 90)
    for template in templates:
        last_used = template.last_used.strftime("%Y-%m-%d") if template.last_used else "never"
        click.echo(
            f"ID: {template.id:3d} | {template.name[:36]:36s} | {template.column_count} columns | "
            f"used {template.usage_count}x, last {last_used}"
        )


@template_group.command("delete")
@click.argument("template_id", type=int)
@click.pass_context
def delete_template(ctx, template_id: int):
    """Delete a template; its layout will be analyzed again on the next import."""
    service = MappingTemplateService(ctx.obj["db"])

    template = service.get_template(template_id)
    if template is None:
        click.echo(f"Error: Mapping template {template_id} not found", err=True)
        ctx.exit(1)
        return

    if not click.confirm(f"Are you sure you want to delete template '{template.name}' (ID: {template_id})?"):
        click.echo("Deletion cancelled.")
        return

    try:
        service.delete_template(template_id)
    except ValueError as e:
        handle_domain_error(ctx, e)
        return
    click.echo(f"Deleted template '{template.name}'")


def register_commands(cli):
    """Register template commands with main CLI."""
    cli.add_command(template_group, name="template")

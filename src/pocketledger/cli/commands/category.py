"""Category management commands."""

import click

from pocketledger.cli.error_handling import handle_domain_error
from pocketledger.domain.category import CategoryService
from pocketledger.domain.errors import DomainError


def print_category_tree(service: CategoryService, parent_id: int | None = None, indent: int = 0) -> None:
    """Recursively print category tree."""
    for cat in service.list_categories(parent_id=parent_id):
        prefix = "  " * indent
        click.echo(f"{prefix}{cat.name} (ID: {cat.id})")
        print_category_tree(service, cat.id, indent + 1)


@click.group()
def category_group():
    """Manage categories."""
    pass


@category_group.command("list")
@click.pass_context
def list_categories(ctx):
    """List all categories in tree format."""
    service = CategoryService(ctx.obj["db"])

    if not service.list_categories():
        click.echo("No categories found. Create one with 'category create'.")
        return

    click.echo("\nCategories:")
    print_category_tree(service)


@category_group.command("create")
@click.argument("name")
@click.option("--parent", help="Parent category path (e.g., 'Food & Dining')")
@click.pass_context
def create_category(ctx, name: str, parent: str | None):
    """Create a new category."""
    service = CategoryService(ctx.obj["db"])

    try:
        category_id = service.create_category(name=name, parent_path=parent)
    except DomainError as e:
        handle_domain_error(ctx, e)
        return

    parent_str = f" under '{parent}'" if parent else ""
    click.echo(f"Created category '{name}'{parent_str} (ID: {category_id})")


def register_commands(cli):
    """Register category commands with main CLI."""
    cli.add_command(category_group, name="category")

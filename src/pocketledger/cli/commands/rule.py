"""Categorization rule commands."""

import click

from pocketledger.cli.error_handling import handle_domain_error
from pocketledger.domain.category import CategoryService
from pocketledger.domain.errors import DomainError, NotFoundError, category_path_not_found
from pocketledger.domain.rules import DEFAULT_PRIORITY, RuleService


def _rule_service(ctx) -> RuleService:
    db = ctx.obj["db"]
    return RuleService(rules=db, categories=db, transactions=db)


@click.group()
def rule_group():
    """Manage categorization rules."""
    pass


@rule_group.command("add")
@click.argument("category_path")
@click.option("--merchant", help="Match this merchant name (case-insensitive)")
@click.option("--pattern", help="Match descriptions containing this text")
@click.option("--regex", is_flag=True, help="Treat --pattern as a regular expression")
@click.option(
    "--priority",
    type=int,
    default=DEFAULT_PRIORITY,
    show_default=True,
    help="Lower numbers win when several rules match",
)
@click.pass_context
def add_rule(ctx, category_path: str, merchant: str | None, pattern: str | None, regex: bool, priority: int):
    """Add a rule assigning CATEGORY_PATH to matching transactions.

    Examples:
        pocketledger rule add "Shopping" --merchant Amazon
        pocketledger rule add "Groceries" --pattern "lidl|aldi" --regex --priority 10
    """
    category_service = CategoryService(ctx.obj["db"])

    try:
        category = category_service.get_category_by_path(category_path)
        if category is None:
            raise NotFoundError(category_path_not_found(category_path))
        rule_id = _rule_service(ctx).create_rule(
            category_id=category.id,
            merchant=merchant,
            description_pattern=pattern,
            priority=priority,
            pattern_is_regex=regex,
        )
    except DomainError as e:
        handle_domain_error(ctx, e)
        return

    click.echo(f"Created rule {rule_id} -> '{category_path}'")


@rule_group.command("list")
@click.pass_context
def list_rules(ctx):
    """List rules in evaluation order."""
    service = _rule_service(ctx)
    category_service = CategoryService(ctx.obj["db"])

    rules = service.list_rules()
    if not rules:
        click.echo("No rules found.")
        return

    click.echo(f"{'ID':<6} {'Prio':<6} {'Active':<7} {'Condition':<40} Category")
    for rule in rules:
        conditions = []
        if rule.merchant:
            conditions.append(f"merchant={rule.merchant}")
        if rule.description_pattern:
            kind = "regex" if rule.pattern_is_regex else "text"
            conditions.append(f"{kind}={rule.description_pattern}")
        category_path = category_service.format_category_path(rule.category_id) or (
            f"<missing {rule.category_id}>"
        )
        active = "yes" if rule.is_active else "no"
        click.echo(
            f"{rule.id:<6} {rule.priority:<6} {active:<7} {' & '.join(conditions):<40} {category_path}"
        )


@rule_group.command("delete")
@click.argument("rule_id", type=int)
@click.pass_context
def delete_rule(ctx, rule_id: int):
    """Delete a rule."""
    try:
        _rule_service(ctx).delete_rule(rule_id)
    except DomainError as e:
        handle_domain_error(ctx, e)
        return
    click.echo(f"Deleted rule {rule_id}")


@rule_group.command("apply")
@click.option("--all", "apply_all", is_flag=True, help="Re-categorize already categorized transactions too")
@click.pass_context
def apply_rules(ctx, apply_all: bool):
    """Run the active rules over stored transactions."""
    updated = _rule_service(ctx).apply_rules(only_uncategorized=not apply_all)
    click.echo(f"Updated {updated} transactions")


def register_commands(cli):
    """Register rule commands with main CLI."""
    cli.add_command(rule_group, name="rule")

"""Transaction review commands."""

import click

from pocketledger.cli.error_handling import handle_domain_error
from pocketledger.domain.category import CategoryService
from pocketledger.domain.errors import DomainError
from pocketledger.domain.transaction import TransactionService
from pocketledger.utils.date_parser import parse_date


def _transaction_service(ctx) -> TransactionService:
    db = ctx.obj["db"]
    return TransactionService(transactions=db, categories=db)


@click.command("transactions")
@click.option("--start-date", help="Start date (YYYY-MM-DD)")
@click.option("--end-date", help="End date (YYYY-MM-DD)")
@click.option("--uncategorized", is_flag=True, help="Only transactions without a category")
@click.option("--flagged", is_flag=True, help="Only rows imported as possible duplicates")
@click.option("--include-hidden", is_flag=True, help="Include hidden transactions")
@click.pass_context
def list_transactions(
    ctx,
    start_date: str | None,
    end_date: str | None,
    uncategorized: bool,
    flagged: bool,
    include_hidden: bool,
):
    """List stored transactions, newest first."""
    service = _transaction_service(ctx)
    category_service = CategoryService(ctx.obj["db"])

    try:
        start = parse_date(start_date) if start_date else None
        end = parse_date(end_date) if end_date else None
    except ValueError as e:
        click.echo(f"Error: Invalid date: {e}", err=True)
        ctx.exit(1)
        return

    transactions = service.list_transactions(
        start_date=start,
        end_date=end,
        uncategorized=uncategorized,
        include_hidden=include_hidden,
        flagged_only=flagged,
    )

    if not transactions:
        click.echo("No transactions found.")
        return

    click.echo(f"\nFound {len(transactions)} transaction(s):")
    click.echo("-" * 110)
    click.echo(
        f"{'ID':<6} {'Date':<12} {'Amount':>14} {'Merchant':<24} {'Category':<24} {'Description':<26}"
    )
    click.echo("-" * 110)

    for txn in transactions:
        category_name = ""
        if txn.category_id is not None:
            category_name = category_service.format_category_path(txn.category_id)

        amount_str = f"{txn.amount.amount:,.2f} {txn.amount.currency}"
        marker = ""
        if txn.is_flagged_duplicate:
            marker = " [dup?]"
        elif txn.is_hidden:
            marker = " [hidden]"
        description = (txn.description + marker)[:26]

        click.echo(
            f"{txn.id:<6} {str(txn.transaction_date):<12} {amount_str:>14} {txn.merchant[:24]:<24} "
            f"{category_name[:24]:<24} {description:<26}"
        )


@click.command("categorize")
@click.argument("transaction_ids", nargs=-1, required=True, type=int)
@click.argument("category_path", nargs=1)
@click.pass_context
def categorize_transaction(ctx, transaction_ids: tuple[int, ...], category_path: str):
    """Assign a category to one or more transactions.

    Examples:
        pocketledger categorize 1 "Food & Dining > Groceries"
        pocketledger categorize 1 2 3 "Shopping"
    """
    service = _transaction_service(ctx)

    if CategoryService(ctx.obj["db"]).get_category_by_path(category_path) is None:
        click.echo(f"Error: Category '{category_path}' not found", err=True)
        ctx.exit(1)
        return

    # Remove duplicates while preserving order
    unique_ids = list(dict.fromkeys(transaction_ids))

    errors = []
    for txn_id in unique_ids:
        try:
            service.update_category(transaction_id=txn_id, category_path=category_path)
            click.echo(f"Transaction {txn_id} categorized as '{category_path}'")
        except DomainError as e:
            errors.append((txn_id, str(e)))
            click.echo(f"Error: {e}", err=True)

    if len(unique_ids) > 1:
        click.echo(f"\nResults: {len(unique_ids) - len(errors)} succeeded, {len(errors)} failed")
    if errors:
        ctx.exit(1)


@click.command("hide")
@click.argument("transaction_id", type=int)
@click.option("--undo", is_flag=True, help="Show the transaction again")
@click.pass_context
def hide_transaction(ctx, transaction_id: int, undo: bool):
    """Hide a transaction from listings."""
    service = _transaction_service(ctx)
    try:
        if undo:
            service.unhide(transaction_id)
        else:
            service.hide(transaction_id)
    except DomainError as e:
        handle_domain_error(ctx, e)
        return

    click.echo(f"Transaction {transaction_id} {'shown' if undo else 'hidden'}")


def register_commands(cli):
    """Register transaction commands with main CLI."""
    cli.add_command(list_transactions)
    cli.add_command(categorize_transaction)
    cli.add_command(hide_transaction)

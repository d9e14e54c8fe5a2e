"""CSV import command."""

import click

from pocketledger.cli.error_handling import handle_domain_error
from pocketledger.domain.category import CategoryService
from pocketledger.domain.commands import SUPPORTED_CURRENCIES
from pocketledger.domain.csv_import import CSVImportService
from pocketledger.domain.entities import RowDecision
from pocketledger.domain.errors import DomainError


@click.command("import")
@click.argument("csv_file", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--currency",
    default="EUR",
    show_default=True,
    help=f"ISO currency of the amounts ({', '.join(sorted(SUPPORTED_CURRENCIES))})",
)
@click.option("--no-categorize", is_flag=True, help="Skip rule-based categorization")
@click.option("--no-dedup", is_flag=True, help="Import every row without duplicate detection")
@click.option(
    "--keep-duplicates",
    is_flag=True,
    help="Import rows seen in earlier imports and flag them for review",
)
@click.option("--dry-run", is_flag=True, help="Show what would be imported without saving anything")
@click.pass_context
def import_csv(
    ctx,
    csv_file: str,
    currency: str,
    no_categorize: bool,
    no_dedup: bool,
    keep_duplicates: bool,
    dry_run: bool,
):
    """Import transactions from a bank CSV export."""
    db = ctx.obj["db"]
    service = CSVImportService(transactions=db, rules=db, categories=db)

    try:
        outcome = service.import_file(
            csv_file,
            currency=currency,
            auto_categorization_enabled=not no_categorize,
            duplicate_detection_enabled=not no_dedup,
            skip_duplicates=not keep_duplicates,
            dry_run=dry_run,
        )
    except DomainError as e:
        handle_domain_error(ctx, e)
        return

    result = outcome.result
    for warning in result.warnings:
        click.echo(f"Warning: {warning}", err=True)

    if outcome.dry_run:
        _show_preview(db, result)
        return

    title = "Import complete:" if outcome.succeeded else "Import failed:"
    click.echo(f"\n{title}")
    click.echo(f"  Imported: {result.imported} transactions")
    click.echo(f"  Skipped: {result.skipped_duplicates} duplicates")
    click.echo(f"  Invalid rows: {result.skipped_invalid}")
    click.echo(f"  Categorized: {result.categorized}")
    if result.flagged_duplicates:
        rows = ", ".join(str(n) for n in result.flagged_duplicates)
        click.echo(f"  Flagged as possible duplicates: rows {rows}")
    if result.errors:
        click.echo(f"  Errors: {len(result.errors)}")
        for error in result.errors:
            click.echo(f"    {error}", err=True)

    if not outcome.succeeded:
        ctx.exit(1)


def _show_preview(db, result):
    """Print the per-row decisions of a dry run."""
    category_service = CategoryService(db)
    click.echo("\nImport preview (nothing saved):")
    for row in result.previews:
        category = category_service.format_category_path(row.category_id) if row.category_id else ""
        click.echo(
            f"  Row {row.row_number}: {row.transaction_date} {row.amount} "
            f"{row.description} [{row.decision.value}] {category}".rstrip()
        )

    would_import = sum(1 for row in result.previews if row.decision != RowDecision.SKIP)
    click.echo(f"\n  Would import: {would_import} transactions")
    click.echo(f"  Would skip: {result.skipped_duplicates} duplicates")
    click.echo(f"  Invalid rows: {result.skipped_invalid}")
    click.echo(f"  Would categorize: {result.categorized}")
    for error in result.errors:
        click.echo(f"    {error}", err=True)


def register_commands(cli):
    """Register import command with main CLI."""
    cli.add_command(import_csv)

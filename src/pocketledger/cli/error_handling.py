"""CLI error handling helpers."""

import click

from pocketledger.domain.errors import CommandValidationError, DomainError


def handle_domain_error(ctx: click.Context, error: DomainError | ValueError) -> None:
    """Render a domain error and exit with failure."""
    if isinstance(error, CommandValidationError):
        click.echo("Error: Invalid import request", err=True)
        for message in error.errors:
            click.echo(f"  - {message}", err=True)
    else:
        click.echo(f"Error: {error}", err=True)
    ctx.exit(1)

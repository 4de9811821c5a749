"""db-open CLI: detect encryption and open databases, prompting for passwords."""

from __future__ import annotations

import json
from pathlib import Path

import click

from dbdesk_cli.shared import cipher
from dbdesk_cli.shared.cli import CLIContext, common_cli_options, handle_cli_errors, pass_cli_context
from dbdesk_cli.shared.exceptions import PasswordRequiredError
from dbdesk_cli.shared.models import Connection

OUTPUT_FORMAT_CHOICES = ("table", "json")


def _describe(connection: Connection) -> str:
    lines = [
        f"id:        {connection.id}",
        f"name:      {connection.name}",
        f"path:      {connection.path}",
        f"engine:    {connection.engine}",
        f"encrypted: {'yes' if connection.encrypted else 'no'}",
        f"read-only: {'yes' if connection.read_only else 'no'}",
    ]
    if connection.cipher is not None:
        lines.append(f"cipher:    {connection.cipher.label}")
    return "\n".join(lines)


@click.group(help="Open SQLite and PostgreSQL databases, including encrypted SQLite files.")
@common_cli_options()
@handle_cli_errors
def main(cli_ctx: CLIContext) -> None:
    """Primary Click group for db-open commands."""
    cli_ctx.logger.debug("db-open initialised.")


@main.command("detect")
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@pass_cli_context
@handle_cli_errors
def detect(cli_ctx: CLIContext, path: Path) -> None:
    """Report whether PATH looks like an encrypted SQLite file."""
    encrypted = cipher.detect_encrypted(path)
    cli_ctx.logger.debug(f"Header check for {path}: encrypted={encrypted}")
    click.echo("encrypted" if encrypted else "plain")


@main.command("open")
@click.argument("target", required=False)
@click.option("--prompt/--no-prompt", default=True, show_default=True, help="Ask for a password when needed.")
@click.option(
    "--format",
    "output_format",
    default="table",
    show_default=True,
    type=click.Choice(OUTPUT_FORMAT_CHOICES),
)
@pass_cli_context
@handle_cli_errors
def open_database(cli_ctx: CLIContext, target: str | None, prompt: bool, output_format: str) -> None:
    """Open TARGET (path or profile), verify it is readable and describe it."""
    try:
        connection = cli_ctx.open(target)
    except PasswordRequiredError:
        if not prompt:
            raise
        cli_ctx.logger.warning("The database appears to be encrypted.")
        cli_ctx.password = click.prompt("Password", hide_input=True)
        connection = cli_ctx.open(target)

    if output_format == "json":
        click.echo(json.dumps(connection.to_dict(), indent=2))
    else:
        click.echo(_describe(connection))
    cli_ctx.manager.close(connection.id)


@main.command("ciphers")
def ciphers() -> None:
    """List the cipher configurations tried for encrypted files, in order."""
    for position, config in enumerate(cipher.CIPHER_CONFIGS, start=1):
        click.echo(f"{position:2d}. {config.label}")


if __name__ == "__main__":  # pragma: no cover
    main()

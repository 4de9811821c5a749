"""db-schema CLI entrypoint."""

from __future__ import annotations

import click

from dbdesk_cli.shared.cli import CLIContext, common_cli_options, handle_cli_errors, pass_cli_context

from . import introspector, render

SCHEMA_FORMAT_CHOICES = ("table", "json")


@click.group(help="Inspect database structure.")
@common_cli_options(read_only=True)
@handle_cli_errors
def cli(cli_ctx: CLIContext) -> None:
    """Primary Click group for db-schema commands."""
    cli_ctx.logger.debug("db-schema group initialised in read-only mode.")


@cli.command("show")
@click.argument("target", required=False)
@click.option("--table", "table_name", type=str, help="Limit output to one table or view.")
@click.option("--schema", "schema_name", type=str, help="Schema containing --table.")
@click.option(
    "--format",
    "output_format",
    default="table",
    show_default=True,
    type=click.Choice(SCHEMA_FORMAT_CHOICES),
)
@pass_cli_context
@handle_cli_errors
def show(
    cli_ctx: CLIContext,
    target: str | None,
    table_name: str | None,
    schema_name: str | None,
    output_format: str,
) -> None:
    """Show schemas, tables, views, indexes and triggers.

    TARGET is a database path or profile name; defaults to --db/--profile.
    """
    connection = cli_ctx.open(target)
    cli_ctx.logger.debug(f"Introspecting {connection.name} via {connection.id}")
    if table_name:
        table = introspector.describe_table(cli_ctx.manager, connection.id, table_name, schema_name)
        render.render_table(table, output_format=output_format)
        return
    schemas = introspector.introspect(cli_ctx.manager, connection.id)
    render.render_schemas(schemas, output_format=output_format)


@cli.command("primary-key")
@click.argument("table_name")
@click.option("--target", type=str, help="Database path or profile name.")
@click.option("--schema", "schema_name", type=str, help="Schema containing the table.")
@pass_cli_context
@handle_cli_errors
def primary_key(cli_ctx: CLIContext, table_name: str, target: str | None, schema_name: str | None) -> None:
    """Print the primary key columns of TABLE_NAME, one per line."""
    connection = cli_ctx.open(target)
    columns = introspector.detect_primary_keys(cli_ctx.manager, connection.id, table_name, schema_name)
    if not columns:
        cli_ctx.logger.warning(f"Table '{table_name}' has no primary key.")
    for column in columns:
        click.echo(column)


main = cli


if __name__ == "__main__":  # pragma: no cover
    cli()

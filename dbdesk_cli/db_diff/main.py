"""db-diff CLI: compare table data across databases or row snapshots."""

from __future__ import annotations

import json
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import click

from dbdesk_cli.shared.cli import CLIContext, common_cli_options, handle_cli_errors, pass_cli_context
from dbdesk_cli.shared.exceptions import DiffError

from . import compare, engine, render, sync

OUTPUT_FORMAT_CHOICES = ("table", "json")


def _load_rows(path: Path) -> list[dict[str, Any]]:
    """Read a JSON snapshot: a list of row objects or ``{"rows": [...]}``."""
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise DiffError(f"Unable to read rows from '{path}': {exc}") from exc
    if isinstance(data, Mapping):
        data = data.get("rows")
    if not isinstance(data, list) or not all(isinstance(row, Mapping) for row in data):
        raise DiffError(f"'{path}' must contain a list of row objects.")
    return [dict(row) for row in data]


@click.group(help="Compare table data and generate sync SQL.")
@common_cli_options(read_only=True)
@handle_cli_errors
def cli(cli_ctx: CLIContext) -> None:
    """Primary Click group for db-diff commands."""
    cli_ctx.logger.debug("db-diff group initialised in read-only mode.")


@cli.command("tables")
@click.argument("source")
@click.argument("target")
@click.option("--table", "table_name", required=True, help="Table to compare on both sides.")
@click.option("--target-table", help="Table name on the target side when it differs.")
@click.option("--source-schema", help="Schema of the source table.")
@click.option("--target-schema", help="Schema of the target table.")
@click.option("--key", "keys", multiple=True, help="Key column (repeatable). Defaults to the primary key.")
@click.option("--page", type=int, default=1, show_default=True, help="Page of rows to compare.")
@click.option("--page-size", type=int, help="Rows per page (defaults to diff.page_size).")
@click.option("--all", "show_unchanged", is_flag=True, help="Include unchanged rows in table output.")
@click.option(
    "--format",
    "output_format",
    default="table",
    show_default=True,
    type=click.Choice(OUTPUT_FORMAT_CHOICES),
)
@click.option("--sql", "emit_sql", is_flag=True, help="Print SQL that makes TARGET match SOURCE.")
@click.option("--include-deletes/--no-include-deletes", default=None, help="Emit DELETEs for target-only rows.")
@pass_cli_context
@handle_cli_errors
def tables(
    cli_ctx: CLIContext,
    source: str,
    target: str,
    table_name: str,
    target_table: str | None,
    source_schema: str | None,
    target_schema: str | None,
    keys: tuple[str, ...],
    page: int,
    page_size: int | None,
    show_unchanged: bool,
    output_format: str,
    emit_sql: bool,
    include_deletes: bool | None,
) -> None:
    """Compare TABLE between SOURCE and TARGET (paths or profile names)."""
    source_conn = cli_ctx.open(source)
    target_conn = cli_ctx.open(target)
    comparison = compare.compare_table_data(
        cli_ctx.manager,
        source_conn.id,
        table_name,
        target_conn.id,
        target_table or table_name,
        primary_keys=keys,
        source_schema=source_schema,
        target_schema=target_schema,
        page=page,
        page_size=page_size or cli_ctx.config.diff.page_size,
    )

    if emit_sql:
        deletes = cli_ctx.config.diff.include_deletes if include_deletes is None else include_deletes
        script = sync.generate_sync_sql(comparison, include_deletes=deletes)
        if output_format == "json":
            click.echo(json.dumps(script.to_dict(), indent=2))
        else:
            render.render_sync_script(script)
        return

    render.render_diff(
        comparison.row_diffs,
        comparison.summary,
        output_format=output_format,
        show_unchanged=show_unchanged,
        payload=comparison.to_dict(),
    )


@cli.command("files")
@click.argument("source_path", metavar="SOURCE", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("target_path", metavar="TARGET", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--key", "keys", multiple=True, required=True, help="Key column (repeatable).")
@click.option("--all", "show_unchanged", is_flag=True, help="Include unchanged rows in table output.")
@click.option(
    "--format",
    "output_format",
    default="table",
    show_default=True,
    type=click.Choice(OUTPUT_FORMAT_CHOICES),
)
@pass_cli_context
@handle_cli_errors
def files(
    cli_ctx: CLIContext,
    source_path: Path,
    target_path: Path,
    keys: tuple[str, ...],
    show_unchanged: bool,
    output_format: str,
) -> None:
    """Diff two JSON row snapshots without opening any database."""
    source_rows = _load_rows(source_path)
    target_rows = _load_rows(target_path)
    diffs = engine.diff_rows(source_rows, target_rows, keys)
    summary = engine.summarize(diffs, len(source_rows), len(target_rows))
    cli_ctx.logger.debug(f"Compared {len(source_rows)} source and {len(target_rows)} target rows")
    render.render_diff(diffs, summary, output_format=output_format, show_unchanged=show_unchanged)


main = cli


if __name__ == "__main__":  # pragma: no cover
    cli()

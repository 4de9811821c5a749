"""db-edit CLI: validate and apply batches of row changes.

Default behaviour is dry-run (preview only). Use --apply to perform writes.
"""

from __future__ import annotations

import json
from pathlib import Path

import click

from dbdesk_cli.shared.cli import CLIContext, common_cli_options, handle_cli_errors, pass_cli_context

from . import changes as change_ops

OUTPUT_FORMAT_CHOICES = ("table", "json")


def _effective_dry_run(cli_ctx: CLIContext, apply: bool) -> bool:
    """Return True when we should avoid writes."""
    return cli_ctx.dry_run or (not apply)


@click.group(help="Validate and apply row changes to a database.")
@common_cli_options()
@handle_cli_errors
def main(cli_ctx: CLIContext) -> None:
    """Primary Click group for db-edit commands."""
    cli_ctx.logger.debug(f"db-edit initialised (read_only={cli_ctx.read_only}, dry_run={cli_ctx.dry_run})")


@main.command("validate")
@click.argument("changes_path", metavar="CHANGES", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--target", type=str, help="Database path or profile name (defaults to --db/--profile).")
@click.option(
    "--format",
    "output_format",
    default="table",
    show_default=True,
    type=click.Choice(OUTPUT_FORMAT_CHOICES),
)
@pass_cli_context
@handle_cli_errors
def validate(cli_ctx: CLIContext, changes_path: Path, target: str | None, output_format: str) -> None:
    """Check every change in CHANGES (JSON or YAML) without writing."""
    pending = change_ops.load_changes(changes_path)
    connection = cli_ctx.open(target)
    results = change_ops.validate_changes(cli_ctx.manager, connection.id, pending)

    if output_format == "json":
        click.echo(json.dumps([result.to_dict() for result in results], indent=2))
    else:
        for result in results:
            if result.is_valid:
                cli_ctx.logger.success(f"{result.change_id}: ok")
            else:
                cli_ctx.logger.error(f"{result.change_id}: {result.error}")

    invalid = sum(1 for result in results if not result.is_valid)
    if invalid:
        raise click.ClickException(f"{invalid} of {len(results)} change(s) failed validation.")


@main.command("apply")
@click.argument("changes_path", metavar="CHANGES", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--target", type=str, help="Database path or profile name (defaults to --db/--profile).")
@click.option("--apply", "apply_flag", is_flag=True, help="Perform writes (default is preview only).")
@pass_cli_context
@handle_cli_errors
def apply(cli_ctx: CLIContext, changes_path: Path, target: str | None, apply_flag: bool) -> None:
    """Apply every change in CHANGES as one transaction."""
    preview = _effective_dry_run(cli_ctx, apply_flag)
    pending = change_ops.load_changes(changes_path)
    connection = cli_ctx.open(target)

    results = change_ops.validate_changes(cli_ctx.manager, connection.id, pending)
    failures = [result for result in results if not result.is_valid]
    for result in failures:
        cli_ctx.logger.error(f"{result.change_id}: {result.error}")
    if failures:
        raise click.ClickException("Validation failed; no changes were applied.")

    if preview:
        for change in pending:
            sql, params = change_ops.build_statement(connection.adapter, change)
            cli_ctx.logger.info(f"[dry-run] {change.id}: {sql} {params}")
        cli_ctx.logger.info(f"[dry-run] {len(pending)} change(s) would be applied. Re-run with --apply.")
        return

    applied = change_ops.apply_changes(cli_ctx.manager, connection.id, pending)
    cli_ctx.logger.success(f"Applied {applied} change(s) to {connection.name}.")


if __name__ == "__main__":  # pragma: no cover
    main()

"""Output rendering helpers for db-diff."""

from __future__ import annotations

import json
import sys
from typing import Any, Sequence

from rich import box
from rich.console import Console
from rich.table import Table
from rich.text import Text

from dbdesk_cli.shared.models import DiffSummary, DiffType, RowDiff

from .sync import SyncScript

_STYLES = {
    DiffType.ADDED: "green",
    DiffType.REMOVED: "red",
    DiffType.MODIFIED: "yellow",
    DiffType.UNCHANGED: "dim",
}


def _format_key(primary_key: dict[str, Any] | Any) -> str:
    return ", ".join(f"{column}={value!r}" for column, value in dict(primary_key).items())


def render_diff(
    diffs: Sequence[RowDiff],
    summary: DiffSummary,
    *,
    output_format: str,
    show_unchanged: bool = False,
    payload: dict[str, Any] | None = None,
    stream=None,
) -> None:
    """Render row diffs and their summary."""
    output_stream = stream or sys.stdout
    if (output_format or "table").lower() == "json":
        body = payload or {
            "rowDiffs": [diff.to_dict() for diff in diffs],
            "summary": summary.to_dict(),
        }
        json.dump(body, output_stream, indent=2, default=str)
        output_stream.write("\n")
        return

    console = Console(file=output_stream, highlight=False, force_terminal=False)
    table = Table(box=box.SIMPLE, show_header=True, header_style="bold")
    table.add_column("Change")
    table.add_column("Key")
    table.add_column("Details")
    for diff in diffs:
        if diff.diff_type is DiffType.UNCHANGED and not show_unchanged:
            continue
        if diff.diff_type is DiffType.MODIFIED:
            details = "; ".join(
                f"{change.column_name}: {change.source_value!r} -> {change.target_value!r}"
                for change in diff.column_changes
            )
        else:
            details = ""
        table.add_row(
            diff.diff_type.value,
            Text(_format_key(diff.primary_key)),
            Text(details),
            style=_STYLES[diff.diff_type],
        )
    console.print(table)
    console.print(
        f"source={summary.source_rows} target={summary.target_rows} "
        f"added={summary.added} removed={summary.removed} "
        f"modified={summary.modified} unchanged={summary.unchanged}"
    )


def render_sync_script(script: SyncScript, *, stream=None) -> None:
    output_stream = stream or sys.stdout
    for warning in script.warnings:
        output_stream.write(f"-- WARNING: {warning}\n")
    if script.sql:
        output_stream.write(script.sql + "\n")

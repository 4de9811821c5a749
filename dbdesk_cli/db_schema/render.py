"""Output rendering helpers for db-schema."""

from __future__ import annotations

import json
import sys
from typing import Sequence

from rich import box
from rich.console import Console
from rich.table import Table
from rich.text import Text

from dbdesk_cli.shared.models import SchemaInfo, TableInfo


def render_schemas(schemas: Sequence[SchemaInfo], *, output_format: str, stream=None) -> None:
    """Render an introspection result as Rich tables or JSON."""
    output_stream = stream or sys.stdout
    fmt = (output_format or "table").lower()

    if fmt == "json":
        json.dump([schema.to_dict() for schema in schemas], output_stream, indent=2, default=str)
        output_stream.write("\n")
        return
    if fmt != "table":  # pragma: no cover - Click validation should prevent this
        raise ValueError(f"Unsupported output format '{output_format}'.")

    console = Console(file=output_stream, highlight=False, force_terminal=False)
    for schema in schemas:
        console.print(f"[bold underline]schema {schema.name}[/bold underline]")
        if not schema.tables and not schema.views:
            console.print("(empty)\n")
        for relation in (*schema.tables, *schema.views):
            _render_relation(console, relation)


def render_table(table: TableInfo, *, output_format: str, stream=None) -> None:
    output_stream = stream or sys.stdout
    if (output_format or "table").lower() == "json":
        json.dump(table.to_dict(), output_stream, indent=2, default=str)
        output_stream.write("\n")
        return
    _render_relation(Console(file=output_stream, highlight=False, force_terminal=False), table)


def _render_relation(console: Console, relation: TableInfo) -> None:
    label = "view" if relation.kind == "view" else "table"
    console.print(f"[bold]{relation.name}[/bold] ({label})")

    column_table = Table(box=box.SIMPLE, show_header=True, header_style="bold")
    column_table.add_column("Column")
    column_table.add_column("Type")
    column_table.add_column("Nullable")
    column_table.add_column("Default")
    column_table.add_column("PK")
    for column in relation.columns:
        column_table.add_row(
            column.name,
            column.type,
            "yes" if column.nullable else "no",
            Text("" if column.default_value is None else str(column.default_value)),
            "✅" if column.is_primary_key else "",
        )
    console.print(column_table)

    if relation.foreign_keys:
        fk_table = Table(box=box.SIMPLE, show_header=True, header_style="bold")
        fk_table.add_column("From")
        fk_table.add_column("References")
        fk_table.add_column("On Delete")
        fk_table.add_column("On Update")
        for fk in relation.foreign_keys:
            target = f"{fk.referenced_table}.{fk.referenced_column}" if fk.referenced_column else fk.referenced_table
            fk_table.add_row(fk.column, target, fk.on_delete, fk.on_update)
        console.print(fk_table)

    if relation.indexes:
        idx_table = Table(box=box.SIMPLE, show_header=True, header_style="bold")
        idx_table.add_column("Index")
        idx_table.add_column("Columns")
        idx_table.add_column("Unique")
        for index in relation.indexes:
            idx_table.add_row(index.name, ", ".join(index.columns), "✅" if index.is_unique else "")
        console.print(idx_table)

    if relation.triggers:
        trg_table = Table(box=box.SIMPLE, show_header=True, header_style="bold")
        trg_table.add_column("Trigger")
        trg_table.add_column("Timing")
        trg_table.add_column("Event")
        for trigger in relation.triggers:
            trg_table.add_row(trigger.name, trigger.timing, trigger.event)
        console.print(trg_table)

    if relation.row_count is not None:
        console.print(f"{relation.row_count} rows\n")

"""Generate SQL that makes a compared target table match its source."""

from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from dbdesk_cli.shared.models import DiffType, RowDiff, TableComparison

from . import engine

DEFAULT_SCHEMAS = ("main", "public")


@dataclass(frozen=True, slots=True)
class SyncScript:
    statements: tuple[str, ...]
    warnings: tuple[str, ...] = field(default_factory=tuple)

    @property
    def sql(self) -> str:
        if not self.statements:
            return ""
        return ";\n\n".join(self.statements) + ";"

    def to_dict(self) -> dict[str, Any]:
        return {"sql": self.sql, "statements": list(self.statements), "warnings": list(self.warnings)}


def quote_identifier(name: str) -> str:
    escaped = name.replace('"', '""')
    return f'"{escaped}"'


def format_value(value: Any) -> str:
    """Render a Python value as a SQL literal."""
    if value is None:
        return "NULL"
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, (int, float)):
        return repr(value)
    if isinstance(value, (bytes, bytearray, memoryview)):
        return f"X'{bytes(value).hex()}'"
    if isinstance(value, (Mapping, list, tuple)):
        text = json.dumps(value, sort_keys=True, default=str)
    else:
        text = str(value)
    return "'" + text.replace("'", "''") + "'"


def _table_name(table: str, schema: str) -> str:
    if schema and schema not in DEFAULT_SCHEMAS:
        return f"{quote_identifier(schema)}.{quote_identifier(table)}"
    return quote_identifier(table)


def _where(primary_key: Mapping[str, Any], key_columns: Sequence[str]) -> str:
    clauses = []
    for column in key_columns:
        value = primary_key.get(column)
        if value is None:
            clauses.append(f"{quote_identifier(column)} IS NULL")
        else:
            clauses.append(f"{quote_identifier(column)} = {format_value(value)}")
    return " AND ".join(clauses)


def _select(
    diffs: Sequence[RowDiff],
    selected_keys: Sequence[Mapping[str, Any]],
    key_columns: Sequence[str],
) -> list[RowDiff]:
    if not selected_keys:
        return list(diffs)
    wanted = {engine.row_key(key, key_columns) for key in selected_keys}
    return [diff for diff in diffs if engine.row_key(diff.primary_key, key_columns) in wanted]


def generate_sync_sql(
    comparison: TableComparison,
    selected_keys: Sequence[Mapping[str, Any]] = (),
    include_inserts: bool = True,
    include_updates: bool = True,
    include_deletes: bool = False,
) -> SyncScript:
    """Build DELETE, then UPDATE, then INSERT statements against the target table.

    Rows only in the target are deleted (opt-in), modified rows take the
    source values and rows only in the source are inserted. ``selected_keys``
    restricts the script to rows with those key values.
    """
    keys = comparison.primary_keys
    table = _table_name(comparison.target_table, comparison.target_schema)
    rows = _select(comparison.row_diffs, selected_keys, keys)
    statements: list[str] = []
    warnings: list[str] = []

    if include_deletes:
        deletions = [diff for diff in rows if diff.diff_type is DiffType.ADDED]
        for diff in deletions:
            statements.append(f"DELETE FROM {table} WHERE {_where(diff.primary_key, keys)}")
        if deletions:
            warnings.append(
                f"{len(deletions)} row(s) will be deleted from the target table. "
                "This cannot be undone; back up the data before running the script."
            )

    if include_updates:
        for diff in rows:
            if diff.diff_type is not DiffType.MODIFIED or diff.source_row is None:
                continue
            assignments = [
                f"{quote_identifier(change.column_name)} = {format_value(change.source_value)}"
                for change in diff.column_changes
                if change.column_name in diff.source_row
            ]
            if not assignments:
                continue
            statements.append(
                f"UPDATE {table} SET {', '.join(assignments)} WHERE {_where(diff.primary_key, keys)}"
            )

    if include_inserts:
        for diff in rows:
            if diff.diff_type is not DiffType.REMOVED or diff.source_row is None:
                continue
            columns = list(diff.source_row.keys())
            statements.append(
                f"INSERT INTO {table} ({', '.join(quote_identifier(column) for column in columns)}) "
                f"VALUES ({', '.join(format_value(diff.source_row[column]) for column in columns)})"
            )

    if not statements:
        warnings.append("No SQL statements generated. Check the selection and include options.")
    return SyncScript(statements=tuple(statements), warnings=tuple(warnings))

"""Validation and atomic application of pending row changes."""

from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any

import yaml

from dbdesk_cli.engines import EngineAdapter
from dbdesk_cli.shared.connections import ConnectionManager, ensure_writable
from dbdesk_cli.shared.errors import enhance_error
from dbdesk_cli.shared.exceptions import ChangeApplyError, DatabaseError, ErrorCode
from dbdesk_cli.shared.models import ChangeType, PendingChange, ValidationResult


def load_changes(path: str | Path) -> list[PendingChange]:
    """Read pending changes from a JSON or YAML file.

    The document is either a list of changes or a mapping with a ``changes`` list.
    """
    file_path = Path(path)
    try:
        content = file_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise DatabaseError(f"Unable to read change file '{path}': {exc}", code=ErrorCode.FILE_NOT_FOUND) from exc
    try:
        if file_path.suffix.lower() == ".json":
            data = json.loads(content)
        else:
            data = yaml.safe_load(content)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise DatabaseError(f"Change file '{path}' could not be parsed: {exc}") from exc

    if isinstance(data, Mapping):
        data = data.get("changes")
    if not isinstance(data, list):
        raise DatabaseError(f"Change file '{path}' must contain a list of changes.")
    changes: list[PendingChange] = []
    for index, entry in enumerate(data, start=1):
        if not isinstance(entry, Mapping):
            raise DatabaseError(f"Change #{index} in '{path}' must be a mapping.")
        try:
            changes.append(PendingChange.from_mapping(entry))
        except ValueError as exc:
            raise DatabaseError(f"Change #{index} in '{path}' is invalid: {exc}") from exc
    return changes


def validate_changes(
    manager: ConnectionManager,
    connection_id: str,
    changes: Sequence[PendingChange],
) -> list[ValidationResult]:
    """Check each change independently against table existence and NOT NULL columns."""
    connection = manager.require(connection_id)
    adapter, handle = connection.adapter, connection.handle
    results: list[ValidationResult] = []
    for change in changes:
        try:
            error = _validation_error(adapter, handle, change)
        except adapter.error_types(handle) as exc:
            error = str(exc)
        results.append(ValidationResult(change_id=change.id, is_valid=error is None, error=error))
    return results


def _validation_error(adapter: EngineAdapter, handle: Any, change: PendingChange) -> str | None:
    schema = change.schema or adapter.default_schema
    if not adapter.table_exists(handle, change.table, schema):
        return f"Table '{change.table}' does not exist in schema '{schema}'."
    if change.type is ChangeType.DELETE:
        return None

    columns = adapter.fetch_columns(handle, change.table, schema)
    new_values = change.new_values or {}
    missing: list[str] = []
    for column in columns:
        if column.nullable or column.is_primary_key:
            continue
        if column.name in new_values:
            if new_values[column.name] is None:
                missing.append(column.name)
        elif change.type is ChangeType.INSERT and column.default_value is None:
            missing.append(column.name)
    if missing:
        return f"Required column(s) missing or null: {', '.join(missing)}"
    return None


def apply_changes(
    manager: ConnectionManager,
    connection_id: str,
    changes: Sequence[PendingChange],
) -> int:
    """Apply ``changes`` in order inside one transaction and return how many ran.

    Any failure rolls back the whole batch and raises :class:`ChangeApplyError`
    naming the change that failed.
    """
    connection = manager.require(connection_id)
    ensure_writable(connection)
    adapter, handle = connection.adapter, connection.handle

    current: PendingChange | None = None
    try:
        adapter.begin(handle)
        for current in changes:
            sql, params = build_statement(adapter, current)
            adapter.execute(handle, sql, params)
        adapter.commit(handle)
    except adapter.error_types(handle) as exc:
        adapter.rollback(handle)
        change_id = current.id if current is not None else None
        enhanced = enhance_error(str(exc))
        raise enhanced.to_exception(
            ChangeApplyError, change_id=change_id
        ) from exc
    except DatabaseError as exc:
        adapter.rollback(handle)
        raise ChangeApplyError(
            exc.message,
            code=exc.code,
            suggestions=exc.suggestions,
            change_id=current.id if current is not None else None,
        ) from exc
    manager.logger.debug(f"Applied {len(changes)} change(s) on {connection_id}")
    return len(changes)


def build_statement(adapter: EngineAdapter, change: PendingChange) -> tuple[str, list[Any]]:
    """Render one change as a parameterised SQL statement."""
    target = adapter.qualify(change.table, change.schema)

    if change.type is ChangeType.INSERT:
        values = dict(change.new_values or {})
        if not values:
            return f"INSERT INTO {target} DEFAULT VALUES", []
        columns = ", ".join(adapter.quote(name) for name in values)
        return (
            f"INSERT INTO {target} ({columns}) VALUES ({adapter.placeholders(len(values))})",
            list(values.values()),
        )

    if change.primary_key_column:
        key_column = adapter.quote(change.primary_key_column)
    elif adapter.physical_row_id:
        # Row id pseudo-columns are left unquoted.
        key_column = adapter.physical_row_id
    else:
        raise DatabaseError(
            f"Change '{change.id}' has no primary key column and {adapter.engine} has no row id fallback.",
            code=ErrorCode.SQL_CONSTRAINT_ERROR,
        )
    where = f"{key_column} = {adapter.placeholder}"

    if change.type is ChangeType.UPDATE:
        values = dict(change.new_values or {})
        if not values:
            raise DatabaseError(f"Update change '{change.id}' has no values to set.")
        assignments = ", ".join(f"{adapter.quote(name)} = {adapter.placeholder}" for name in values)
        return f"UPDATE {target} SET {assignments} WHERE {where}", [*values.values(), change.row_id]

    return f"DELETE FROM {target} WHERE {where}", [change.row_id]

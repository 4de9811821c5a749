"""Schema introspection for open connections."""

from __future__ import annotations

from typing import Any

from dbdesk_cli.engines import EngineAdapter
from dbdesk_cli.shared.connections import ConnectionManager
from dbdesk_cli.shared.errors import enhance_error
from dbdesk_cli.shared.exceptions import DbDeskError, IntrospectionError
from dbdesk_cli.shared.models import SchemaInfo, TableInfo


def introspect(manager: ConnectionManager, connection_id: str) -> list[SchemaInfo]:
    """Return a structural snapshot of every schema visible to the connection.

    Empty schemas are dropped except the engine's default one. A failure at any
    point aborts the whole call with a single :class:`IntrospectionError`.
    """
    connection = manager.require(connection_id)
    adapter, handle = connection.adapter, connection.handle
    try:
        schemas: list[SchemaInfo] = []
        for schema in adapter.list_schemas(handle):
            tables = tuple(
                _describe(adapter, handle, name, schema, "table", sql)
                for name, sql in adapter.list_relations(handle, schema, "table")
            )
            views = tuple(
                _describe(adapter, handle, name, schema, "view", sql)
                for name, sql in adapter.list_relations(handle, schema, "view")
            )
            if not tables and not views and schema != adapter.default_schema:
                continue
            schemas.append(SchemaInfo(name=schema, tables=tables, views=views))
    except adapter.error_types(handle) as exc:
        raise _introspection_error(str(exc)) from exc
    return schemas


def describe_table(
    manager: ConnectionManager,
    connection_id: str,
    table: str,
    schema: str | None = None,
) -> TableInfo:
    """Describe one table or view by name."""
    connection = manager.require(connection_id)
    adapter, handle = connection.adapter, connection.handle
    schema_name = schema or adapter.default_schema
    try:
        for kind in ("table", "view"):
            for name, sql in adapter.list_relations(handle, schema_name, kind):
                if name == table:
                    return _describe(adapter, handle, name, schema_name, kind, sql)
    except adapter.error_types(handle) as exc:
        raise _introspection_error(str(exc)) from exc
    raise IntrospectionError(f"Table '{table}' does not exist in schema '{schema_name}'.")


def detect_primary_keys(
    manager: ConnectionManager,
    connection_id: str,
    table: str,
    schema: str | None = None,
) -> tuple[str, ...]:
    """Primary key columns of ``table`` in declared order."""
    connection = manager.require(connection_id)
    adapter, handle = connection.adapter, connection.handle
    try:
        columns = adapter.fetch_columns(handle, table, schema or adapter.default_schema)
    except adapter.error_types(handle) as exc:
        raise _introspection_error(str(exc)) from exc
    return tuple(column.name for column in columns if column.is_primary_key)


def _describe(
    adapter: EngineAdapter,
    handle: Any,
    name: str,
    schema: str,
    kind: str,
    sql: str,
) -> TableInfo:
    is_table = kind == "table"
    return TableInfo(
        name=name,
        schema=schema,
        kind=kind,
        columns=tuple(adapter.fetch_columns(handle, name, schema)),
        foreign_keys=tuple(adapter.fetch_foreign_keys(handle, name, schema)) if is_table else (),
        indexes=tuple(adapter.fetch_indexes(handle, name, schema)) if is_table else (),
        triggers=tuple(adapter.fetch_triggers(handle, name, schema)),
        row_count=adapter.count_rows(handle, name, schema) if is_table else None,
        sql=sql,
    )


def _introspection_error(message: str) -> DbDeskError:
    enhanced = enhance_error(message)
    return enhanced.to_exception(IntrospectionError)

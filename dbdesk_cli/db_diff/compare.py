"""Compare the data of two tables that may live on different connections."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime, timezone

from dbdesk_cli.shared.connections import ConnectionManager
from dbdesk_cli.shared.errors import enhance_error
from dbdesk_cli.shared.exceptions import DatabaseError, DiffError
from dbdesk_cli.shared.models import Connection, Row, TableComparison

from . import engine

DEFAULT_PAGE_SIZE = 10000


def _read_rows(
    connection: Connection,
    table: str,
    schema: str,
    *,
    page: int,
    page_size: int,
    order_by: Sequence[str],
) -> list[dict]:
    adapter, handle = connection.adapter, connection.handle
    try:
        if not adapter.table_exists(handle, table, schema):
            raise DiffError(f"Table '{schema}.{table}' does not exist on {connection.name}.")
        return adapter.fetch_rows(
            handle, table, schema, limit=page_size, offset=(page - 1) * page_size, order_by=order_by
        )
    except adapter.error_types(handle) as exc:
        raise enhance_error(str(exc)).to_exception(DatabaseError) from exc


def _primary_key(connection: Connection, table: str, schema: str) -> tuple[str, ...]:
    adapter, handle = connection.adapter, connection.handle
    try:
        columns = adapter.fetch_columns(handle, table, schema)
    except adapter.error_types(handle) as exc:
        raise enhance_error(str(exc)).to_exception(DatabaseError) from exc
    return tuple(column.name for column in columns if column.is_primary_key)


def compare_table_data(
    manager: ConnectionManager,
    source_id: str,
    source_table: str,
    target_id: str,
    target_table: str,
    primary_keys: Sequence[str] = (),
    source_schema: str | None = None,
    target_schema: str | None = None,
    page: int = 1,
    page_size: int | None = None,
) -> TableComparison:
    """Diff one page of rows from each side, keyed by ``primary_keys``.

    When no keys are given the source table's primary key is used. Each side is
    read independently; the result is not a consistent snapshot across both.
    """
    if page < 1:
        raise DiffError("page must be 1 or greater.")
    size = page_size or DEFAULT_PAGE_SIZE
    if size <= 0:
        raise DiffError("page_size must be a positive integer.")

    source = manager.require(source_id)
    target = manager.require(target_id)
    src_schema = source_schema or source.adapter.default_schema
    tgt_schema = target_schema or target.adapter.default_schema

    keys = tuple(primary_keys) or _primary_key(source, source_table, src_schema)
    if not keys:
        raise DiffError(
            f"Table '{source_table}' has no primary key. Pass key columns to compare rows."
        )

    source_rows: list[Row] = _read_rows(
        source, source_table, src_schema, page=page, page_size=size, order_by=keys
    )
    target_rows: list[Row] = _read_rows(
        target, target_table, tgt_schema, page=page, page_size=size, order_by=keys
    )

    diffs = engine.diff_rows(source_rows, target_rows, keys)
    return TableComparison(
        source_id=source.id,
        source_name=source.name,
        source_table=source_table,
        source_schema=src_schema,
        target_id=target.id,
        target_name=target.name,
        target_table=target_table,
        target_schema=tgt_schema,
        compared_at=datetime.now(timezone.utc).isoformat(),
        primary_keys=keys,
        row_diffs=diffs,
        summary=engine.summarize(diffs, len(source_rows), len(target_rows)),
    )

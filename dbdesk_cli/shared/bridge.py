"""Request/response boundary for callers that speak plain dictionaries.

Every method returns ``{"success": True, ...}`` or a failure payload carrying
the error text and code; no exception escapes.
"""

from __future__ import annotations

import functools
from collections.abc import Mapping, Sequence
from typing import Any, Callable

from dbdesk_cli.db_diff import compare, engine, sync
from dbdesk_cli.db_edit import changes as change_ops
from dbdesk_cli.db_schema import introspector

from .connections import ConnectionManager
from .errors import enhance_error
from .exceptions import DatabaseError, DbDeskError, ErrorCode
from .logging import Logger, get_logger
from .models import ConnectionConfig, PendingChange, TableComparison


def failure_payload(exc: Exception) -> dict[str, Any]:
    """Translate an exception into the wire failure shape."""
    if isinstance(exc, DatabaseError):
        payload: dict[str, Any] = {
            "success": False,
            "error": exc.message,
            "errorCode": exc.code.value,
        }
        if getattr(exc, "needs_password", False):
            payload["needsPassword"] = True
        if exc.suggestions:
            payload["suggestions"] = list(exc.suggestions)
        if exc.troubleshooting_steps:
            payload["troubleshootingSteps"] = list(exc.troubleshooting_steps)
        if exc.documentation_url:
            payload["documentationUrl"] = exc.documentation_url
        return payload
    if isinstance(exc, DbDeskError):
        return {"success": False, "error": str(exc), "errorCode": ErrorCode.UNKNOWN_ERROR.value}
    enhanced = enhance_error(str(exc))
    return failure_payload(enhanced.to_exception())


def _responds(func: Callable[..., dict[str, Any]]) -> Callable[..., dict[str, Any]]:
    @functools.wraps(func)
    def wrapper(self: DatabaseBridge, *args: Any, **kwargs: Any) -> dict[str, Any]:
        try:
            result = func(self, *args, **kwargs)
        except Exception as exc:  # noqa: BLE001
            self.logger.debug(f"{func.__name__} failed: {exc}")
            return failure_payload(exc)
        return {"success": True, **result}

    return wrapper


class DatabaseBridge:
    """Dictionary-in, dictionary-out facade over a :class:`ConnectionManager`."""

    def __init__(self, manager: ConnectionManager | None = None, logger: Logger | None = None) -> None:
        self.logger = logger or (manager.logger if manager else get_logger())
        self.manager = manager or ConnectionManager(logger=self.logger)

    @_responds
    def open(self, request: Mapping[str, Any]) -> dict[str, Any]:
        config = request.get("config") or {}
        if not config and not request.get("path"):
            raise DatabaseError("Database path is required", code=ErrorCode.CONNECTION_ERROR)
        connection = self.manager.open(
            ConnectionConfig(
                type=str(config.get("type", "sqlite")),
                path=config.get("path", request.get("path")),
                name=config.get("name"),
                password=config.get("password", request.get("password")),
                read_only=bool(config.get("readOnly", request.get("readOnly", False))),
                host=config.get("host"),
                port=config.get("port"),
                database=config.get("database"),
                username=config.get("username"),
                ssl=bool(config.get("ssl", False)),
            )
        )
        return {"connection": connection.to_dict()}

    @_responds
    def close(self, connection_id: str) -> dict[str, Any]:
        self.manager.close(connection_id)
        return {}

    @_responds
    def list_connections(self) -> dict[str, Any]:
        return {"connections": [connection.to_dict() for connection in self.manager.list()]}

    @_responds
    def get_schema(self, connection_id: str) -> dict[str, Any]:
        schemas = introspector.introspect(self.manager, connection_id)
        return {"schemas": [schema.to_dict() for schema in schemas]}

    @_responds
    def get_table_data(
        self,
        connection_id: str,
        table: str,
        page: int = 1,
        page_size: int = 100,
        schema: str | None = None,
    ) -> dict[str, Any]:
        connection = self.manager.require(connection_id)
        adapter, handle = connection.adapter, connection.handle
        target_schema = schema or adapter.default_schema
        try:
            rows = adapter.fetch_rows(
                handle, table, target_schema, limit=page_size, offset=(max(page, 1) - 1) * page_size
            )
            total = adapter.count_rows(handle, table, target_schema)
        except adapter.error_types(handle) as exc:
            raise enhance_error(str(exc)).to_exception() from exc
        columns = list(rows[0].keys()) if rows else []
        return {"columns": columns, "rows": rows, "totalRows": total, "page": page, "pageSize": page_size}

    @_responds
    def validate_changes(self, connection_id: str, changes: Sequence[Mapping[str, Any]]) -> dict[str, Any]:
        pending = [PendingChange.from_mapping(change) for change in changes]
        results = change_ops.validate_changes(self.manager, connection_id, pending)
        return {"results": [result.to_dict() for result in results]}

    @_responds
    def apply_changes(self, connection_id: str, changes: Sequence[Mapping[str, Any]]) -> dict[str, Any]:
        pending = [PendingChange.from_mapping(change) for change in changes]
        applied = change_ops.apply_changes(self.manager, connection_id, pending)
        return {"appliedCount": applied}

    @_responds
    def diff_rows(
        self,
        source_rows: Sequence[Mapping[str, Any]],
        target_rows: Sequence[Mapping[str, Any]],
        key_columns: Sequence[str],
    ) -> dict[str, Any]:
        diffs = engine.diff_rows(source_rows, target_rows, key_columns)
        summary = engine.summarize(diffs, len(source_rows), len(target_rows))
        return {"rowDiffs": [diff.to_dict() for diff in diffs], "summary": summary.to_dict()}

    @_responds
    def compare_table_data(self, request: Mapping[str, Any]) -> dict[str, Any]:
        comparison = self._compare(request)
        return {"result": comparison.to_dict()}

    @_responds
    def generate_sync_sql(self, request: Mapping[str, Any]) -> dict[str, Any]:
        comparison = self._compare(request)
        script = sync.generate_sync_sql(
            comparison,
            selected_keys=request.get("selectedRows") or (),
            include_inserts=bool(request.get("includeInserts", True)),
            include_updates=bool(request.get("includeUpdates", True)),
            include_deletes=bool(request.get("includeDeletes", False)),
        )
        return script.to_dict()

    def _compare(self, request: Mapping[str, Any]) -> TableComparison:
        try:
            source_id = request["sourceConnectionId"]
            target_id = request["targetConnectionId"]
            source_table = request["sourceTable"]
        except KeyError as exc:
            raise DatabaseError(f"Missing required field {exc}") from exc
        return compare.compare_table_data(
            self.manager,
            source_id,
            source_table,
            target_id,
            request.get("targetTable") or source_table,
            primary_keys=request.get("primaryKeys") or (),
            source_schema=request.get("sourceSchema"),
            target_schema=request.get("targetSchema"),
            page=int(request.get("page", 1)),
            page_size=request.get("pageSize"),
        )

"""Engine adapter interface shared by every supported database engine.

An adapter is chosen once when a connection is opened and stored on the
:class:`~dbdesk_cli.shared.models.Connection`; callers never probe a handle for
optional methods. Adapters are stateless apart from the logger: every method
receives the raw driver handle owned by the connection manager.
"""

from __future__ import annotations

import re
import time
from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import Any

from dbdesk_cli.shared.logging import Logger, get_logger
from dbdesk_cli.shared.models import ColumnInfo, ConnectionConfig, ForeignKeyInfo, IndexInfo, TriggerInfo

TRIGGER_TIMINGS = ("BEFORE", "AFTER", "INSTEAD OF")
TRIGGER_EVENTS = ("INSERT", "UPDATE", "DELETE")

_TIMED_EVENT = re.compile(r"\b(BEFORE|AFTER|INSTEAD\s+OF)\s+(INSERT|UPDATE|DELETE)\b")
_TIMING = re.compile(r"\b(BEFORE|AFTER|INSTEAD\s+OF)\b")
_UNTIMED_EVENT = re.compile(
    r"\bTRIGGER\s+(?:IF\s+NOT\s+EXISTS\s+)?(?:\"[^\"]+\"|\S+)\s+(INSERT|UPDATE|DELETE)\b"
)


def classify_trigger(sql: str) -> tuple[str, str]:
    """Return ``(timing, event)`` parsed from a CREATE TRIGGER statement.

    Timing defaults to BEFORE when the statement names none. The event is the
    first INSERT/UPDATE/DELETE keyword directly after the timing keyword, or
    directly after the trigger name when the timing is omitted.
    """
    upper = " ".join((sql or "").upper().split())
    match = _TIMED_EVENT.search(upper)
    if match:
        timing = " ".join(match.group(1).split())
        return timing, match.group(2)

    timing_match = _TIMING.search(upper)
    timing = " ".join(timing_match.group(1).split()) if timing_match else "BEFORE"
    event_match = _UNTIMED_EVENT.search(upper)
    return timing, event_match.group(1) if event_match else "INSERT"


def rows_as_dicts(cursor: Any) -> list[dict[str, Any]]:
    """Materialise a DB-API cursor result as column-name keyed dicts."""
    description = cursor.description or ()
    names = [column[0] for column in description]
    return [dict(zip(names, row)) for row in cursor.fetchall()]


class EngineAdapter(ABC):
    """Capability interface for one database engine."""

    engine: str = ""
    default_schema: str = ""
    # Column used to address rows when no primary key column is supplied.
    physical_row_id: str | None = None
    placeholder: str = "?"
    # File-based engines are opened through the cipher resolver.
    file_based: bool = False

    def __init__(self, logger: Logger | None = None) -> None:
        self.logger = logger or get_logger()

    # ----- identifiers ---------------------------------------------------------------------

    def quote(self, identifier: str) -> str:
        escaped = str(identifier).replace('"', '""')
        return f'"{escaped}"'

    def qualify(self, table: str, schema: str | None = None) -> str:
        if schema:
            return f"{self.quote(schema)}.{self.quote(table)}"
        return self.quote(table)

    def placeholders(self, count: int) -> str:
        return ", ".join([self.placeholder] * count)

    # ----- execution -----------------------------------------------------------------------

    def run(self, handle: Any, sql: str, params: Sequence[Any] = ()) -> Any:
        """Execute ``sql`` on a fresh cursor, logging timing and outcome."""
        started = time.perf_counter()
        cursor = handle.cursor()
        try:
            if params:
                cursor.execute(sql, tuple(params))
            else:
                cursor.execute(sql)
        except self.error_types(handle) as exc:
            self.logger.sql(
                self.engine,
                sql,
                duration_ms=(time.perf_counter() - started) * 1000,
                success=False,
                error=str(exc),
            )
            raise
        self.logger.sql(
            self.engine,
            sql,
            duration_ms=(time.perf_counter() - started) * 1000,
            success=True,
            row_count=cursor.rowcount if cursor.rowcount >= 0 else None,
        )
        return cursor

    def query(self, handle: Any, sql: str, params: Sequence[Any] = ()) -> list[dict[str, Any]]:
        return rows_as_dicts(self.run(handle, sql, params))

    def execute(self, handle: Any, sql: str, params: Sequence[Any] = ()) -> int:
        """Run a data-modifying statement and return the affected row count."""
        return self.run(handle, sql, params).rowcount

    def fetch_rows(
        self,
        handle: Any,
        table: str,
        schema: str | None = None,
        *,
        limit: int,
        offset: int = 0,
        order_by: Sequence[str] = (),
    ) -> list[dict[str, Any]]:
        order = f" ORDER BY {', '.join(self.quote(column) for column in order_by)}" if order_by else ""
        sql = (
            f"SELECT * FROM {self.qualify(table, schema)}{order} "
            f"LIMIT {self.placeholder} OFFSET {self.placeholder}"
        )
        return self.query(handle, sql, (limit, offset))

    def count_rows(self, handle: Any, table: str, schema: str | None = None) -> int:
        cursor = self.run(handle, f"SELECT COUNT(*) FROM {self.qualify(table, schema)}")
        return int(cursor.fetchone()[0])

    def begin(self, handle: Any) -> None:
        self.run(handle, "BEGIN")

    def commit(self, handle: Any) -> None:
        handle.commit()

    def rollback(self, handle: Any) -> None:
        handle.rollback()

    # ----- engine specific -----------------------------------------------------------------

    def connect(self, config: ConnectionConfig) -> Any:
        raise NotImplementedError(f"{self.engine} databases are opened from files, not servers.")

    def close(self, handle: Any) -> None:
        handle.close()

    def is_internal_index(self, name: str) -> bool:
        return False

    @abstractmethod
    def error_types(self, handle: Any) -> tuple[type[BaseException], ...]:
        """Exception classes the driver raises for this handle."""

    @abstractmethod
    def list_schemas(self, handle: Any) -> list[str]:
        """Names of every attached schema, default schema first."""

    @abstractmethod
    def list_relations(self, handle: Any, schema: str, kind: str) -> list[tuple[str, str]]:
        """``(name, definition_sql)`` of tables (kind='table') or views, ordered by name."""

    @abstractmethod
    def table_exists(self, handle: Any, table: str, schema: str) -> bool:
        ...

    @abstractmethod
    def fetch_columns(self, handle: Any, table: str, schema: str) -> list[ColumnInfo]:
        ...

    @abstractmethod
    def fetch_foreign_keys(self, handle: Any, table: str, schema: str) -> list[ForeignKeyInfo]:
        ...

    @abstractmethod
    def fetch_indexes(self, handle: Any, table: str, schema: str) -> list[IndexInfo]:
        ...

    @abstractmethod
    def fetch_triggers(self, handle: Any, table: str, schema: str) -> list[TriggerInfo]:
        ...

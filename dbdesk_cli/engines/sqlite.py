"""SQLite adapter built on PRAGMA introspection.

Handles may come from the standard ``sqlite3`` module or from a SQLCipher-style
driver; both expose the DB-API surface used here.
"""

from __future__ import annotations

import sqlite3
from typing import Any

from dbdesk_cli.shared.models import ColumnInfo, ForeignKeyInfo, IndexInfo, TriggerInfo

from .base import EngineAdapter, classify_trigger

INTERNAL_PREFIX = "sqlite_"


class SQLiteAdapter(EngineAdapter):
    engine = "sqlite"
    default_schema = "main"
    physical_row_id = "rowid"
    placeholder = "?"
    file_based = True

    def error_types(self, handle: Any) -> tuple[type[BaseException], ...]:
        # Connection objects expose their module's exception hierarchy.
        return (getattr(handle, "Error", sqlite3.Error),)

    def is_internal_index(self, name: str) -> bool:
        return name.startswith(INTERNAL_PREFIX)

    def _master(self, schema: str) -> str:
        return f"{self.quote(schema)}.sqlite_master"

    def _pragma(self, handle: Any, schema: str, pragma: str, argument: str) -> list[dict[str, Any]]:
        return self.query(handle, f"PRAGMA {self.quote(schema)}.{pragma}({self.quote(argument)})")

    def list_schemas(self, handle: Any) -> list[str]:
        rows = self.query(handle, "PRAGMA database_list")
        names = [str(row["name"]) for row in rows]
        return sorted(names, key=lambda name: name != self.default_schema)

    def list_relations(self, handle: Any, schema: str, kind: str) -> list[tuple[str, str]]:
        rows = self.query(
            handle,
            f"SELECT name, sql FROM {self._master(schema)} "
            "WHERE type = ? AND substr(name, 1, 7) != ? ORDER BY name",
            (kind, INTERNAL_PREFIX),
        )
        return [(str(row["name"]), row["sql"] or "") for row in rows]

    def table_exists(self, handle: Any, table: str, schema: str) -> bool:
        rows = self.query(
            handle,
            f"SELECT 1 FROM {self._master(schema)} WHERE type = 'table' AND name = ?",
            (table,),
        )
        return bool(rows)

    def fetch_columns(self, handle: Any, table: str, schema: str) -> list[ColumnInfo]:
        return [
            ColumnInfo(
                name=str(row["name"]),
                type=str(row["type"] or ""),
                nullable=not bool(row["notnull"]),
                default_value=row["dflt_value"],
                is_primary_key=bool(row["pk"]),
            )
            for row in self._pragma(handle, schema, "table_info", table)
        ]

    def fetch_foreign_keys(self, handle: Any, table: str, schema: str) -> list[ForeignKeyInfo]:
        rows = self._pragma(handle, schema, "foreign_key_list", table)
        rows.sort(key=lambda row: (row["id"], row["seq"]))
        return [
            ForeignKeyInfo(
                column=str(row["from"]),
                referenced_table=str(row["table"]),
                referenced_column=row["to"],
                on_delete=str(row["on_delete"] or "NO ACTION"),
                on_update=str(row["on_update"] or "NO ACTION"),
            )
            for row in rows
        ]

    def fetch_indexes(self, handle: Any, table: str, schema: str) -> list[IndexInfo]:
        indexes: list[IndexInfo] = []
        for row in self._pragma(handle, schema, "index_list", table):
            name = str(row["name"])
            if self.is_internal_index(name):
                continue
            info = self._pragma(handle, schema, "index_info", name)
            info.sort(key=lambda entry: entry["seqno"])
            sql_rows = self.query(
                handle,
                f"SELECT sql FROM {self._master(schema)} WHERE type = 'index' AND name = ?",
                (name,),
            )
            indexes.append(
                IndexInfo(
                    name=name,
                    columns=tuple(str(entry["name"]) for entry in info if entry["name"] is not None),
                    is_unique=bool(row["unique"]),
                    sql=(sql_rows[0]["sql"] or "") if sql_rows else "",
                )
            )
        indexes.sort(key=lambda index: index.name)
        return indexes

    def fetch_triggers(self, handle: Any, table: str, schema: str) -> list[TriggerInfo]:
        rows = self.query(
            handle,
            f"SELECT name, tbl_name, sql FROM {self._master(schema)} "
            "WHERE type = 'trigger' AND tbl_name = ? ORDER BY name",
            (table,),
        )
        triggers: list[TriggerInfo] = []
        for row in rows:
            sql = row["sql"] or ""
            timing, event = classify_trigger(sql)
            triggers.append(
                TriggerInfo(
                    name=str(row["name"]),
                    table_name=str(row["tbl_name"]),
                    timing=timing,
                    event=event,
                    sql=sql,
                )
            )
        return triggers

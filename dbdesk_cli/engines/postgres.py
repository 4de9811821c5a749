"""PostgreSQL adapter using psycopg and the system catalogs."""

from __future__ import annotations

from typing import Any

from dbdesk_cli.shared.exceptions import DatabaseError, ErrorCode
from dbdesk_cli.shared.models import ColumnInfo, ConnectionConfig, ForeignKeyInfo, IndexInfo, TriggerInfo

from .base import EngineAdapter

# pg_trigger.tgtype bit flags.
TRIGGER_TYPE_BEFORE = 1 << 1
TRIGGER_TYPE_INSERT = 1 << 2
TRIGGER_TYPE_DELETE = 1 << 3
TRIGGER_TYPE_UPDATE = 1 << 4
TRIGGER_TYPE_INSTEAD = 1 << 6

SYSTEM_SCHEMAS = ("information_schema",)

_COLUMNS_SQL = """
SELECT a.attname AS name,
       format_type(a.atttypid, a.atttypmod) AS type,
       NOT a.attnotnull AS nullable,
       pg_get_expr(d.adbin, d.adrelid) AS default_value,
       EXISTS (
           SELECT 1 FROM pg_index i
           WHERE i.indrelid = a.attrelid AND i.indisprimary AND a.attnum = ANY(i.indkey)
       ) AS is_primary_key
FROM pg_attribute a
JOIN pg_class c ON c.oid = a.attrelid
JOIN pg_namespace n ON n.oid = c.relnamespace
LEFT JOIN pg_attrdef d ON d.adrelid = a.attrelid AND d.adnum = a.attnum
WHERE n.nspname = %s AND c.relname = %s AND a.attnum > 0 AND NOT a.attisdropped
ORDER BY a.attnum
"""

_FOREIGN_KEYS_SQL = """
SELECT kcu.column_name AS column_name,
       ccu.table_name AS referenced_table,
       ccu.column_name AS referenced_column,
       rc.delete_rule AS on_delete,
       rc.update_rule AS on_update
FROM information_schema.table_constraints tc
JOIN information_schema.key_column_usage kcu
  ON kcu.constraint_name = tc.constraint_name AND kcu.table_schema = tc.table_schema
JOIN information_schema.referential_constraints rc
  ON rc.constraint_name = tc.constraint_name AND rc.constraint_schema = tc.table_schema
JOIN information_schema.constraint_column_usage ccu
  ON ccu.constraint_name = tc.constraint_name AND ccu.constraint_schema = tc.table_schema
WHERE tc.constraint_type = 'FOREIGN KEY' AND tc.table_schema = %s AND tc.table_name = %s
ORDER BY tc.constraint_name, kcu.ordinal_position
"""

_INDEXES_SQL = """
SELECT ic.relname AS name,
       ix.indisunique AS is_unique,
       pg_get_indexdef(ix.indexrelid) AS sql,
       ARRAY(
           SELECT a.attname
           FROM unnest(ix.indkey) WITH ORDINALITY AS k(attnum, ord)
           JOIN pg_attribute a ON a.attrelid = ix.indrelid AND a.attnum = k.attnum
           ORDER BY k.ord
       ) AS columns
FROM pg_index ix
JOIN pg_class t ON t.oid = ix.indrelid
JOIN pg_class ic ON ic.oid = ix.indexrelid
JOIN pg_namespace n ON n.oid = t.relnamespace
WHERE n.nspname = %s AND t.relname = %s AND NOT ix.indisprimary
ORDER BY ic.relname
"""

_TRIGGERS_SQL = """
SELECT tg.tgname AS name, c.relname AS table_name, tg.tgtype AS tgtype,
       pg_get_triggerdef(tg.oid) AS sql
FROM pg_trigger tg
JOIN pg_class c ON c.oid = tg.tgrelid
JOIN pg_namespace n ON n.oid = c.relnamespace
WHERE n.nspname = %s AND c.relname = %s AND NOT tg.tgisinternal
ORDER BY tg.tgname
"""


def classify_tgtype(tgtype: int) -> tuple[str, str]:
    """Decode timing and the first event from a ``pg_trigger.tgtype`` value."""
    if tgtype & TRIGGER_TYPE_INSTEAD:
        timing = "INSTEAD OF"
    elif tgtype & TRIGGER_TYPE_BEFORE:
        timing = "BEFORE"
    else:
        timing = "AFTER"
    if tgtype & TRIGGER_TYPE_INSERT:
        event = "INSERT"
    elif tgtype & TRIGGER_TYPE_UPDATE:
        event = "UPDATE"
    elif tgtype & TRIGGER_TYPE_DELETE:
        event = "DELETE"
    else:
        event = "INSERT"
    return timing, event


def _import_psycopg() -> Any:
    try:
        import psycopg
    except ImportError as exc:
        raise DatabaseError(
            "PostgreSQL support requires psycopg. Install it with `pip install 'dbdesk[postgres]'`.",
            code=ErrorCode.CONNECTION_ERROR,
        ) from exc
    return psycopg


class PostgresAdapter(EngineAdapter):
    engine = "postgresql"
    default_schema = "public"
    physical_row_id = "ctid"
    placeholder = "%s"
    file_based = False

    def error_types(self, handle: Any) -> tuple[type[BaseException], ...]:
        return (_import_psycopg().Error,)

    def connect(self, config: ConnectionConfig) -> Any:
        psycopg = _import_psycopg()
        handle = psycopg.connect(
            host=config.host,
            port=config.port or 5432,
            dbname=config.database,
            user=config.username,
            password=config.password,
            sslmode="require" if config.ssl else "prefer",
            autocommit=True,
        )
        if config.read_only:
            self.run(handle, "SET SESSION CHARACTERISTICS AS TRANSACTION READ ONLY")
        return handle

    # Autocommit handles take explicit transaction statements.
    def begin(self, handle: Any) -> None:
        self.run(handle, "BEGIN")

    def commit(self, handle: Any) -> None:
        self.run(handle, "COMMIT")

    def rollback(self, handle: Any) -> None:
        self.run(handle, "ROLLBACK")

    def is_internal_index(self, name: str) -> bool:
        return name.endswith("_pkey")

    def list_schemas(self, handle: Any) -> list[str]:
        rows = self.query(
            handle,
            "SELECT nspname FROM pg_namespace "
            "WHERE left(nspname, 3) <> 'pg_' AND nspname <> ALL(%s) "
            "ORDER BY nspname <> %s, nspname",
            (list(SYSTEM_SCHEMAS), self.default_schema),
        )
        return [str(row["nspname"]) for row in rows]

    def list_relations(self, handle: Any, schema: str, kind: str) -> list[tuple[str, str]]:
        if kind == "view":
            sql = (
                "SELECT c.relname AS name, pg_get_viewdef(c.oid) AS sql FROM pg_class c "
                "JOIN pg_namespace n ON n.oid = c.relnamespace "
                "WHERE n.nspname = %s AND c.relkind IN ('v', 'm') ORDER BY c.relname"
            )
        else:
            sql = (
                "SELECT c.relname AS name, '' AS sql FROM pg_class c "
                "JOIN pg_namespace n ON n.oid = c.relnamespace "
                "WHERE n.nspname = %s AND c.relkind IN ('r', 'p') ORDER BY c.relname"
            )
        return [(str(row["name"]), row["sql"] or "") for row in self.query(handle, sql, (schema,))]

    def table_exists(self, handle: Any, table: str, schema: str) -> bool:
        rows = self.query(
            handle,
            "SELECT 1 FROM information_schema.tables WHERE table_schema = %s AND table_name = %s",
            (schema, table),
        )
        return bool(rows)

    def fetch_columns(self, handle: Any, table: str, schema: str) -> list[ColumnInfo]:
        return [
            ColumnInfo(
                name=str(row["name"]),
                type=str(row["type"]),
                nullable=bool(row["nullable"]),
                default_value=row["default_value"],
                is_primary_key=bool(row["is_primary_key"]),
            )
            for row in self.query(handle, _COLUMNS_SQL, (schema, table))
        ]

    def fetch_foreign_keys(self, handle: Any, table: str, schema: str) -> list[ForeignKeyInfo]:
        return [
            ForeignKeyInfo(
                column=str(row["column_name"]),
                referenced_table=str(row["referenced_table"]),
                referenced_column=row["referenced_column"],
                on_delete=str(row["on_delete"]),
                on_update=str(row["on_update"]),
            )
            for row in self.query(handle, _FOREIGN_KEYS_SQL, (schema, table))
        ]

    def fetch_indexes(self, handle: Any, table: str, schema: str) -> list[IndexInfo]:
        return [
            IndexInfo(
                name=str(row["name"]),
                columns=tuple(row["columns"] or ()),
                is_unique=bool(row["is_unique"]),
                sql=row["sql"] or "",
            )
            for row in self.query(handle, _INDEXES_SQL, (schema, table))
            if not self.is_internal_index(str(row["name"]))
        ]

    def fetch_triggers(self, handle: Any, table: str, schema: str) -> list[TriggerInfo]:
        triggers: list[TriggerInfo] = []
        for row in self.query(handle, _TRIGGERS_SQL, (schema, table)):
            timing, event = classify_tgtype(int(row["tgtype"]))
            triggers.append(
                TriggerInfo(
                    name=str(row["name"]),
                    table_name=str(row["table_name"]),
                    timing=timing,
                    event=event,
                    sql=row["sql"] or "",
                )
            )
        return triggers

"""Data models shared across the dbdesk tools.

Every model is immutable. ``to_dict`` produces the camelCase wire shape used by
the request/response bridge and the JSON renderers.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from dbdesk_cli.engines.base import EngineAdapter

Row = Mapping[str, Any]


# ----- Connections --------------------------------------------------------------------------


class KeyMode(str, Enum):
    """How a password is turned into the key pragma for a cipher candidate."""

    LITERAL = "literal"
    UTF8_HEX = "utf8_hex"
    RAW_HEX = "raw_hex"


@dataclass(frozen=True, slots=True)
class CipherConfig:
    """One hypothesis about how an encrypted file was written."""

    cipher: str
    legacy: int | None = None
    kdf_iter: int | None = None
    page_size: int | None = None
    plaintext_header: int | None = None
    key_mode: KeyMode = KeyMode.LITERAL

    @property
    def label(self) -> str:
        parts = [self.cipher]
        if self.legacy is not None:
            parts.append(f"legacy={self.legacy}")
        if self.kdf_iter is not None:
            parts.append(f"kdf_iter={self.kdf_iter}")
        if self.page_size is not None:
            parts.append(f"page_size={self.page_size}")
        if self.plaintext_header is not None:
            parts.append(f"plaintext_header={self.plaintext_header}")
        if self.key_mode is not KeyMode.LITERAL:
            parts.append(self.key_mode.value)
        return " ".join(parts)

    def to_dict(self) -> dict[str, Any]:
        return {
            "cipher": self.cipher,
            "legacy": self.legacy,
            "kdfIter": self.kdf_iter,
            "pageSize": self.page_size,
            "plaintextHeader": self.plaintext_header,
            "keyMode": self.key_mode.value,
        }


@dataclass(frozen=True, slots=True)
class ConnectionConfig:
    """Everything needed to open one logical connection."""

    type: str = "sqlite"
    path: str | None = None
    name: str | None = None
    password: str | None = field(default=None, repr=False)
    read_only: bool = False
    host: str | None = None
    port: int | None = None
    database: str | None = None
    username: str | None = None
    ssl: bool = False

    @property
    def target(self) -> str:
        """File path or ``host:port/database`` label for messages."""
        if self.path:
            return self.path
        port = f":{self.port}" if self.port else ""
        return f"{self.host or 'localhost'}{port}/{self.database or ''}"


@dataclass(frozen=True, slots=True)
class Connection:
    """A live handle registered with a :class:`ConnectionManager`."""

    id: str
    path: str
    name: str
    engine: str
    encrypted: bool
    read_only: bool
    handle: Any = field(repr=False, compare=False)
    adapter: EngineAdapter = field(repr=False, compare=False)
    cipher: CipherConfig | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "path": self.path,
            "filename": self.name,
            "databaseType": self.engine,
            "isEncrypted": self.encrypted,
            "isReadOnly": self.read_only,
            "cipher": self.cipher.to_dict() if self.cipher else None,
        }


# ----- Schema snapshot ----------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ColumnInfo:
    name: str
    type: str
    nullable: bool
    default_value: Any = None
    is_primary_key: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "type": self.type,
            "nullable": self.nullable,
            "defaultValue": self.default_value,
            "isPrimaryKey": self.is_primary_key,
        }


@dataclass(frozen=True, slots=True)
class ForeignKeyInfo:
    column: str
    referenced_table: str
    referenced_column: str | None
    on_delete: str
    on_update: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "column": self.column,
            "referencedTable": self.referenced_table,
            "referencedColumn": self.referenced_column,
            "onDelete": self.on_delete,
            "onUpdate": self.on_update,
        }


@dataclass(frozen=True, slots=True)
class IndexInfo:
    name: str
    columns: tuple[str, ...]
    is_unique: bool
    sql: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "columns": list(self.columns),
            "isUnique": self.is_unique,
            "sql": self.sql,
        }


@dataclass(frozen=True, slots=True)
class TriggerInfo:
    name: str
    table_name: str
    timing: str
    event: str
    sql: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "tableName": self.table_name,
            "timing": self.timing,
            "event": self.event,
            "sql": self.sql,
        }


@dataclass(frozen=True, slots=True)
class TableInfo:
    """Structure of one table or view at introspection time."""

    name: str
    schema: str
    kind: str
    columns: tuple[ColumnInfo, ...]
    foreign_keys: tuple[ForeignKeyInfo, ...] = ()
    indexes: tuple[IndexInfo, ...] = ()
    triggers: tuple[TriggerInfo, ...] = ()
    row_count: int | None = None
    sql: str = ""

    @property
    def primary_key(self) -> tuple[str, ...]:
        # Derived so it cannot drift from the column flags.
        return tuple(column.name for column in self.columns if column.is_primary_key)

    def column(self, name: str) -> ColumnInfo | None:
        for column in self.columns:
            if column.name == name:
                return column
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "schema": self.schema,
            "type": self.kind,
            "columns": [column.to_dict() for column in self.columns],
            "primaryKey": list(self.primary_key),
            "foreignKeys": [fk.to_dict() for fk in self.foreign_keys],
            "indexes": [index.to_dict() for index in self.indexes],
            "triggers": [trigger.to_dict() for trigger in self.triggers],
            "rowCount": self.row_count,
            "sql": self.sql,
        }


@dataclass(frozen=True, slots=True)
class SchemaInfo:
    name: str
    tables: tuple[TableInfo, ...]
    views: tuple[TableInfo, ...]

    def find(self, name: str) -> TableInfo | None:
        for relation in (*self.tables, *self.views):
            if relation.name == name:
                return relation
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "tables": [table.to_dict() for table in self.tables],
            "views": [view.to_dict() for view in self.views],
        }


# ----- Pending changes ----------------------------------------------------------------------


class ChangeType(str, Enum):
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"


@dataclass(frozen=True, slots=True)
class PendingChange:
    """A proposed row mutation awaiting validation or application."""

    id: str
    table: str
    type: ChangeType
    row_id: Any = None
    old_values: Mapping[str, Any] | None = None
    new_values: Mapping[str, Any] | None = None
    schema: str | None = None
    primary_key_column: str | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.type, ChangeType):
            object.__setattr__(self, "type", ChangeType(self.type))
        if self.type is ChangeType.INSERT:
            if self.old_values is not None or self.new_values is None:
                raise ValueError(f"Insert change '{self.id}' needs new values and no old values.")
        elif self.type is ChangeType.DELETE:
            if self.new_values is not None:
                raise ValueError(f"Delete change '{self.id}' must not carry new values.")
        elif self.new_values is None:
            raise ValueError(f"Update change '{self.id}' needs new values.")

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> PendingChange:
        """Build a change from its wire form (camelCase or snake_case keys)."""

        def pick(*names: str) -> Any:
            for name in names:
                if name in data:
                    return data[name]
            return None

        try:
            change_id = str(data["id"])
            table = str(data["table"])
            change_type = ChangeType(str(data["type"]).lower())
        except KeyError as exc:
            raise ValueError(f"Change is missing required field {exc}") from exc
        return cls(
            id=change_id,
            table=table,
            type=change_type,
            row_id=pick("rowId", "row_id"),
            old_values=pick("oldValues", "old_values"),
            new_values=pick("newValues", "new_values"),
            schema=pick("schema"),
            primary_key_column=pick("primaryKeyColumn", "primary_key_column"),
        )


@dataclass(frozen=True, slots=True)
class ValidationResult:
    change_id: str
    is_valid: bool
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"changeId": self.change_id, "isValid": self.is_valid}
        if self.error is not None:
            payload["error"] = self.error
        return payload


# ----- Row diffs ----------------------------------------------------------------------------


class DiffType(str, Enum):
    ADDED = "added"
    REMOVED = "removed"
    MODIFIED = "modified"
    UNCHANGED = "unchanged"


@dataclass(frozen=True, slots=True)
class ColumnChange:
    column_name: str
    source_value: Any
    target_value: Any

    def to_dict(self) -> dict[str, Any]:
        return {
            "columnName": self.column_name,
            "sourceValue": self.source_value,
            "targetValue": self.target_value,
        }


@dataclass(frozen=True, slots=True)
class RowDiff:
    """Classification of one row identity across two row sets."""

    diff_type: DiffType
    primary_key: Mapping[str, Any]
    source_row: Row | None
    target_row: Row | None
    column_changes: tuple[ColumnChange, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "diffType": self.diff_type.value,
            "primaryKey": dict(self.primary_key),
            "sourceRow": dict(self.source_row) if self.source_row is not None else None,
            "targetRow": dict(self.target_row) if self.target_row is not None else None,
        }
        if self.diff_type is DiffType.MODIFIED:
            payload["columnChanges"] = [change.to_dict() for change in self.column_changes]
        return payload


@dataclass(frozen=True, slots=True)
class DiffSummary:
    source_rows: int
    target_rows: int
    added: int = 0
    removed: int = 0
    modified: int = 0
    unchanged: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "sourceRows": self.source_rows,
            "targetRows": self.target_rows,
            "added": self.added,
            "removed": self.removed,
            "modified": self.modified,
            "unchanged": self.unchanged,
        }


@dataclass(frozen=True, slots=True)
class TableComparison:
    """Result of comparing the data of two tables, possibly across connections."""

    source_id: str
    source_name: str
    source_table: str
    source_schema: str
    target_id: str
    target_name: str
    target_table: str
    target_schema: str
    compared_at: str
    primary_keys: tuple[str, ...]
    row_diffs: Sequence[RowDiff]
    summary: DiffSummary

    def to_dict(self) -> dict[str, Any]:
        return {
            "sourceId": self.source_id,
            "sourceName": self.source_name,
            "sourceTable": self.source_table,
            "sourceSchema": self.source_schema,
            "targetId": self.target_id,
            "targetName": self.target_name,
            "targetTable": self.target_table,
            "targetSchema": self.target_schema,
            "comparedAt": self.compared_at,
            "primaryKeys": list(self.primary_keys),
            "rowDiffs": [diff.to_dict() for diff in self.row_diffs],
            "summary": self.summary.to_dict(),
        }

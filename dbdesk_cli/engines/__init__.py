"""Engine adapter exports and lookup by connection type."""

from __future__ import annotations

from dbdesk_cli.shared.exceptions import DatabaseError, ErrorCode
from dbdesk_cli.shared.logging import Logger

from .base import EngineAdapter, classify_trigger
from .postgres import PostgresAdapter
from .sqlite import SQLiteAdapter

ADAPTERS: dict[str, type[EngineAdapter]] = {
    SQLiteAdapter.engine: SQLiteAdapter,
    PostgresAdapter.engine: PostgresAdapter,
}


def adapter_for(engine: str, logger: Logger | None = None) -> EngineAdapter:
    """Instantiate the adapter registered for ``engine``."""
    try:
        adapter_cls = ADAPTERS[engine.lower()]
    except KeyError as exc:
        supported = ", ".join(sorted(ADAPTERS))
        raise DatabaseError(
            f"Unsupported database type '{engine}'. Supported types: {supported}.",
            code=ErrorCode.CONNECTION_ERROR,
        ) from exc
    return adapter_cls(logger=logger)


__all__ = [
    "ADAPTERS",
    "EngineAdapter",
    "PostgresAdapter",
    "SQLiteAdapter",
    "adapter_for",
    "classify_trigger",
]

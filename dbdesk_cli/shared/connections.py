"""Registry of open database connections.

The manager is owned by its caller; there is no module level instance. Each
connection keeps the engine adapter picked when it was opened, so later
operations never need to inspect the handle to decide what it supports.
"""

from __future__ import annotations

import itertools
import secrets
from collections.abc import Mapping
from typing import Protocol

from dbdesk_cli.engines import EngineAdapter, adapter_for

from . import paths
from .cipher import CipherResolver
from .config import AppConfig
from .errors import enhance_connection_error
from .exceptions import ConnectionNotFoundError, DatabaseError, ErrorCode
from .logging import Logger, get_logger
from .models import Connection, ConnectionConfig

# Shared by every manager so ids stay unique within the process.
_CONNECTION_COUNTER = itertools.count(1)


class SecretStore(Protocol):
    """Source of stored database passwords keyed by file path."""

    def get_password(self, path: str) -> str | None:
        ...


def new_connection_id() -> str:
    return f"conn_{next(_CONNECTION_COUNTER)}_{secrets.token_hex(4)}"


def ensure_writable(connection: Connection) -> None:
    """Raise PERMISSION_ERROR when ``connection`` was opened read-only."""
    if connection.read_only:
        raise DatabaseError(
            f"Connection {connection.id} ({connection.name}) is read-only.",
            code=ErrorCode.PERMISSION_ERROR,
            suggestions=("Reopen the database without read-only mode to apply changes",),
        )


class ConnectionManager:
    """Open, track and close connections by id."""

    def __init__(
        self,
        resolver: CipherResolver | None = None,
        adapters: Mapping[str, EngineAdapter] | None = None,
        secret_store: SecretStore | None = None,
        logger: Logger | None = None,
    ) -> None:
        self.logger = logger or get_logger()
        self.resolver = resolver or CipherResolver(logger=self.logger)
        self._adapters: dict[str, EngineAdapter] = dict(adapters or {})
        self.secret_store = secret_store
        self._connections: dict[str, Connection] = {}

    @classmethod
    def from_config(
        cls,
        config: AppConfig,
        *,
        secret_store: SecretStore | None = None,
        logger: Logger | None = None,
    ) -> ConnectionManager:
        logger = logger or get_logger(log_sql=config.logging.log_sql)
        resolver = CipherResolver(
            probe_query=config.encryption.probe_query,
            require_existing_file=config.connections.require_existing_file,
            encryption_enabled=config.encryption.enabled,
            logger=logger,
        )
        return cls(resolver=resolver, secret_store=secret_store, logger=logger)

    def __enter__(self) -> ConnectionManager:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close_all()

    def adapter(self, engine: str) -> EngineAdapter:
        key = engine.lower()
        if key not in self._adapters:
            self._adapters[key] = adapter_for(key, logger=self.logger)
        return self._adapters[key]

    def open(self, config: ConnectionConfig) -> Connection:
        adapter = self.adapter(config.type)
        cipher = None
        encrypted = False
        if adapter.file_based:
            if not config.path:
                raise DatabaseError(
                    "A database file path is required.",
                    code=ErrorCode.FILE_NOT_FOUND,
                )
            secret = config.password
            if secret is None and self.secret_store is not None:
                secret = self.secret_store.get_password(config.path)
            resolved = self.resolver.resolve(config.path, secret, config.read_only)
            handle, encrypted, cipher = resolved.handle, resolved.encrypted, resolved.cipher
        else:
            try:
                handle = adapter.connect(config)
            except adapter.error_types(None) as exc:
                raise enhance_connection_error(str(exc)).to_exception() from exc

        target = config.path or config.target
        connection = Connection(
            id=new_connection_id(),
            path=target,
            name=config.name or paths.display_name(target),
            engine=adapter.engine,
            encrypted=encrypted,
            read_only=config.read_only,
            handle=handle,
            adapter=adapter,
            cipher=cipher,
        )
        self._connections[connection.id] = connection
        self.logger.debug(f"Opened {connection.id} ({connection.engine}) for {connection.name}")
        return connection

    def get(self, connection_id: str) -> Connection | None:
        return self._connections.get(connection_id)

    def require(self, connection_id: str) -> Connection:
        connection = self._connections.get(connection_id)
        if connection is None:
            raise ConnectionNotFoundError(connection_id)
        return connection

    def list(self) -> list[Connection]:
        return list(self._connections.values())

    def close(self, connection_id: str) -> None:
        connection = self._connections.pop(connection_id, None)
        if connection is None:
            raise ConnectionNotFoundError(connection_id)
        connection.adapter.close(connection.handle)
        self.logger.debug(f"Closed {connection_id}")

    def close_all(self) -> None:
        """Close every connection; failures are logged and never stop the sweep."""
        for connection_id in list(self._connections):
            connection = self._connections.pop(connection_id)
            try:
                connection.adapter.close(connection.handle)
            except connection.adapter.error_types(connection.handle) as exc:
                self.logger.error(f"Failed to close {connection_id}: {exc}")

    def __len__(self) -> int:
        return len(self._connections)

    def __contains__(self, connection_id: object) -> bool:
        return connection_id in self._connections

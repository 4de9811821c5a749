"""Shared pytest fixtures for dbdesk tests.

The fixtures build small real SQLite files in ``tmp_path`` so the engine
adapters, introspector and change applier run against the actual driver.
"""

from __future__ import annotations

import sqlite3
from collections.abc import Iterator
from pathlib import Path

import pytest

from dbdesk_cli.shared import paths
from dbdesk_cli.shared.connections import ConnectionManager
from dbdesk_cli.shared.logging import get_logger
from dbdesk_cli.shared.models import ConnectionConfig

SAMPLE_SCHEMA = """
CREATE TABLE users (
    id INTEGER PRIMARY KEY,
    email TEXT NOT NULL UNIQUE,
    name TEXT,
    status TEXT NOT NULL DEFAULT 'active'
);
CREATE TABLE orders (
    id INTEGER PRIMARY KEY,
    user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    total REAL NOT NULL,
    note TEXT
);
CREATE INDEX idx_orders_user ON orders(user_id);
CREATE TABLE order_items (
    order_id INTEGER NOT NULL,
    line_no INTEGER NOT NULL,
    sku VARCHAR(32) NOT NULL,
    PRIMARY KEY (order_id, line_no)
);
CREATE TABLE audit_log (message TEXT);
CREATE VIEW active_users AS SELECT id, email FROM users WHERE status = 'active';
CREATE TRIGGER orders_audit AFTER INSERT ON orders
BEGIN
    INSERT INTO audit_log(message) VALUES ('order ' || NEW.id);
END;
CREATE TRIGGER active_users_insert INSTEAD OF INSERT ON active_users
BEGIN
    INSERT INTO users(email) VALUES (NEW.email);
END;
INSERT INTO users (id, email, name) VALUES (1, 'ada@example.com', 'Ada');
INSERT INTO users (id, email, name, status) VALUES (2, 'bob@example.com', 'Bob', 'inactive');
"""


def build_database(path: Path, script: str = SAMPLE_SCHEMA) -> Path:
    connection = sqlite3.connect(path)
    try:
        connection.executescript(script)
        connection.commit()
    finally:
        connection.close()
    return path


@pytest.fixture(autouse=True)
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep tests away from a real ~/.dbdesk/config.yaml."""
    monkeypatch.setenv(paths.CONFIG_DIR_ENV, str(tmp_path / "dbdesk-config"))
    monkeypatch.delenv(paths.CONFIG_FILE_ENV, raising=False)
    monkeypatch.delenv("DBDESK_PASSWORD", raising=False)


@pytest.fixture()
def sample_db(tmp_path: Path) -> Path:
    return build_database(tmp_path / "sample.db")


@pytest.fixture()
def manager() -> Iterator[ConnectionManager]:
    with ConnectionManager(logger=get_logger()) as registry:
        yield registry


@pytest.fixture()
def sample_connection(manager: ConnectionManager, sample_db: Path):
    return manager.open(ConnectionConfig(path=str(sample_db)))

from __future__ import annotations

import sqlite3
from pathlib import Path

import pytest

from dbdesk_cli.db_schema import introspector
from dbdesk_cli.shared.connections import ConnectionManager
from dbdesk_cli.shared.exceptions import ConnectionNotFoundError, IntrospectionError
from dbdesk_cli.shared.models import ConnectionConfig


def test_introspect_main_schema(manager: ConnectionManager, sample_connection) -> None:
    schemas = introspector.introspect(manager, sample_connection.id)

    assert [schema.name for schema in schemas] == ["main"]
    main = schemas[0]
    assert [table.name for table in main.tables] == ["audit_log", "order_items", "orders", "users"]
    assert [view.name for view in main.views] == ["active_users"]


def test_introspect_is_repeatable(manager: ConnectionManager, sample_connection) -> None:
    first = introspector.introspect(manager, sample_connection.id)
    second = introspector.introspect(manager, sample_connection.id)
    assert [schema.to_dict() for schema in first] == [schema.to_dict() for schema in second]


def test_primary_key_matches_column_flags(manager: ConnectionManager, sample_connection) -> None:
    (main,) = introspector.introspect(manager, sample_connection.id)
    for relation in (*main.tables, *main.views):
        flagged = tuple(column.name for column in relation.columns if column.is_primary_key)
        assert relation.primary_key == flagged

    items = main.find("order_items")
    assert items is not None
    assert items.primary_key == ("order_id", "line_no")
    assert main.find("audit_log").primary_key == ()


def test_table_details(manager: ConnectionManager, sample_connection) -> None:
    (main,) = introspector.introspect(manager, sample_connection.id)
    users = main.find("users")
    orders = main.find("orders")

    assert users.row_count == 2
    assert users.kind == "table"
    assert users.sql.startswith("CREATE TABLE users")
    assert [index.name for index in users.indexes] == []
    assert [index.name for index in orders.indexes] == ["idx_orders_user"]
    assert orders.foreign_keys[0].referenced_table == "users"

    (trigger,) = orders.triggers
    assert (trigger.name, trigger.timing, trigger.event) == ("orders_audit", "AFTER", "INSERT")
    assert trigger.table_name == "orders"


def test_views_have_no_row_count_but_keep_triggers(manager: ConnectionManager, sample_connection) -> None:
    (main,) = introspector.introspect(manager, sample_connection.id)
    view = main.find("active_users")

    assert view.kind == "view"
    assert view.row_count is None
    assert view.indexes == ()
    assert view.foreign_keys == ()
    assert [column.name for column in view.columns] == ["id", "email"]
    (trigger,) = view.triggers
    assert (trigger.timing, trigger.event) == ("INSTEAD OF", "INSERT")


def test_attached_schemas(tmp_path: Path) -> None:
    db_path = tmp_path / "multi.db"
    with sqlite3.connect(db_path) as raw:
        raw.execute("CREATE TABLE local_only (id INTEGER PRIMARY KEY)")
    raw.close()
    archive = tmp_path / "archive.db"
    with sqlite3.connect(archive) as raw:
        raw.execute("CREATE TABLE history (id INTEGER PRIMARY KEY, note TEXT)")
    raw.close()

    with ConnectionManager() as manager:
        connection = manager.open(ConnectionConfig(path=str(db_path)))
        connection.handle.execute("ATTACH DATABASE ? AS archive", (str(archive),))
        connection.handle.execute("ATTACH DATABASE ':memory:' AS scratch")

        schemas = introspector.introspect(manager, connection.id)

    names = [schema.name for schema in schemas]
    assert names == ["main", "archive"]
    assert [table.name for table in schemas[1].tables] == ["history"]
    assert schemas[1].tables[0].schema == "archive"


def test_empty_main_schema_is_kept(manager: ConnectionManager, tmp_path: Path) -> None:
    db_path = tmp_path / "blank.db"
    with sqlite3.connect(db_path) as raw:
        raw.execute("CREATE TABLE scratch (x)")
        raw.execute("DROP TABLE scratch")
    raw.close()

    connection = manager.open(ConnectionConfig(path=str(db_path)))
    schemas = introspector.introspect(manager, connection.id)

    assert [(schema.name, schema.tables, schema.views) for schema in schemas] == [("main", (), ())]


def test_describe_table_and_missing_table(manager: ConnectionManager, sample_connection) -> None:
    view = introspector.describe_table(manager, sample_connection.id, "active_users")
    assert view.kind == "view"

    with pytest.raises(IntrospectionError, match="does not exist"):
        introspector.describe_table(manager, sample_connection.id, "ghosts")


def test_detect_primary_keys(manager: ConnectionManager, sample_connection) -> None:
    assert introspector.detect_primary_keys(manager, sample_connection.id, "order_items") == ("order_id", "line_no")
    assert introspector.detect_primary_keys(manager, sample_connection.id, "audit_log") == ()


def test_unknown_connection(manager: ConnectionManager) -> None:
    with pytest.raises(ConnectionNotFoundError):
        introspector.introspect(manager, "conn_404")


def test_driver_failure_becomes_introspection_error(manager: ConnectionManager, sample_connection) -> None:
    with pytest.raises(IntrospectionError, match="nowhere"):
        introspector.describe_table(manager, sample_connection.id, "users", schema="nowhere")

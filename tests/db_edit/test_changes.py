from __future__ import annotations

import json
from pathlib import Path

import pytest

from dbdesk_cli.db_edit import changes as change_ops
from dbdesk_cli.engines import PostgresAdapter, SQLiteAdapter
from dbdesk_cli.shared.connections import ConnectionManager
from dbdesk_cli.shared.exceptions import ChangeApplyError, DatabaseError, ErrorCode
from dbdesk_cli.shared.models import ChangeType, ConnectionConfig, PendingChange


def _insert(change_id: str, table: str, **values) -> PendingChange:
    return PendingChange(id=change_id, table=table, type=ChangeType.INSERT, new_values=values)


def _users(connection) -> list[tuple]:
    return connection.handle.execute("SELECT id, email, name, status FROM users ORDER BY id").fetchall()


def test_apply_insert_then_update_in_one_batch(manager: ConnectionManager, sample_connection) -> None:
    batch = [
        _insert("c1", "users", id=10, email="cy@example.com"),
        PendingChange(
            id="c2",
            table="users",
            type=ChangeType.UPDATE,
            row_id=10,
            primary_key_column="id",
            new_values={"name": "Cy"},
        ),
        PendingChange(id="c3", table="users", type=ChangeType.DELETE, row_id=2, primary_key_column="id"),
    ]

    applied = change_ops.apply_changes(manager, sample_connection.id, batch)

    assert applied == 3
    assert _users(sample_connection) == [
        (1, "ada@example.com", "Ada", "active"),
        (10, "cy@example.com", "Cy", "active"),
    ]


def test_failure_rolls_back_whole_batch(manager: ConnectionManager, sample_connection) -> None:
    before = _users(sample_connection)
    batch = [
        _insert("ok", "users", email="new@example.com"),
        PendingChange(
            id="rename",
            table="users",
            type=ChangeType.UPDATE,
            row_id=1,
            primary_key_column="id",
            new_values={"name": "Changed"},
        ),
        _insert("dup", "users", email="bob@example.com"),
    ]

    with pytest.raises(ChangeApplyError) as excinfo:
        change_ops.apply_changes(manager, sample_connection.id, batch)

    assert excinfo.value.change_id == "dup"
    assert excinfo.value.code is ErrorCode.SQL_CONSTRAINT_ERROR
    assert _users(sample_connection) == before


def test_triggers_run_inside_the_transaction(manager: ConnectionManager, sample_connection) -> None:
    change_ops.apply_changes(
        manager, sample_connection.id, [_insert("o1", "orders", id=5, user_id=1, total=9.5)]
    )
    messages = sample_connection.handle.execute("SELECT message FROM audit_log").fetchall()
    assert messages == [("order 5",)]


def test_rowid_used_without_primary_key_column(manager: ConnectionManager, sample_connection) -> None:
    sample_connection.handle.execute("INSERT INTO audit_log (message) VALUES ('first'), ('second')")
    sample_connection.handle.commit()
    batch = [
        PendingChange(id="u", table="audit_log", type=ChangeType.UPDATE, row_id=2, new_values={"message": "edited"}),
        PendingChange(id="d", table="audit_log", type=ChangeType.DELETE, row_id=1),
    ]

    change_ops.apply_changes(manager, sample_connection.id, batch)

    rows = sample_connection.handle.execute("SELECT rowid, message FROM audit_log").fetchall()
    assert rows == [(2, "edited")]


def test_read_only_connection_refuses_writes(manager: ConnectionManager, sample_db: Path) -> None:
    connection = manager.open(ConnectionConfig(path=str(sample_db), read_only=True))

    with pytest.raises(DatabaseError) as excinfo:
        change_ops.apply_changes(manager, connection.id, [_insert("c1", "users", email="x@example.com")])

    assert excinfo.value.code is ErrorCode.PERMISSION_ERROR


def test_update_without_values_is_rejected(manager: ConnectionManager, sample_connection) -> None:
    empty = PendingChange(id="e", table="users", type=ChangeType.UPDATE, row_id=1, new_values={})
    with pytest.raises(ChangeApplyError) as excinfo:
        change_ops.apply_changes(manager, sample_connection.id, [empty])
    assert excinfo.value.change_id == "e"


def test_validate_changes_reports_each_change(manager: ConnectionManager, sample_connection) -> None:
    batch = [
        _insert("good", "users", email="ok@example.com"),
        _insert("missing-email", "users", name="No Email"),
        PendingChange(
            id="null-email",
            table="users",
            type=ChangeType.UPDATE,
            row_id=1,
            primary_key_column="id",
            new_values={"email": None},
        ),
        PendingChange(id="ghost", table="ghosts", type=ChangeType.DELETE, row_id=1),
        PendingChange(id="delete", table="users", type=ChangeType.DELETE, row_id=2, primary_key_column="id"),
    ]

    results = {result.change_id: result for result in change_ops.validate_changes(manager, sample_connection.id, batch)}

    assert results["good"].is_valid is True
    assert results["missing-email"].is_valid is False
    assert "email" in results["missing-email"].error
    assert "status" not in results["missing-email"].error
    assert results["null-email"].is_valid is False
    assert "does not exist" in results["ghost"].error
    assert results["delete"].is_valid is True
    assert _users(sample_connection)[1][0] == 2


def test_build_statement_shapes() -> None:
    sqlite = SQLiteAdapter()
    sql, params = change_ops.build_statement(sqlite, _insert("i", "users", email="a@b.c", name="A"))
    assert sql == 'INSERT INTO "users" ("email", "name") VALUES (?, ?)'
    assert params == ["a@b.c", "A"]

    sql, params = change_ops.build_statement(
        sqlite, PendingChange(id="i2", table="audit_log", type=ChangeType.INSERT, new_values={})
    )
    assert sql == 'INSERT INTO "audit_log" DEFAULT VALUES'
    assert params == []

    postgres = PostgresAdapter()
    sql, params = change_ops.build_statement(
        postgres,
        PendingChange(
            id="u",
            table="users",
            type=ChangeType.UPDATE,
            schema="public",
            row_id=3,
            primary_key_column="id",
            new_values={"name": "B"},
        ),
    )
    assert sql == 'UPDATE "public"."users" SET "name" = %s WHERE "id" = %s'
    assert params == ["B", 3]

    sql, params = change_ops.build_statement(
        postgres, PendingChange(id="d", table="users", type=ChangeType.DELETE, row_id="(0,1)")
    )
    assert sql == 'DELETE FROM "users" WHERE ctid = %s'
    assert params == ["(0,1)"]


def test_load_changes_from_json(tmp_path: Path) -> None:
    path = tmp_path / "changes.json"
    path.write_text(
        json.dumps(
            {
                "changes": [
                    {"id": "1", "table": "users", "type": "insert", "newValues": {"email": "j@example.com"}},
                    {"id": "2", "table": "users", "type": "delete", "rowId": 2, "primaryKeyColumn": "id"},
                ]
            }
        ),
        encoding="utf-8",
    )
    loaded = change_ops.load_changes(path)
    assert [change.type for change in loaded] == [ChangeType.INSERT, ChangeType.DELETE]
    assert loaded[1].primary_key_column == "id"


def test_load_changes_from_yaml(tmp_path: Path) -> None:
    path = tmp_path / "changes.yaml"
    path.write_text(
        """
        - id: rename
          table: users
          type: update
          row_id: 1
          primary_key_column: id
          new_values:
            name: Ada Lovelace
        """,
        encoding="utf-8",
    )
    (change,) = change_ops.load_changes(path)
    assert change.new_values == {"name": "Ada Lovelace"}
    assert change.row_id == 1


@pytest.mark.parametrize(
    "content, message",
    [
        ("{not json", "could not be parsed"),
        ('{"changes": 3}', "must contain a list"),
        ('[{"id": "1", "table": "users", "type": "insert"}]', "is invalid"),
        ("[1]", "must be a mapping"),
    ],
)
def test_load_changes_rejects_bad_files(tmp_path: Path, content: str, message: str) -> None:
    path = tmp_path / "bad.json"
    path.write_text(content, encoding="utf-8")
    with pytest.raises(DatabaseError, match=message):
        change_ops.load_changes(path)

from __future__ import annotations

from pathlib import Path

import pytest

from dbdesk_cli.shared.bridge import DatabaseBridge, failure_payload
from dbdesk_cli.shared.connections import ConnectionManager
from dbdesk_cli.shared.exceptions import DatabaseError, ErrorCode, PasswordRequiredError


@pytest.fixture()
def bridge(manager: ConnectionManager) -> DatabaseBridge:
    return DatabaseBridge(manager)


def _open(bridge: DatabaseBridge, path: Path, **extra) -> str:
    response = bridge.open({"config": {"path": str(path), **extra}})
    assert response["success"] is True, response
    return response["connection"]["id"]


def test_open_and_list_connections(bridge: DatabaseBridge, sample_db: Path) -> None:
    response = bridge.open({"path": str(sample_db), "readOnly": True})

    assert response["success"] is True
    connection = response["connection"]
    assert connection["id"].startswith("conn_")
    assert connection["filename"] == "sample.db"
    assert connection["isReadOnly"] is True
    assert connection["isEncrypted"] is False

    listed = bridge.list_connections()
    assert [item["id"] for item in listed["connections"]] == [connection["id"]]


def test_open_missing_file_returns_failure(bridge: DatabaseBridge, tmp_path: Path) -> None:
    response = bridge.open({"path": str(tmp_path / "missing.db")})

    assert response["success"] is False
    assert response["errorCode"] == ErrorCode.FILE_NOT_FOUND.value
    assert response["troubleshootingSteps"]


def test_open_encrypted_without_password_flags_needs_password(bridge: DatabaseBridge, tmp_path: Path) -> None:
    locked = tmp_path / "locked.db"
    locked.write_bytes(b"\x01" * 4096)

    response = bridge.open({"path": str(locked)})

    assert response["success"] is False
    assert response["needsPassword"] is True
    assert response["errorCode"] == ErrorCode.ENCRYPTION_ERROR.value


def test_open_requires_path(bridge: DatabaseBridge) -> None:
    response = bridge.open({})
    assert response["success"] is False
    assert "path is required" in response["error"]


def test_close_unknown_connection(bridge: DatabaseBridge) -> None:
    response = bridge.close("conn_nope")
    assert response == {
        "success": False,
        "error": "Connection not found: conn_nope",
        "errorCode": "CONNECTION_NOT_FOUND",
    }


def test_get_schema(bridge: DatabaseBridge, sample_db: Path) -> None:
    connection_id = _open(bridge, sample_db)
    response = bridge.get_schema(connection_id)

    assert response["success"] is True
    main = response["schemas"][0]
    assert main["name"] == "main"
    assert [table["name"] for table in main["tables"]] == ["audit_log", "order_items", "orders", "users"]
    assert [view["name"] for view in main["views"]] == ["active_users"]


def test_get_table_data_pages(bridge: DatabaseBridge, sample_db: Path) -> None:
    connection_id = _open(bridge, sample_db)

    response = bridge.get_table_data(connection_id, "users", page=2, page_size=1)

    assert response["success"] is True
    assert response["totalRows"] == 2
    assert response["page"] == 2
    assert response["columns"] == ["id", "email", "name", "status"]
    assert [row["email"] for row in response["rows"]] == ["bob@example.com"]


def test_get_table_data_missing_table(bridge: DatabaseBridge, sample_db: Path) -> None:
    connection_id = _open(bridge, sample_db)
    response = bridge.get_table_data(connection_id, "ghosts")
    assert response["success"] is False
    assert response["errorCode"] == ErrorCode.SQL_SYNTAX_ERROR.value


def test_validate_and_apply_changes(bridge: DatabaseBridge, sample_db: Path) -> None:
    connection_id = _open(bridge, sample_db)
    changes = [
        {"id": "c1", "table": "users", "type": "insert", "newValues": {"email": "cy@example.com"}},
        {"id": "c2", "table": "users", "type": "update", "rowId": 1, "primaryKeyColumn": "id",
         "newValues": {"name": "Ada Lovelace"}},
    ]

    validated = bridge.validate_changes(connection_id, changes)
    assert validated["success"] is True
    assert [result["isValid"] for result in validated["results"]] == [True, True]

    applied = bridge.apply_changes(connection_id, changes)
    assert applied == {"success": True, "appliedCount": 2}

    rows = bridge.get_table_data(connection_id, "users")["rows"]
    assert {row["email"] for row in rows} == {"ada@example.com", "bob@example.com", "cy@example.com"}
    assert rows[0]["name"] == "Ada Lovelace"


def test_apply_changes_failure_reports_code(bridge: DatabaseBridge, sample_db: Path) -> None:
    connection_id = _open(bridge, sample_db)
    changes = [{"id": "dup", "table": "users", "type": "insert", "newValues": {"email": "ada@example.com"}}]

    response = bridge.apply_changes(connection_id, changes)

    assert response["success"] is False
    assert response["errorCode"] == ErrorCode.SQL_CONSTRAINT_ERROR.value
    assert response["suggestions"]


def test_malformed_change_is_reported(bridge: DatabaseBridge, sample_db: Path) -> None:
    connection_id = _open(bridge, sample_db)
    response = bridge.validate_changes(connection_id, [{"table": "users", "type": "delete"}])
    assert response["success"] is False
    assert "missing required field" in response["error"]


def test_diff_rows(bridge: DatabaseBridge) -> None:
    response = bridge.diff_rows(
        [{"id": 1, "v": "a"}, {"id": 2, "v": "b"}],
        [{"id": 2, "v": "B"}, {"id": 3, "v": "c"}],
        ["id"],
    )
    assert response["success"] is True
    assert [diff["diffType"] for diff in response["rowDiffs"]] == ["removed", "modified", "added"]
    assert response["summary"] == {
        "sourceRows": 2,
        "targetRows": 2,
        "added": 1,
        "removed": 1,
        "modified": 1,
        "unchanged": 0,
    }


def test_compare_and_sync_across_files(bridge: DatabaseBridge, sample_db: Path, tmp_path: Path) -> None:
    import shutil
    import sqlite3

    target_db = tmp_path / "target.db"
    shutil.copy(sample_db, target_db)
    with sqlite3.connect(target_db) as raw:
        raw.execute("UPDATE users SET name = 'Robert' WHERE id = 2")
        raw.execute("INSERT INTO users (id, email) VALUES (9, 'zed@example.com')")
    raw.close()

    source_id = _open(bridge, sample_db)
    target_id = _open(bridge, target_db)
    request = {"sourceConnectionId": source_id, "targetConnectionId": target_id, "sourceTable": "users"}

    compared = bridge.compare_table_data(request)
    assert compared["success"] is True
    result = compared["result"]
    assert result["primaryKeys"] == ["id"]
    assert result["targetTable"] == "users"
    assert result["summary"]["modified"] == 1
    assert result["summary"]["added"] == 1

    script = bridge.generate_sync_sql({**request, "includeDeletes": True})
    assert script["success"] is True
    assert script["statements"] == [
        'DELETE FROM "users" WHERE "id" = 9',
        'UPDATE "users" SET "name" = \'Bob\' WHERE "id" = 2',
    ]


def test_compare_requires_fields(bridge: DatabaseBridge) -> None:
    response = bridge.compare_table_data({"sourceConnectionId": "a"})
    assert response["success"] is False
    assert "targetConnectionId" in response["error"]


def test_failure_payload_for_plain_exception() -> None:
    payload = failure_payload(RuntimeError("database is locked"))
    assert payload["success"] is False
    assert payload["errorCode"] == ErrorCode.CONNECTION_ERROR.value


def test_failure_payload_for_password_required() -> None:
    payload = failure_payload(PasswordRequiredError("need it"))
    assert payload["needsPassword"] is True
    assert "needsPassword" not in failure_payload(DatabaseError("other"))

from __future__ import annotations

import json
from pathlib import Path

from click.testing import CliRunner

from dbdesk_cli.db_open.main import main
from dbdesk_cli.shared import cipher


def test_detect_plain_and_encrypted(sample_db: Path, tmp_path: Path) -> None:
    locked = tmp_path / "locked.db"
    locked.write_bytes(b"\x42" * 1024)
    runner = CliRunner()

    plain = runner.invoke(main, ["detect", str(sample_db)])
    encrypted = runner.invoke(main, ["detect", str(locked)])

    assert plain.exit_code == 0, plain.output
    assert plain.output.strip() == "plain"
    assert encrypted.output.strip() == "encrypted"


def test_open_describes_connection(sample_db: Path) -> None:
    runner = CliRunner()
    result = runner.invoke(main, ["--read-only", "open", str(sample_db), "--format", "json"])

    assert result.exit_code == 0, result.output
    payload = json.loads(result.output)
    assert payload["filename"] == "sample.db"
    assert payload["isEncrypted"] is False
    assert payload["isReadOnly"] is True
    assert payload["id"].startswith("conn_")


def test_open_table_format(sample_db: Path) -> None:
    runner = CliRunner()
    result = runner.invoke(main, ["--db", str(sample_db), "open"])

    assert result.exit_code == 0, result.output
    assert "encrypted: no" in result.output
    assert "engine:    sqlite" in result.output


def test_open_encrypted_without_prompt_fails(tmp_path: Path) -> None:
    locked = tmp_path / "locked.db"
    locked.write_bytes(b"\x42" * 1024)
    runner = CliRunner()

    result = runner.invoke(main, ["open", str(locked), "--no-prompt"])

    assert result.exit_code != 0
    assert "[ENCRYPTION_ERROR]" in result.output
    assert "password is required" in result.output


def test_open_uses_profile(sample_db: Path, tmp_path: Path) -> None:
    config_file = tmp_path / "config.yaml"
    config_file.write_text(f"profiles:\n  sample:\n    path: {sample_db}\n    name: Sample DB\n", encoding="utf-8")
    runner = CliRunner()

    result = runner.invoke(main, ["--config", str(config_file), "--profile", "sample", "open"])

    assert result.exit_code == 0, result.output
    assert "name:      Sample DB" in result.output


def test_ciphers_lists_every_candidate() -> None:
    runner = CliRunner()
    result = runner.invoke(main, ["ciphers"])

    assert result.exit_code == 0, result.output
    lines = result.output.strip().splitlines()
    assert len(lines) == len(cipher.CIPHER_CONFIGS)
    assert lines[0].strip() == "1. sqlcipher legacy=0"

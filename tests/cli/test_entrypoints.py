"""Smoke tests verifying CLI entry points load and render help."""

from __future__ import annotations

import importlib
from typing import Callable

import pytest
from click.testing import CliRunner


@pytest.mark.parametrize(
    "module_path, attr_name, prog_name",
    [
        ("dbdesk_cli.db_open.main", "main", "db-open"),
        ("dbdesk_cli.db_schema.main", "cli", "db-schema"),
        ("dbdesk_cli.db_edit.main", "main", "db-edit"),
        ("dbdesk_cli.db_diff.main", "cli", "db-diff"),
    ],
)
def test_cli_entrypoint_help(module_path: str, attr_name: str, prog_name: str) -> None:
    module = importlib.import_module(module_path)
    cli: Callable[..., object] = getattr(module, attr_name)

    runner = CliRunner()
    result = runner.invoke(cli, ["--help"], prog_name=prog_name)

    assert result.exit_code == 0, result.output
    assert "Usage" in result.output

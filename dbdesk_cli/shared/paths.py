"""Path handling for config files and database files."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Mapping

DEFAULT_CONFIG_DIR = "~/.dbdesk"
DEFAULT_CONFIG_FILE = "config.yaml"

CONFIG_DIR_ENV = "DBDESK_CONFIG_DIR"
CONFIG_FILE_ENV = "DBDESK_CONFIG_PATH"


def resolve_path(path_str: str | Path) -> Path:
    """Expand ``~`` and environment variables in a user-supplied path."""
    return Path(os.path.expandvars(str(path_str))).expanduser()


def config_path(explicit: str | Path | None = None, env: Mapping[str, str] | None = None) -> Path:
    """Locate the config file.

    Precedence: an explicit path, then ``DBDESK_CONFIG_PATH``, then
    ``config.yaml`` inside ``DBDESK_CONFIG_DIR`` (default ``~/.dbdesk``).
    Nothing is created; a missing file just means defaults apply.
    """
    if explicit:
        return resolve_path(explicit)
    env = os.environ if env is None else env
    override = env.get(CONFIG_FILE_ENV)
    if override:
        return resolve_path(override)
    return resolve_path(env.get(CONFIG_DIR_ENV, DEFAULT_CONFIG_DIR)) / DEFAULT_CONFIG_FILE


def sqlite_uri(path: str | Path, read_only: bool = False) -> str:
    """Return a ``file:`` URI for ``path`` with reserved characters escaped.

    ``#``, ``?`` and ``%`` in file names would otherwise be read as URI
    syntax and open a different file.
    """
    uri = resolve_path(path).resolve().as_uri()
    return f"{uri}?mode=ro" if read_only else uri


def display_name(path: str | Path) -> str:
    """Return the file name used to label a connection in listings."""
    name = Path(str(path)).name
    return name or str(path)

"""Discovery of the format used to write a (possibly encrypted) SQLite file.

A plain SQLite file starts with a fixed 16 byte header. Anything else is
treated as an encrypted database, and opening it with a password means trying
a fixed list of cipher hypotheses in order until one opens and answers a probe
query. The pragma names follow the SQLite3MultipleCiphers conventions; the
cipher driver is pluggable so a build without multi-cipher support can be
swapped out.
"""

from __future__ import annotations

import sqlite3
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from pathlib import Path
from typing import Any, TypeVar

from . import paths
from .errors import TROUBLESHOOTING_STEPS, documentation_url, enhance_connection_error, needs_password
from .exceptions import DatabaseError, EncryptionError, ErrorCode, PasswordRequiredError
from .logging import Logger, get_logger
from .models import CipherConfig, KeyMode

SQLITE_HEADER = b"SQLite format 3\x00"

PROBE_QUERY = "SELECT count(*) FROM sqlite_master"

_L = KeyMode.LITERAL
_U = KeyMode.UTF8_HEX
_R = KeyMode.RAW_HEX

CIPHER_CONFIGS: tuple[CipherConfig, ...] = (
    # SQLCipher 4 defaults, then SQLCipher 1 compatibility.
    CipherConfig("sqlcipher", legacy=0, key_mode=_L),
    CipherConfig("sqlcipher", legacy=0, key_mode=_U),
    CipherConfig("sqlcipher", legacy=0, key_mode=_R),
    CipherConfig("sqlcipher", legacy=1, key_mode=_L),
    CipherConfig("sqlcipher", legacy=1, key_mode=_U),
    CipherConfig("sqlcipher", legacy=1, key_mode=_R),
    CipherConfig("sqlcipher", legacy=2),
    CipherConfig("sqlcipher", legacy=3),
    CipherConfig("chacha20", key_mode=_L),
    CipherConfig("chacha20", key_mode=_U),
    CipherConfig("chacha20", key_mode=_R),
    CipherConfig("aes256cbc", key_mode=_L),
    CipherConfig("aes256cbc", key_mode=_U),
    CipherConfig("aes256cbc", key_mode=_R),
    CipherConfig("rc4", key_mode=_L),
    CipherConfig("rc4", key_mode=_R),
    CipherConfig("aes128cbc", key_mode=_L),
    CipherConfig("aes128cbc", key_mode=_R),
    CipherConfig("sqlcipher", legacy=0, kdf_iter=64000),
    CipherConfig("sqlcipher", legacy=0, kdf_iter=4000),
    CipherConfig("sqlcipher", legacy=0, kdf_iter=1),
    CipherConfig("sqlcipher", legacy=0, plaintext_header=32),
    CipherConfig("sqlcipher", legacy=4),
)

C = TypeVar("C")
V = TypeVar("V")

Driver = Callable[[str], Any]
PlainConnect = Callable[[Path, bool], Any]


@dataclass(frozen=True, slots=True)
class ResolvedHandle:
    """An open handle together with the format that opened it."""

    handle: Any
    encrypted: bool
    cipher: CipherConfig | None = None


def detect_encrypted(path: str | Path) -> bool:
    """Return True when the file does not start with the plain SQLite header."""
    try:
        with Path(path).open("rb") as handle:
            header = handle.read(len(SQLITE_HEADER))
    except OSError:
        return False
    return header != SQLITE_HEADER


def _key_pragma(config: CipherConfig, secret: str) -> str:
    if config.key_mode is KeyMode.RAW_HEX:
        return f"PRAGMA key = \"x'{secret}'\""
    if config.key_mode is KeyMode.UTF8_HEX:
        return f"PRAGMA key = \"x'{secret.encode('utf-8').hex()}'\""
    escaped = secret.replace("'", "''")
    return f"PRAGMA key = '{escaped}'"


def cipher_pragmas(config: CipherConfig, secret: str) -> list[str]:
    """Build the pragma statements that configure and key one candidate."""
    statements = [f"PRAGMA cipher = '{config.cipher}'"]
    if config.legacy is not None:
        statements.append(f"PRAGMA legacy = {int(config.legacy)}")
    if config.kdf_iter is not None:
        statements.append(f"PRAGMA kdf_iter = {int(config.kdf_iter)}")
    if config.page_size is not None:
        statements.append(f"PRAGMA cipher_page_size = {int(config.page_size)}")
    if config.plaintext_header is not None:
        statements.append(f"PRAGMA cipher_plaintext_header_size = {int(config.plaintext_header)}")
    statements.append(_key_pragma(config, secret))
    return statements


def find_first(
    candidates: Iterable[C],
    attempt: Callable[[C], V],
    *,
    on_failure: Callable[[C, Exception], None] | None = None,
) -> tuple[C, V] | None:
    """Return the first ``(candidate, value)`` whose attempt does not raise.

    Candidates after the first success are never attempted.
    """
    for candidate in candidates:
        try:
            value = attempt(candidate)
        except Exception as exc:  # noqa: BLE001
            if on_failure is not None:
                on_failure(candidate, exc)
            continue
        return candidate, value
    return None


def _sqlcipher_driver() -> Driver:
    try:
        import sqlcipher3
    except ImportError as exc:
        raise EncryptionError(
            "Opening encrypted databases requires sqlcipher3. "
            "Install it with `pip install 'dbdesk[encryption]'`.",
            code=ErrorCode.ENCRYPTION_ERROR,
        ) from exc
    return sqlcipher3.connect


def _plain_connect(path: Path, read_only: bool) -> sqlite3.Connection:
    if read_only:
        return sqlite3.connect(paths.sqlite_uri(path, read_only=True), uri=True)
    return sqlite3.connect(path)


class CipherResolver:
    """Open a SQLite file, discovering its encryption format when needed."""

    def __init__(
        self,
        driver: Driver | None = None,
        plain_connect: PlainConnect | None = None,
        *,
        probe_query: str = PROBE_QUERY,
        candidates: tuple[CipherConfig, ...] = CIPHER_CONFIGS,
        require_existing_file: bool = True,
        encryption_enabled: bool = True,
        logger: Logger | None = None,
    ) -> None:
        self._driver = driver
        self._plain_connect = plain_connect or _plain_connect
        self.probe_query = probe_query
        self.candidates = candidates
        self.require_existing_file = require_existing_file
        self.encryption_enabled = encryption_enabled
        self.logger = logger or get_logger()

    def resolve(self, path: str | Path, secret: str | None = None, read_only: bool = False) -> ResolvedHandle:
        db_path = Path(path)
        self._check_file(db_path)

        if not self.encryption_enabled and (secret or detect_encrypted(db_path)):
            raise EncryptionError(
                f"Database '{db_path.name}' needs decryption but encrypted databases are disabled "
                "(encryption.enabled is false).",
            )
        if secret:
            return self._open_encrypted(db_path, secret, read_only)
        if detect_encrypted(db_path):
            raise PasswordRequiredError(
                f"Database '{db_path.name}' appears to be encrypted. A password is required.",
                suggestions=("Provide the database password to open it",),
            )
        return self._open_plain(db_path, read_only)

    def _check_file(self, path: Path) -> None:
        if not path.exists():
            if not self.require_existing_file:
                return
            raise DatabaseError(
                f"Database file not found: {path}",
                code=ErrorCode.FILE_NOT_FOUND,
                suggestions=("Verify the file path is correct",),
                troubleshooting_steps=TROUBLESHOOTING_STEPS[ErrorCode.FILE_NOT_FOUND],
                documentation_url=documentation_url(ErrorCode.FILE_NOT_FOUND),
            )
        if path.is_file() and path.stat().st_size == 0:
            raise DatabaseError(
                f"Database file is empty: {path}",
                code=ErrorCode.EMPTY_DATABASE,
                suggestions=("Choose a file that contains a SQLite database",),
            )

    def _open_plain(self, path: Path, read_only: bool) -> ResolvedHandle:
        handle = None
        try:
            handle = self._plain_connect(path, read_only)
            handle.execute("SELECT 1").fetchone()
            handle.execute(self.probe_query).fetchone()
        except sqlite3.Error as exc:
            if handle is not None:
                handle.close()
            message = str(exc)
            if needs_password(message):
                raise PasswordRequiredError(
                    f"Database '{path.name}' appears to be encrypted. A password is required.",
                ) from exc
            raise enhance_connection_error(message).to_exception() from exc
        self.logger.debug(f"Opened {path.name} without encryption")
        return ResolvedHandle(handle=handle, encrypted=False)

    def _open_encrypted(self, path: Path, secret: str, read_only: bool) -> ResolvedHandle:
        driver = self._driver or _sqlcipher_driver()

        def attempt(config: CipherConfig) -> Any:
            self.logger.debug(f"Trying cipher configuration: {config.label}")
            handle = driver(str(path))
            try:
                for statement in cipher_pragmas(config, secret):
                    handle.execute(statement)
                if read_only:
                    handle.execute("PRAGMA query_only = ON")
                handle.execute(self.probe_query).fetchone()
            except Exception:
                handle.close()
                raise
            return handle

        def on_failure(config: CipherConfig, exc: Exception) -> None:
            self.logger.debug(f"Cipher configuration {config.label} failed: {exc}")

        found = find_first(self.candidates, attempt, on_failure=on_failure)
        if found is None:
            attempted = ", ".join(config.label for config in self.candidates)
            raise EncryptionError(
                f"Failed to open encrypted database '{path.name}'. "
                f"The password may be incorrect or the encryption format is not supported. "
                f"Formats attempted: {attempted}",
                suggestions=(
                    "Verify the password is correct",
                    "Check whether the database was created with a different encryption tool",
                ),
                troubleshooting_steps=TROUBLESHOOTING_STEPS[ErrorCode.ENCRYPTION_ERROR],
                documentation_url=documentation_url(ErrorCode.ENCRYPTION_ERROR),
            )
        config, handle = found
        self.logger.debug(f"Opened {path.name} with cipher configuration: {config.label}")
        return ResolvedHandle(handle=handle, encrypted=True, cipher=config)

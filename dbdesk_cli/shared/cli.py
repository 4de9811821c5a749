"""Shared CLI helpers and decorators."""

from __future__ import annotations

import functools
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, TypeVar

import click

from .config import AppConfig, load_config
from .connections import ConnectionManager
from .exceptions import ConfigurationError, DatabaseError, DbDeskError
from .logging import Logger, get_logger
from .models import Connection, ConnectionConfig

F = TypeVar("F", bound=Callable[..., Any])


@dataclass(slots=True)
class CLIContext:
    """Runtime context shared across CLI invocations."""

    config: AppConfig
    db_path: Path | None
    profile: str | None
    password: str | None
    read_only: bool
    dry_run: bool
    verbose: bool
    logger: Logger
    manager: ConnectionManager

    def connection_config(self, target: str | Path | None = None) -> ConnectionConfig:
        """Resolve a positional target, ``--db`` or ``--profile`` into a config.

        A target naming a configured profile wins over a file path.
        """
        if target is not None and str(target) in self.config.profiles:
            return self._with_overrides(self.config.profile(str(target)))
        if target is not None:
            return self.config.connection_for_path(target, password=self.password, read_only=self.read_only)
        if self.db_path is not None:
            return self.config.connection_for_path(self.db_path, password=self.password, read_only=self.read_only)
        if self.profile:
            return self._with_overrides(self.config.profile(self.profile))
        raise click.UsageError("No database selected. Pass --db PATH or --profile NAME.")

    def open(self, target: str | Path | None = None) -> Connection:
        return self.manager.open(self.connection_config(target))

    def _with_overrides(self, base: ConnectionConfig) -> ConnectionConfig:
        return ConnectionConfig(
            type=base.type,
            path=base.path,
            name=base.name,
            password=self.password if self.password is not None else base.password,
            read_only=base.read_only or self.read_only,
            host=base.host,
            port=base.port,
            database=base.database,
            username=base.username,
            ssl=base.ssl,
        )


pass_cli_context = click.make_pass_decorator(CLIContext)


def common_cli_options(func: F | None = None, *, read_only: bool = False) -> Any:
    """Decorator injecting shared CLI options and context creation.

    Usable bare or called; ``read_only=True`` makes every connection the
    command opens read-only.
    """

    def decorator(inner: F) -> F:
        @click.option("--config", "config_path", type=click.Path(path_type=str), help="Path to config file.")
        @click.option("--db", "db_path", type=click.Path(path_type=str), help="Database file to open.")
        @click.option("--profile", type=str, help="Saved connection profile from the config file.")
        @click.option(
            "--password",
            envvar="DBDESK_PASSWORD",
            type=str,
            help="Password for encrypted databases (or set DBDESK_PASSWORD).",
        )
        @click.option("--read-only", "read_only_flag", is_flag=True, help="Open databases read-only.")
        @click.option("--dry-run", is_flag=True, help="Preview actions without side effects.")
        @click.option("--verbose", is_flag=True, help="Enable verbose logging output.")
        @click.option("--log-sql", is_flag=True, help="Log every executed SQL statement to stderr.")
        @click.pass_context
        @functools.wraps(inner)
        def wrapper(
            ctx: click.Context,
            *args: Any,
            config_path: str | None = None,
            db_path: str | None = None,
            profile: str | None = None,
            password: str | None = None,
            read_only_flag: bool = False,
            dry_run: bool = False,
            verbose: bool = False,
            log_sql: bool = False,
            **kwargs: Any,
        ) -> Any:
            try:
                app_config = load_config(config_path)
            except ConfigurationError as exc:
                raise click.ClickException(str(exc)) from exc

            logger = get_logger(verbose=verbose, log_sql=log_sql or app_config.logging.log_sql)
            manager = ConnectionManager.from_config(app_config, logger=logger)
            ctx.call_on_close(manager.close_all)

            cli_ctx = CLIContext(
                config=app_config,
                db_path=Path(db_path).expanduser() if db_path else None,
                profile=profile,
                password=password,
                read_only=read_only or read_only_flag or app_config.connections.read_only,
                dry_run=dry_run,
                verbose=verbose,
                logger=logger,
                manager=manager,
            )
            ctx.obj = cli_ctx
            kwargs["cli_ctx"] = cli_ctx
            return inner(*args, **kwargs)

        return wrapper  # type: ignore[return-value]

    if func is not None:
        return decorator(func)
    return decorator


def format_database_error(exc: DatabaseError) -> str:
    lines = [f"[{exc.code.value}] {exc.message}"]
    for suggestion in exc.suggestions:
        lines.append(f"  - {suggestion}")
    if exc.documentation_url:
        lines.append(f"  See: {exc.documentation_url}")
    return "\n".join(lines)


def handle_cli_errors(func: F) -> F:
    """Convert project exceptions into Click-friendly errors."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except ConfigurationError as exc:
            raise click.ClickException(f"Configuration error: {exc}") from exc
        except DatabaseError as exc:
            raise click.ClickException(format_database_error(exc)) from exc
        except DbDeskError as exc:
            raise click.ClickException(str(exc)) from exc
        except click.ClickException:
            raise
        except Exception as exc:  # pragma: no cover
            raise click.ClickException(f"Unexpected error: {exc}") from exc

    return wrapper  # type: ignore[return-value]

"""Rich-based logging helpers shared across CLI tools."""

from __future__ import annotations

from dataclasses import dataclass

from rich.console import Console
from rich.theme import Theme
from rich.traceback import install

install(show_locals=False)

_THEME = Theme(
    {
        "info": "cyan",
        "warning": "yellow",
        "error": "bold red",
        "success": "bold green",
        "debug": "dim",
        "sql": "magenta",
    }
)

# Rich consoles separate stdout (for structured payloads) and stderr (for log chatter).
#
# Highlighting is disabled so connection ids and SQL text are printed verbatim; otherwise
# Rich may inject ANSI sequences into numbers and quotes when color output is forced.
_stdout_console = Console(theme=_THEME, highlight=False)
_stderr_console = Console(stderr=True, theme=_THEME, highlight=False)
_verbose_console = Console(stderr=True, theme=_THEME, highlight=False)


@dataclass(slots=True)
class Logger:
    """Lightweight logger facade backed by Rich consoles."""

    verbose: bool = False
    log_sql: bool = False

    @property
    def console(self) -> Console:
        return _stdout_console

    def info(self, message: str) -> None:
        _stderr_console.print(message, style="info", markup=False)

    def success(self, message: str) -> None:
        _stderr_console.print(message, style="success", markup=False)

    def warning(self, message: str) -> None:
        _stderr_console.print(message, style="warning", markup=False)

    def error(self, message: str) -> None:
        _stderr_console.print(message, style="error", markup=False)

    def debug(self, message: str) -> None:
        if self.verbose:
            _verbose_console.print(message, style="debug", markup=False)

    def sql(
        self,
        label: str,
        statement: str,
        *,
        duration_ms: float,
        success: bool,
        row_count: int | None = None,
        error: str | None = None,
    ) -> None:
        """Record one executed statement when SQL logging is enabled."""
        if not (self.verbose or self.log_sql):
            return
        status = "ok" if success else f"failed: {error}"
        rows = f" rows={row_count}" if row_count is not None else ""
        compact = " ".join(statement.split())
        _verbose_console.print(
            f"[{label}] {compact} ({duration_ms:.1f} ms{rows}) {status}",
            style="sql",
            markup=False,
        )


def get_logger(verbose: bool = False, log_sql: bool = False) -> Logger:
    """Return a configured Logger instance."""
    return Logger(verbose=verbose, log_sql=log_sql)

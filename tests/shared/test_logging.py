from __future__ import annotations

from dbdesk_cli.shared.logging import get_logger


def test_logger_info_routes_to_stderr(capfd) -> None:
    logger = get_logger()

    logger.info("structured log to stderr")

    captured = capfd.readouterr()
    assert "structured log to stderr" in captured.err
    assert "structured log to stderr" not in captured.out


def test_debug_requires_verbose(capfd) -> None:
    get_logger().debug("hidden detail")
    get_logger(verbose=True).debug("visible detail")

    captured = capfd.readouterr()
    assert "hidden detail" not in captured.err
    assert "visible detail" in captured.err


def test_sql_logging_is_opt_in(capfd) -> None:
    get_logger().sql("sqlite", "SELECT 1", duration_ms=0.4, success=True)
    assert capfd.readouterr().err == ""

    get_logger(log_sql=True).sql(
        "sqlite",
        "SELECT *\n  FROM [users]",
        duration_ms=1.25,
        success=True,
        row_count=3,
    )
    err = capfd.readouterr().err
    assert "[sqlite] SELECT * FROM [users]" in err
    assert "rows=3" in err
    assert "ok" in err


def test_sql_logging_reports_failures(capfd) -> None:
    get_logger(verbose=True).sql(
        "postgresql",
        "SELEC 1",
        duration_ms=2.0,
        success=False,
        error='syntax error at or near "SELEC"',
    )
    err = capfd.readouterr().err
    assert "failed: syntax error" in err

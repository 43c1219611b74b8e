"""
Structured logging infrastructure for dbgraph.

Logs go to stderr so that order listings printed to stdout stay clean.
Two formats are available: a human-readable one for interactive use and a
JSON one for machine consumption. Every message can carry keyword context
(table names, counts, timings). A ``schema`` entry in the context identifies
the analysis pass and is rendered as a prefix.
"""

import json
import logging
import sys
import time
from contextlib import contextmanager
from typing import Any

ROOT_LOGGER = "dbgraph"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_loggers: dict[str, logging.Logger] = {}


def _record_context(record: logging.LogRecord) -> dict[str, Any]:
    return getattr(record, "context", None) or {}


class StructuredFormatter(logging.Formatter):
    """
    JSON formatter, one object per line.

    Fields: timestamp, level, logger, message, plus ``schema`` and
    ``context`` when present and ``exception`` for errors.
    """

    def format(self, record: logging.LogRecord) -> str:
        context = dict(_record_context(record))
        log_data: dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if "schema" in context:
            log_data["schema"] = context.pop("schema")
        if context:
            log_data["context"] = context
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str, sort_keys=True)


class HumanReadableFormatter(logging.Formatter):
    """[TIMESTAMP] LEVEL: [schema] message (key=value, ...)"""

    def format(self, record: logging.LogRecord) -> str:
        context = dict(_record_context(record))
        schema = context.pop("schema", None)

        line = f"[{self.formatTime(record, self.datefmt)}] {record.levelname}: "
        if schema:
            line += f"[{schema}] "
        line += record.getMessage()
        if context:
            line += " (" + ", ".join(f"{k}={v}" for k, v in context.items()) + ")"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def setup_logging(
    verbose: bool = False,
    quiet: bool = False,
    structured: bool = False,
) -> None:
    """
    Configure the ``dbgraph`` logger hierarchy.

    Args:
        verbose: DEBUG and above (forced cycle breaks, each implied constraint)
        quiet: WARNING and above
        structured: JSON lines instead of the human-readable format
    """
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.WARNING
    else:
        level = logging.INFO

    formatter_class = StructuredFormatter if structured else HumanReadableFormatter
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(formatter_class(datefmt=DATE_FORMAT))

    root_logger = logging.getLogger(ROOT_LOGGER)
    root_logger.setLevel(logging.DEBUG)  # handler filters
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.propagate = False


def get_logger(name: str) -> "ContextLogger":
    """Get a ContextLogger under the ``dbgraph`` hierarchy (pass ``__name__``)."""
    if name not in _loggers:
        qualified = name if name.startswith(ROOT_LOGGER) else f"{ROOT_LOGGER}.{name}"
        _loggers[name] = logging.getLogger(qualified)

    return ContextLogger(_loggers[name])


class ContextLogger:
    """
    Logger wrapper that supports structured context.

    Keyword arguments passed to the log methods end up in the record's
    ``context`` attribute, which both formatters render.
    """

    def __init__(self, logger: logging.Logger, context: dict[str, Any] | None = None):
        self._logger = logger
        self._context: dict[str, Any] = dict(context or {})

    def _log(self, level: int, msg: str, context: dict[str, Any], exc_info: Any = None):
        if not self._logger.isEnabledFor(level):
            return
        merged = {**self._context, **context}
        self._logger.log(level, msg, extra={"context": merged}, exc_info=exc_info)

    def debug(self, msg: str, **context):
        self._log(logging.DEBUG, msg, context)

    def info(self, msg: str, **context):
        self._log(logging.INFO, msg, context)

    def warning(self, msg: str, **context):
        self._log(logging.WARNING, msg, context)

    def error(self, msg: str, exc_info: Any = None, **context):
        self._log(logging.ERROR, msg, context, exc_info=exc_info)

    def critical(self, msg: str, exc_info: Any = None, **context):
        self._log(logging.CRITICAL, msg, context, exc_info=exc_info)

    def with_context(self, **context) -> "ContextLogger":
        """
        Create a logger that adds ``context`` to every message.

        Example:
            pass_logger = logger.with_context(schema="public")
            pass_logger.info("Ordering tables")  # rendered as "[public] Ordering tables"
        """
        return ContextLogger(self._logger, {**self._context, **context})

    @contextmanager
    def timed_operation(self, operation: str, **context):
        """
        Log the start, completion and duration of a step.

        Failures are logged with the elapsed time and re-raised.

        Example:
            with logger.timed_operation("table_ordering", table_count=12):
                result = compute_order(graph)
        """
        start = time.perf_counter()
        self.debug(f"Starting {operation}", **context)

        try:
            yield
        except Exception as e:
            self.error(
                f"Failed {operation}",
                exc_info=True,
                duration_ms=_elapsed_ms(start),
                error=str(e),
                **context,
            )
            raise
        self.info(f"Completed {operation}", duration_ms=_elapsed_ms(start), **context)


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)


def log_analysis_start(logger: ContextLogger, database_url: str | None) -> None:
    """Log the start of a pass with the (masked) connection target."""
    if not database_url:
        logger.info("Starting schema analysis", source="supplied tables")
        return

    from dbgraph.utils.connection import parse_database_url

    config = parse_database_url(database_url)
    logger.info(
        "Starting schema analysis",
        database=config.display_name,
        db_type=config.db_type.value,
        url=config.masked_url,
    )


def log_analysis_complete(
    logger: ContextLogger,
    table_count: int,
    constraint_count: int,
    implied_count: int,
    recursive_count: int,
    duration_ms: int,
) -> None:
    logger.info(
        "Schema analysis complete",
        table_count=table_count,
        constraint_count=constraint_count,
        implied_count=implied_count,
        recursive_count=recursive_count,
        duration_ms=duration_ms,
    )

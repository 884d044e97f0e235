"""
Logging infrastructure for ReliefDesk.

Everything logs under the ``reliefdesk`` namespace. The console gets Rich
output; the optional log file gets one JSON object per line, carrying the
matching-run / match / client context attached by ``get_contextual_logger``.
"""

from __future__ import annotations

import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import orjson
from rich.console import Console

ROOT_LOGGER = "reliefdesk"

# Record attributes copied into JSON lines and console prefixes
CONTEXT_FIELDS = ("run_id", "match_id", "client_id", "opportunity_id", "action")

_LEVEL_STYLES = {
    logging.DEBUG: "dim",
    logging.WARNING: "yellow",
    logging.ERROR: "red",
    logging.CRITICAL: "bold red",
}

_PLAIN_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


class JSONFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        data: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc)
            .isoformat()
            .replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in CONTEXT_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                data[key] = value
        if record.exc_info:
            data["exception"] = self.formatException(record.exc_info)
        return orjson.dumps(data, default=str).decode("utf-8")


class RichConsoleHandler(logging.Handler):
    """Print records on a Rich console, prefixed with their run or match."""

    def __init__(self, console: Console | None = None, level: int = logging.INFO):
        super().__init__(level)
        self.console = console or Console(stderr=True)

    def emit(self, record: logging.LogRecord) -> None:
        try:
            style = _LEVEL_STYLES.get(record.levelno, "default")
            run_id = getattr(record, "run_id", None)
            match_id = getattr(record, "match_id", None)
            if run_id is not None:
                prefix = f"[cyan]run {run_id}[/cyan] "
            elif match_id is not None:
                prefix = f"[cyan]match {match_id}[/cyan] "
            else:
                prefix = ""
            self.console.print(f"{prefix}[{style}]{self.format(record)}[/{style}]", highlight=False)
            if record.exc_info:
                self.console.print_exception()
        except Exception:
            self.handleError(record)


def setup_logging(
    level: str = "INFO",
    log_file: Path | str | None = None,
    json_format: bool = True,
    rich_console: bool = True,
) -> logging.Logger:
    """Replace the handlers of the ``reliefdesk`` logger.

    The file handler, when configured, always records DEBUG and up.
    """
    numeric_level = logging.getLevelName(level.upper())
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(numeric_level)
    logger.handlers.clear()

    if rich_console:
        console_handler: logging.Handler = RichConsoleHandler(level=numeric_level)
        console_handler.setFormatter(logging.Formatter("%(message)s"))
    else:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(numeric_level)
        console_handler.setFormatter(logging.Formatter(_PLAIN_FORMAT))
    logger.addHandler(console_handler)

    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(path, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(
            JSONFormatter() if json_format else logging.Formatter(_PLAIN_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
        )
        logger.addHandler(file_handler)

    return logger


def get_logger(name: str | None = None) -> logging.Logger:
    """``reliefdesk.<name>``, or the package logger itself."""
    return logging.getLogger(f"{ROOT_LOGGER}.{name}" if name else ROOT_LOGGER)


class ContextualLogger(logging.LoggerAdapter):
    """Stamps fixed context (run, match, client...) onto every record."""

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        kwargs["extra"] = {**self.extra, **kwargs.get("extra", {})}
        return msg, kwargs


def get_contextual_logger(name: str | None = None, **context: Any) -> ContextualLogger:
    """Logger whose records carry ``context``; None values are dropped.

    Usage:
        log = get_contextual_logger("matching", run_id=run.id)
        log.info("Matching run started")
    """
    fields = {key: value for key, value in context.items() if value is not None}
    return ContextualLogger(get_logger(name), fields)

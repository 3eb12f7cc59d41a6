"""
Structured logging for the temporary storage system.

Log calls take keyword fields (``id=short_id(...)``, ``removed=3``) that end
up in the JSON file under ``extra``. The operation and component set with
log_context() are attached to every record emitted inside it, both in the
JSON file and as a prefix on the console.

Object ids are capabilities: only ever log them through short_id().
"""

from __future__ import annotations

import json
import logging
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Generator

from rich.console import Console
from rich.logging import RichHandler
from rich.text import Text

ROOT_LOGGER = "tempstore"

_CONTEXT: dict[str, ContextVar[str | None]] = {
    "operation": ContextVar("operation", default=None),
    "component": ContextVar("component", default=None),
}


def current_context() -> dict[str, str]:
    """Get the logging context fields that are currently set."""
    return {key: value for key, var in _CONTEXT.items() if (value := var.get())}


@contextmanager
def log_context(
    operation: str | None = None,
    component: str | None = None,
) -> Generator[None, None, None]:
    """Set the operation and component for records emitted in the block.

    Args:
        operation: e.g. "create" or "sweep".
        component: e.g. "gateway" or "sweeper".
    """
    tokens = [
        _CONTEXT[key].set(value)
        for key, value in (("operation", operation), ("component", component))
        if value is not None
    ]
    try:
        yield
    finally:
        for token in reversed(tokens):
            token.var.reset(token)


class JSONFormatter(logging.Formatter):
    """One JSON object per line, stamped with the record's own time."""

    def format(self, record: logging.LogRecord) -> str:
        log_obj: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **current_context(),
        }

        fields = getattr(record, "fields", None)
        if fields:
            log_obj["extra"] = fields

        if record.exc_info:
            log_obj["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_obj, default=str)


class ContextRichHandler(RichHandler):
    """Rich console handler prefixing the level with ``component:operation``."""

    def get_level_text(self, record: logging.LogRecord) -> Text:
        level_text = super().get_level_text(record)
        context = current_context()
        if not context:
            return level_text

        label = ":".join(context[key] for key in ("component", "operation") if key in context)
        level_text.append(f" {label}", style="cyan")
        return level_text


class ContextLogger:
    """Logger wrapper taking structured keyword fields."""

    def __init__(self, logger: logging.Logger) -> None:
        self._logger = logger

    def _log(self, level: int, msg: str, exc_info: bool = False, **fields: Any) -> None:
        if self._logger.isEnabledFor(level):
            self._logger.log(level, msg, exc_info=exc_info, extra={"fields": fields})

    def debug(self, msg: str, **fields: Any) -> None:
        self._log(logging.DEBUG, msg, **fields)

    def info(self, msg: str, **fields: Any) -> None:
        self._log(logging.INFO, msg, **fields)

    def warning(self, msg: str, **fields: Any) -> None:
        self._log(logging.WARNING, msg, **fields)

    def error(self, msg: str, exc_info: bool = False, **fields: Any) -> None:
        self._log(logging.ERROR, msg, exc_info=exc_info, **fields)

    def critical(self, msg: str, exc_info: bool = False, **fields: Any) -> None:
        self._log(logging.CRITICAL, msg, exc_info=exc_info, **fields)


_setup_done: bool = False


def setup_logging(
    log_level: str = "INFO",
    log_file: Path | None = None,
    console_output: bool = True,
) -> None:
    """Configure the ``tempstore`` logger tree.

    Args:
        log_level: Console level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_file: Optional JSON lines file; it always records DEBUG and up.
        console_output: Whether to log to stderr through rich.
    """
    global _setup_done

    level = getattr(logging, log_level.upper())
    root_logger = logging.getLogger(ROOT_LOGGER)
    root_logger.handlers.clear()
    root_logger.propagate = False

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
        file_handler.setFormatter(JSONFormatter())
        file_handler.setLevel(logging.DEBUG)
        root_logger.addHandler(file_handler)

    if console_output:
        rich_handler = ContextRichHandler(
            console=Console(stderr=True),
            show_time=True,
            show_path=False,
            rich_tracebacks=True,
        )
        rich_handler.setLevel(level)
        root_logger.addHandler(rich_handler)

    # The file handler wants DEBUG even when the console is quieter
    root_logger.setLevel(logging.DEBUG if log_file else level)

    logging.getLogger("aiosqlite").setLevel(logging.WARNING)

    _setup_done = True


def get_logger(name: str) -> ContextLogger:
    """Get a context-aware logger under the ``tempstore`` tree."""
    if not _setup_done:
        setup_logging()

    if not name.startswith(ROOT_LOGGER):
        name = f"{ROOT_LOGGER}.{name}"

    return ContextLogger(logging.getLogger(name))


def short_id(object_id: object) -> str:
    """Truncate an object id for log output."""
    if not object_id:
        return "-"
    return str(object_id)[:8]

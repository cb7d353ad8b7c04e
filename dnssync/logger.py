from __future__ import annotations

import logging
import logging.config
import time
from contextlib import contextmanager
from contextvars import ContextVar
from pathlib import Path
from time import perf_counter
from types import TracebackType
from typing import Any, Dict, Iterator, Optional

_ROOT = "dnssync"

_SYMBOLS: Dict[int, str] = {
    logging.DEBUG: "(?)",
    logging.INFO: "(*)",
    logging.WARNING: "(!)",
    logging.ERROR: "(x)",
    logging.CRITICAL: "(X)",
}

# Fields attached to every record emitted inside a log_context() block.
_context_fields: ContextVar[Dict[str, Any]] = ContextVar("dnssync_log_fields", default={})

_FORWARDED_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access", "sqlalchemy.engine")


def _render(value: Any) -> str:
    if isinstance(value, (list, tuple, set, frozenset)):
        return ",".join(str(item) for item in value)
    return str(value)


class DnsSyncFormatter(logging.Formatter):
    """Renders ``date time | LEVEL | category | (sym) event | message | key: value``."""

    converter = time.gmtime
    default_time_format = "%Y-%m-%d %H:%M:%S"
    default_msec_format = "%s.%03d"

    def format(self, record: logging.LogRecord) -> str:
        category = record.name
        if category.startswith(_ROOT + "."):
            category = category[len(_ROOT) + 1 :]
        symbol = _SYMBOLS.get(record.levelno, "(?)")
        event = getattr(record, "event", "")
        fields = dict(getattr(record, "fields", {}))
        message = record.getMessage()

        if event == "operation.step":
            head = f"{symbol} >> {fields.pop('step', 'step')}"
        else:
            head = f"{symbol} {event or message}"

        parts = [self.formatTime(record), f"{record.levelname:<8}", category, head]
        if event and message:
            parts.append(message)
        parts.extend(f"{key}: {_render(value)}" for key, value in fields.items())

        text = " | ".join(parts)
        if record.exc_info:
            text = f"{text}\n{self.formatException(record.exc_info)}"
        return text


@contextmanager
def log_context(**fields: Any) -> Iterator[None]:
    token = _context_fields.set({**_context_fields.get(), **fields})
    try:
        yield
    finally:
        _context_fields.reset(token)


class Operation:
    """Logs the start and outcome of a unit of work, with steps in between.

    Works as ``with`` for synchronous callers and ``async with`` otherwise.
    """

    def __init__(self, logger: "BoundLogger", name: str, message: str, fields: Dict[str, Any]) -> None:
        self.name = name
        self._logger = logger
        self._message = message
        self._fields = fields
        self._started = 0.0

    def step(self, step: str, message: str, **fields: Any) -> None:
        self._logger.info("operation.step", message, operation=self.name, step=step, **fields)

    def __enter__(self) -> "Operation":
        self._started = perf_counter()
        self._logger.info("operation.start", self._message, operation=self.name, **self._fields)
        return self

    def __exit__(
        self,
        exc_type: Optional[type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> None:
        elapsed_ms = round((perf_counter() - self._started) * 1000, 1)
        if exc_type is None:
            self._logger.info("operation.complete", "Completed", operation=self.name, duration_ms=elapsed_ms)
            return
        self._logger.log(
            logging.ERROR,
            "operation.error",
            "Failed",
            exc_info=(exc_type, exc, tb),
            operation=self.name,
            duration_ms=elapsed_ms,
            error_type=exc_type.__name__,
        )

    async def __aenter__(self) -> "Operation":
        return self.__enter__()

    async def __aexit__(
        self,
        exc_type: Optional[type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> None:
        self.__exit__(exc_type, exc, tb)


class BoundLogger:
    """Event-style logging on the ``dnssync.<category>`` logger."""

    def __init__(self, category: str) -> None:
        self._logger = logging.getLogger(f"{_ROOT}.{category}")

    def operation(self, name: str, message: str, **fields: Any) -> Operation:
        return Operation(self, name, message, fields)

    def debug(self, event: str, message: str, **fields: Any) -> None:
        self.log(logging.DEBUG, event, message, **fields)

    def info(self, event: str, message: str, **fields: Any) -> None:
        self.log(logging.INFO, event, message, **fields)

    def warning(self, event: str, message: str, **fields: Any) -> None:
        self.log(logging.WARNING, event, message, **fields)

    def error(self, event: str, message: str, **fields: Any) -> None:
        self.log(logging.ERROR, event, message, **fields)

    def exception(self, event: str, message: str, **fields: Any) -> None:
        self.log(logging.ERROR, event, message, exc_info=True, **fields)

    def log(self, level: int, event: str, message: str, *, exc_info: Any = None, **fields: Any) -> None:
        if not self._logger.isEnabledFor(level):
            return
        self._logger.log(
            level,
            message,
            exc_info=exc_info,
            extra={"event": event, "fields": {**_context_fields.get(), **fields}},
        )


def configure_logging(log_level: str, log_file: Optional[str] = None) -> None:
    handlers: Dict[str, Dict[str, Any]] = {
        "console": {"class": "logging.StreamHandler", "formatter": "dnssync"},
    }
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers["file"] = {"class": "logging.FileHandler", "filename": log_file, "formatter": "dnssync"}

    loggers: Dict[str, Dict[str, Any]] = {_ROOT: {"level": log_level}}
    for name in _FORWARDED_LOGGERS:
        loggers[name] = {"handlers": [], "propagate": True}

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {"dnssync": {"()": DnsSyncFormatter}},
            "handlers": handlers,
            "root": {"level": log_level, "handlers": list(handlers)},
            "loggers": loggers,
        }
    )


def get_logger(category: str) -> BoundLogger:
    return BoundLogger(category)

"""
Structured, non-blocking logging for the GGE Tracker API.

Records are handed to a bounded in-memory queue by the emitting coroutine and
written to stdout by a background ``QueueListener`` thread, so a slow console
never stalls the event loop. Before a record is queued, ``ContextFilter``
stamps it with the fields bound by ``LogContext`` in the current task:

    request_id   one HTTP call, end to end
    server       game server the call targets (DE1, FR1, ...)
    route        API path
    component    top-level package, unless bound explicitly
    operation    service operation name

Output format depends on ``Config``:

- production, or ``LOG_JSON=true``: one JSON object per line
- otherwise: pipe-separated text, colored when stdout is a terminal

There is no file sink; the container runtime collects stdout.
"""

from __future__ import annotations

import json
import logging
import queue
import sys
import uuid
from contextvars import ContextVar, Token
from dataclasses import dataclass
from datetime import datetime, timezone
from logging import Logger
from logging.handlers import QueueHandler, QueueListener
from typing import Any, Dict, Optional, Tuple

from ggetracker.core.config.config import Config

CONTEXT_FIELDS: Tuple[str, ...] = ("request_id", "server", "route", "component", "operation")
UNSET = "N/A"

TEXT_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)-30s | [%(request_id)s:%(server)s] | %(message)s"
TEXT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
QUEUE_CAPACITY = 10_000

# Third-party loggers that are too chatty at INFO
QUIET_LOGGERS = ("asyncio", "httpx", "httpcore", "sqlalchemy.engine", "uvicorn.access")

_context: ContextVar[Dict[str, Any]] = ContextVar("ggetracker_log_context", default={})

# Attributes every LogRecord carries; anything else arrived through `extra=`
_RECORD_ATTRS = frozenset(logging.LogRecord("", 0, "", 0, "", None, None).__dict__) | {
    "message",
    "asctime",
    "taskName",
}


@dataclass(frozen=True, slots=True)
class LoggerConfig:
    """Output settings resolved from Config when logging starts."""

    level: int
    json_output: bool
    colors: bool
    environment: str

    @classmethod
    def from_config(cls) -> "LoggerConfig":
        environment = str(Config.ENVIRONMENT).lower()
        level = logging.getLevelName(str(Config.LOG_LEVEL).upper())
        if not isinstance(level, int):
            level = logging.INFO

        json_output = Config.LOG_JSON if Config.LOG_JSON is not None else environment == "production"
        colors = not json_output and bool(Config.LOG_COLORS) and sys.stdout.isatty()
        return cls(level=level, json_output=json_output, colors=colors, environment=environment)


@dataclass(frozen=True, slots=True)
class LoggingHealth:
    initialized: bool
    queue_size: int
    queue_max_size: int
    records_enqueued: int
    records_dropped: int
    listener_errors: int


class _State:
    listener: Optional[QueueListener] = None
    records: Optional["queue.Queue[logging.LogRecord]"] = None
    enqueued = 0
    dropped = 0
    listener_errors = 0


# ----------------------------------------------------------------------------
# Filter and formatters
# ----------------------------------------------------------------------------


class ContextFilter(logging.Filter):
    """Copy the bound log context onto records; `extra=` values take precedence."""

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        bound = _context.get()
        for field in CONTEXT_FIELDS:
            if hasattr(record, field):
                continue
            value = bound.get(field)
            if value is None and field == "component":
                value = record.name.partition(".")[0]
            setattr(record, field, UNSET if value is None else value)
        return True


class ColoredFormatter(logging.Formatter):
    LEVEL_COLORS: Dict[int, str] = {
        logging.DEBUG: "\033[90m",
        logging.INFO: "\033[94m",
        logging.WARNING: "\033[93m",
        logging.ERROR: "\033[91m",
        logging.CRITICAL: "\033[1;91m",
    }

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        color = self.LEVEL_COLORS.get(record.levelno)
        if color is None:
            return super().format(record)

        plain = record.levelname
        record.levelname = f"{color}{plain}\033[0m"
        try:
            return super().format(record)
        finally:
            record.levelname = plain


class JSONFormatter(logging.Formatter):
    """
    One JSON document per record.

    Context fields appear at the top level when set; everything passed via
    ``extra=`` is nested under ``"extra"``.
    """

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        document: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        for field in CONTEXT_FIELDS:
            value = getattr(record, field, None)
            if value is not None and value != UNSET:
                document[field] = value

        if record.exc_info:
            document["exception"] = self.formatException(record.exc_info)

        extra = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _RECORD_ATTRS and key not in CONTEXT_FIELDS and not key.startswith("_")
        }
        if extra:
            document["extra"] = extra

        return json.dumps(document, ensure_ascii=False, default=str)


# ----------------------------------------------------------------------------
# Queue plumbing
# ----------------------------------------------------------------------------


class _DroppingQueueHandler(QueueHandler):
    """Never blocks: a full queue drops the record and counts it."""

    def enqueue(self, record: logging.LogRecord) -> None:  # type: ignore[override]
        _State.enqueued += 1
        try:
            self.queue.put_nowait(record)
        except queue.Full:
            _State.dropped += 1
            sys.stderr.write("ggetracker: log queue full, record dropped\n")


class _CountingQueueListener(QueueListener):
    def handleError(self, record: logging.LogRecord) -> None:  # type: ignore[override]
        _State.listener_errors += 1
        sys.stderr.write("ggetracker: log handler failed on a record\n")


def _console_handler(settings: LoggerConfig) -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(settings.level)
    if settings.json_output:
        handler.setFormatter(JSONFormatter())
    elif settings.colors:
        handler.setFormatter(ColoredFormatter(TEXT_FORMAT, TEXT_DATE_FORMAT))
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT, TEXT_DATE_FORMAT))
    return handler


# ----------------------------------------------------------------------------
# Lifecycle
# ----------------------------------------------------------------------------


def _is_initialized() -> bool:
    return _State.listener is not None


def setup_logging() -> None:
    """Install the queue handler on the root logger. Idempotent."""
    if _is_initialized():
        return

    settings = LoggerConfig.from_config()
    _State.enqueued = _State.dropped = _State.listener_errors = 0
    _State.records = queue.Queue(QUEUE_CAPACITY)

    _State.listener = _CountingQueueListener(
        _State.records,
        _console_handler(settings),
        respect_handler_level=True,
    )
    _State.listener.start()

    handler = _DroppingQueueHandler(_State.records)
    handler.setLevel(settings.level)
    # Runs in the emitting task, where the ContextVar is still visible
    handler.addFilter(ContextFilter())

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(settings.level)
    root.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger(__name__).info(
        "Logging initialized",
        extra={
            "environment": settings.environment,
            "log_level": logging.getLevelName(settings.level),
            "json": settings.json_output,
            "colors": settings.colors,
        },
    )


def shutdown_logging() -> None:
    """Flush pending records and detach the root handlers."""
    if not _is_initialized():
        return

    logging.getLogger(__name__).info("Logging shutting down")
    listener, _State.listener = _State.listener, None
    try:
        listener.stop()
    except Exception as exc:
        sys.stderr.write(f"ggetracker: log listener did not stop cleanly: {exc}\n")

    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    _State.records = None


def get_logging_health() -> LoggingHealth:
    records = _State.records
    return LoggingHealth(
        initialized=_is_initialized(),
        queue_size=records.qsize() if records is not None else 0,
        queue_max_size=records.maxsize if records is not None else 0,
        records_enqueued=_State.enqueued,
        records_dropped=_State.dropped,
        listener_errors=_State.listener_errors,
    )


# ----------------------------------------------------------------------------
# Public API
# ----------------------------------------------------------------------------


def get_logger(name: str) -> Logger:
    return logging.getLogger(name)


class LogContext:
    """
    Bind fields to every record logged inside the block.

    A request id is generated when none is given.

    Example
    -------
    >>> async with LogContext(route="/api/v1/players", server="DE1"):
    ...     logger.info("Listing players")
    """

    def __init__(
        self,
        request_id: Optional[str] = None,
        server: Optional[str] = None,
        route: Optional[str] = None,
        component: Optional[str] = None,
        operation: Optional[str] = None,
        **extra: Any,
    ) -> None:
        self.context: Dict[str, Any] = {
            "request_id": request_id or uuid.uuid4().hex[:8],
            "server": server or UNSET,
            "route": route or UNSET,
            "component": component,
            "operation": operation,
            **extra,
        }
        self._token: Optional[Token[Dict[str, Any]]] = None

    def __enter__(self) -> "LogContext":
        self._token = _context.set(self.context)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._token is not None:
            _context.reset(self._token)
            self._token = None

    async def __aenter__(self) -> "LogContext":
        return self.__enter__()

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self.__exit__(exc_type, exc_val, exc_tb)


def set_log_context(**fields: Any) -> None:
    """Merge fields into the current context; None values are ignored."""
    merged = dict(_context.get())
    merged.update({key: value for key, value in fields.items() if value is not None})
    _context.set(merged)


def clear_log_context() -> None:
    _context.set({})


def get_log_context() -> Dict[str, Any]:
    return dict(_context.get())


setup_logging()

"""structlog + stdlib logging for the addon process.

Application code logs through structlog, while uvicorn and httpx log
through stdlib. Both are rendered by one ProcessorFormatter. Records are
handed to a QueueListener thread so request handlers never wait on
stream I/O.
"""

from __future__ import annotations

import atexit
import copy
import logging
import logging.config
import queue
import re
import sys
import time
from datetime import datetime, timezone
from logging.handlers import QueueHandler, QueueListener
from typing import Any

import structlog

from magnetarr.infrastructure.config.schema import AppConfig

log = structlog.get_logger(__name__)

# Request-level chatter from the shared client; WARNING unless DEBUG.
_NOISY_LOGGERS = ("httpx", "httpcore")
_UVICORN_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access")

# Premiumize takes its key as a query parameter, so it shows up in URLs.
_SECRET_QUERY_RE = re.compile(r"(?i)\b(apikey|api_key|access_token)=([^&\s\"']+)")
_SECRET_FIELDS = frozenset({"api_key", "apikey", "authorization"})


def redact_secrets(_: Any, __: Any, event_dict: dict[str, Any]) -> dict[str, Any]:
    """Mask debrid credentials in query strings and credential fields."""
    for key, value in event_dict.items():
        if key.lower() in _SECRET_FIELDS and value:
            event_dict[key] = "***"
        elif isinstance(value, str) and "=" in value:
            event_dict[key] = _SECRET_QUERY_RE.sub(r"\1=***", value)
    return event_dict


def _drop_color_message(_: Any, __: Any, event_dict: dict[str, Any]) -> dict[str, Any]:
    # uvicorn sends an ANSI copy of every message
    event_dict.pop("color_message", None)
    return event_dict


def _timestamp(_: Any, __: Any, event_dict: dict[str, Any]) -> dict[str, Any]:
    """UTC timestamp of the original event.

    Foreign records are rendered later on the listener thread, so they
    use ``LogRecord.created`` rather than the render time.
    """
    record = event_dict.get("_record")
    created = record.created if isinstance(record, logging.LogRecord) else time.time()
    event_dict["timestamp"] = datetime.fromtimestamp(created, tz=timezone.utc).isoformat(
        timespec="milliseconds"
    )
    return event_dict


def _shared_processors() -> list[structlog.typing.Processor]:
    """Applied to structlog events and to stdlib records alike."""
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        _timestamp,
        _drop_color_message,
        redact_secrets,
    ]


def _renderer(config: AppConfig) -> structlog.typing.Processor:
    if config.log_format == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())


def _formatter_kwargs(config: AppConfig) -> dict[str, Any]:
    return {
        "foreign_pre_chain": _shared_processors(),
        "processors": [
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            _renderer(config),
        ],
    }


def build_logging_config(config: AppConfig) -> dict[str, Any]:
    """dictConfig where every handler renders through structlog."""
    level = config.log_level
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "structlog": {
                "()": structlog.stdlib.ProcessorFormatter,
                **_formatter_kwargs(config),
            },
        },
        "handlers": {
            "stderr": {
                "class": "logging.StreamHandler",
                "formatter": "structlog",
                "stream": "ext://sys.stderr",
            },
        },
        "loggers": {
            name: {"handlers": ["stderr"], "level": level, "propagate": False}
            for name in _UVICORN_LOGGERS
        },
        "root": {"handlers": ["stderr"], "level": level},
    }


class _PassThroughQueueHandler(QueueHandler):
    def prepare(self, record: logging.LogRecord) -> logging.LogRecord:
        # Rendering happens on the listener thread; record.msg may be
        # structlog's event dict and must reach the formatter untouched.
        return copy.copy(record)


class _LogPump:
    """Owns the QueueListener draining the root logger's queue."""

    def __init__(self) -> None:
        self._listener: QueueListener | None = None

    def start(self, formatter: logging.Formatter) -> QueueHandler:
        self.stop()

        below_error = logging.StreamHandler(sys.stdout)
        below_error.addFilter(lambda record: record.levelno < logging.ERROR)
        errors = logging.StreamHandler(sys.stderr)
        errors.setLevel(logging.ERROR)
        for handler in (below_error, errors):
            handler.setFormatter(formatter)

        records: queue.SimpleQueue[logging.LogRecord] = queue.SimpleQueue()
        self._listener = QueueListener(
            records, below_error, errors, respect_handler_level=True
        )
        self._listener.start()
        return _PassThroughQueueHandler(records)

    def stop(self) -> None:
        listener, self._listener = self._listener, None
        if listener is not None:
            listener.stop()


_PUMP = _LogPump()
atexit.register(_PUMP.stop)


def stop_logging() -> None:
    """Flush and stop the background listener."""
    _PUMP.stop()


def configure_logging(config: AppConfig) -> dict[str, Any]:
    """Configure structlog and stdlib logging for ``config``.

    uvicorn loggers are routed through the root queue, so the server must
    be started with ``log_config=None``. Returns the dictConfig applied
    before the queue was installed.
    """
    structlog.configure(
        processors=[
            *_shared_processors(),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    cfg = build_logging_config(config)
    logging.config.dictConfig(cfg)

    formatter = structlog.stdlib.ProcessorFormatter(**_formatter_kwargs(config))
    root = logging.getLogger()
    root.handlers[:] = [_PUMP.start(formatter)]
    root.setLevel(config.log_level)

    for name in _UVICORN_LOGGERS:
        logger = logging.getLogger(name)
        logger.handlers.clear()
        logger.propagate = True

    http_level = logging.DEBUG if config.log_level == "DEBUG" else logging.WARNING
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(http_level)

    log.info(
        "logging_configured", log_format=config.log_format, log_level=config.log_level
    )
    return cfg

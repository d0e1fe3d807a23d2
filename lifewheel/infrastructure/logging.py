"""
Logging for the wheel of life service.

Handlers come from :class:`LoggingConfig`; the application environment
tightens them (no file or console output under ``testing``, JSON only in
``production``). The acting user, assessment session and operation travel in
a context variable, so concurrent requests on one event loop never see each
other's context.
"""

from __future__ import annotations

import json
import logging
import logging.config
import time
from collections.abc import Callable
from contextvars import ContextVar, Token
from datetime import datetime, timezone
from functools import wraps
from pathlib import Path
from types import TracebackType
from typing import Any, ParamSpec, TypeVar

from .config import LoggingConfig

P = ParamSpec("P")
R = TypeVar("R")

ROOT_LOGGER = "lifewheel"
CONTEXT_FIELDS = ("user_id", "session_id", "entry_id", "generation", "operation")
QUIET_LOGGERS = ("sqlalchemy.engine", "httpx", "anthropic")

ENVIRONMENT_OVERRIDES: dict[str, dict[str, Any]] = {
    "development": {"structured": False},
    "testing": {"file_path": None, "console_enabled": False},
    "production": {"structured": True},
}

_log_context: ContextVar[dict[str, Any]] = ContextVar("lifewheel_log_context", default={})


class StructuredFormatter(logging.Formatter):
    """One JSON object per record, with the context fields that are set."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}:{record.funcName}:{record.lineno}",
        }
        payload.update(
            {key: getattr(record, key) for key in CONTEXT_FIELDS if hasattr(record, key)}
        )
        if record.exc_info and record.exc_info[0] is not None:
            payload["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "traceback": self.formatException(record.exc_info),
            }
        return json.dumps(payload, ensure_ascii=False, default=str)


class ContextFilter(logging.Filter):
    """Copies the current log context onto each record without overriding ``extra``."""

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in _log_context.get().items():
            if not hasattr(record, key):
                setattr(record, key, value)
        return True


def effective_logging_config(config: LoggingConfig, environment: str) -> LoggingConfig:
    return config.model_copy(update=ENVIRONMENT_OVERRIDES.get(environment, {}))


def setup_logging(config: LoggingConfig) -> None:
    """
    Install handlers for the ``lifewheel`` logger tree from ``config``.

    Example:
        >>> setup_logging(LoggingConfig(level="DEBUG", file_path=None))
    """
    handlers: dict[str, dict[str, Any]] = {}
    if config.console_enabled:
        handlers["console"] = {
            "class": "logging.StreamHandler",
            "formatter": "structured" if config.structured else "standard",
            "filters": ["context"],
            "stream": "ext://sys.stdout",
        }
    if config.file_path:
        Path(config.file_path).parent.mkdir(parents=True, exist_ok=True)
        handlers["file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "formatter": "structured",
            "filters": ["context"],
            "filename": config.file_path,
            "maxBytes": config.max_bytes,
            "backupCount": config.backup_count,
            "encoding": "utf-8",
        }
    if not handlers:
        handlers["null"] = {"class": "logging.NullHandler"}

    names = list(handlers)
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "structured": {"()": StructuredFormatter},
                "standard": {
                    "format": "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
                    "datefmt": "%Y-%m-%d %H:%M:%S",
                },
            },
            "filters": {"context": {"()": ContextFilter}},
            "handlers": handlers,
            "loggers": {
                ROOT_LOGGER: {"level": config.level, "handlers": names, "propagate": False},
                **{
                    name: {"level": "WARNING", "handlers": names, "propagate": False}
                    for name in QUIET_LOGGERS
                },
            },
        }
    )


def configure_logging(config: LoggingConfig, environment: str = "development") -> LoggingConfig:
    """Apply ``config`` adjusted for ``environment``; returns what was applied."""
    effective = effective_logging_config(config, environment)
    setup_logging(effective)
    get_logger(__name__).info(
        "Logging configured for %s (level=%s, file=%s)",
        environment,
        effective.level,
        effective.file_path or "-",
    )
    return effective


def get_logger(name: str) -> logging.Logger:
    """
    Logger under the ``lifewheel`` tree.

    Example:
        >>> get_logger("session").name
        'lifewheel.session'
    """
    if name == ROOT_LOGGER or name.startswith(ROOT_LOGGER + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")


def current_context() -> dict[str, Any]:
    return dict(_log_context.get())


def set_context(**kwargs: Any) -> None:
    """
    Add fields to the log context of the current task or request.

    Example:
        >>> set_context(user_id="2f1c...", session_id="a9e0...")
    """
    _log_context.set({**_log_context.get(), **kwargs})


def clear_context() -> None:
    _log_context.set({})


class LogContext:
    """Fields that apply only inside a ``with`` block."""

    def __init__(self, **kwargs: Any):
        self.fields = kwargs
        self._token: Token[dict[str, Any]] | None = None

    def __enter__(self) -> LogContext:
        self._token = _log_context.set({**_log_context.get(), **self.fields})
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        if self._token is not None:
            _log_context.reset(self._token)
            self._token = None


def log_operation(
    operation: str, logger: logging.Logger | None = None
) -> Callable[[Callable[P, R]], Callable[P, R]]:
    """
    Log start, completion time and failure of an application operation.

    Example:
        >>> @log_operation("register_user")
        ... def register_user(session, data):
        ...     ...
    """

    def decorator(func: Callable[P, R]) -> Callable[P, R]:
        @wraps(func)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            op_logger = logger or get_logger(func.__module__)
            with LogContext(operation=operation):
                started = time.perf_counter()
                op_logger.debug("%s started", operation)
                try:
                    result = func(*args, **kwargs)
                except Exception:
                    op_logger.exception(
                        "%s failed after %.3fs", operation, time.perf_counter() - started
                    )
                    raise
                op_logger.info("%s done in %.3fs", operation, time.perf_counter() - started)
                return result

        return wrapper

    return decorator


def log_database_operation(operation: str) -> Callable[[Callable[P, R]], Callable[P, R]]:
    """
    Time a store call under the ``lifewheel.database`` logger.

    Example:
        >>> @log_database_operation("history.append")
        ... def append(self, entry):
        ...     ...
    """

    def decorator(func: Callable[P, R]) -> Callable[P, R]:
        @wraps(func)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            db_logger = get_logger("database")
            with LogContext(operation=f"db.{operation}"):
                started = time.perf_counter()
                try:
                    result = func(*args, **kwargs)
                except Exception:
                    db_logger.error(
                        "%s failed after %.3fs",
                        operation,
                        time.perf_counter() - started,
                        exc_info=True,
                    )
                    raise
                db_logger.debug("%s took %.3fs", operation, time.perf_counter() - started)
                return result

        return wrapper

    return decorator

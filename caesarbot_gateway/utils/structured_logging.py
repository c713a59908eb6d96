"""
Structured logging with correlation IDs and provider call context.

Each CLI invocation (or any coroutine decorated with ``with_correlation_id``)
gets one id, so every provider call it makes can be grouped in the logs.
"""

import asyncio
import functools
import json
import logging
import logging.handlers
import sys
import uuid
from contextvars import ContextVar
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from ..config.models import LoggingConfig

correlation_id: ContextVar[Optional[str]] = ContextVar('correlation_id', default=None)

# Promoted to top-level keys of a JSON log line
CALL_FIELDS = ('provider', 'operation', 'wallet_address', 'mint', 'attempt', 'code')

_STANDARD_RECORD_FIELDS = set(vars(logging.LogRecord('', 0, '', 0, '', (), None))) | {
    'message', 'asctime', 'correlation_id', 'taskName'
}

NOISY_LOGGERS = ('aiohttp', 'asyncio', 'watchdog')

TEXT_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - [%(correlation_id)s] %(message)s'


@dataclass
class LogContext:
    """Provider call context attached to every record of a ``ContextualLogger``."""
    provider: Optional[str] = None
    operation: Optional[str] = None
    wallet_address: Optional[str] = None
    mint: Optional[str] = None
    additional_fields: Dict[str, Any] = field(default_factory=dict)

    def as_extra(self) -> Dict[str, Any]:
        values = {k: v for k, v in asdict(self).items() if k != 'additional_fields' and v is not None}
        values.update(self.additional_fields)
        return values


class CorrelationIdFilter(logging.Filter):
    """Stamp records with the current correlation id ("-" outside a request)."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = correlation_id.get() or "-"
        return True


class StructuredFormatter(logging.Formatter):
    """
    One JSON object per record.

    Call context (``provider``, ``operation``, ``wallet_address``, ``mint``,
    ``attempt``, ``code``) is written at the top level; any other ``extra=``
    values go under ``"extra"``, stringified when not JSON serializable.
    """

    def __init__(self, include_extra_fields: bool = True):
        super().__init__()
        self.include_extra_fields = include_extra_fields

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "correlation_id": getattr(record, 'correlation_id', None) or "-",
        }

        for name in CALL_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                entry[name] = value

        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "traceback": self.formatException(record.exc_info),
            }

        if self.include_extra_fields:
            extra = {
                key: _json_safe(value)
                for key, value in record.__dict__.items()
                if key not in _STANDARD_RECORD_FIELDS and key not in CALL_FIELDS
            }
            if extra:
                entry["extra"] = extra

        return json.dumps(entry, ensure_ascii=False)


def _json_safe(value: Any) -> Any:
    try:
        json.dumps(value)
    except (TypeError, ValueError):
        return str(value)
    return value


class ContextualLogger:
    """
    Logger bound to a fixed ``LogContext``.

    Adapters keep one per provider and derive a per-call logger with
    ``with_context(operation=...)``.
    """

    def __init__(self, name: str, context: Optional[LogContext] = None):
        self.logger = logging.getLogger(name)
        self.context = context or LogContext()

    def log(self, level: int, message: str, *args, exc_info: Any = None, **fields) -> None:
        if not self.logger.isEnabledFor(level):
            return
        extra = self.context.as_extra()
        extra.update(fields)
        self.logger.log(level, message, *args, exc_info=exc_info, extra=extra)

    def debug(self, message: str, *args, **fields) -> None:
        self.log(logging.DEBUG, message, *args, **fields)

    def info(self, message: str, *args, **fields) -> None:
        self.log(logging.INFO, message, *args, **fields)

    def warning(self, message: str, *args, **fields) -> None:
        self.log(logging.WARNING, message, *args, **fields)

    def error(self, message: str, *args, **fields) -> None:
        self.log(logging.ERROR, message, *args, **fields)

    def exception(self, message: str, *args, **fields) -> None:
        self.log(logging.ERROR, message, *args, exc_info=True, **fields)

    def with_context(self, **updates) -> 'ContextualLogger':
        """Derive a logger whose context is this one's plus ``updates``."""
        additional = {**self.context.additional_fields, **updates.pop('additional_fields', {})}
        values = {k: v for k, v in asdict(self.context).items() if k != 'additional_fields'}
        values.update(updates)
        return ContextualLogger(self.logger.name, LogContext(additional_fields=additional, **values))


class LoggingManager:
    """
    Configures the root logger once per process: a stderr handler, an
    optional rotating file, and plain text or JSON lines.
    """

    def __init__(self):
        self._configured = False
        self._handlers: Dict[str, logging.Handler] = {}

    @property
    def configured(self) -> bool:
        return self._configured

    def setup_logging(
        self,
        log_level: str = "INFO",
        log_file: Optional[str] = None,
        max_file_size: int = 10 * 1024 * 1024,
        backup_count: int = 5,
        console_output: bool = True,
        structured_format: bool = False,
        force: bool = False
    ) -> None:
        """
        Install handlers on the root logger.

        Args:
            log_level: DEBUG, INFO, WARNING, ERROR or CRITICAL
            log_file: Rotating log file path, created with its directory
            max_file_size: Bytes before the file rotates
            backup_count: Rotated files to keep
            console_output: Log to stderr; stdout carries command output
            structured_format: JSON lines instead of plain text
            force: Replace handlers installed by an earlier call
        """
        if self._configured and not force:
            return

        root = logging.getLogger()
        root.setLevel(getattr(logging, log_level.upper()))

        for handler in self._handlers.values():
            root.removeHandler(handler)
            handler.close()
        self._handlers.clear()

        formatter = StructuredFormatter() if structured_format else logging.Formatter(TEXT_FORMAT)

        if console_output:
            self._install(root, 'console', logging.StreamHandler(sys.stderr), formatter)

        if log_file:
            Path(log_file).parent.mkdir(parents=True, exist_ok=True)
            self._install(root, 'file', logging.handlers.RotatingFileHandler(
                log_file, maxBytes=max_file_size, backupCount=backup_count, encoding='utf-8'
            ), formatter)

        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

        self._configured = True
        logging.getLogger(__name__).debug(
            f"Logging configured (level={log_level}, file={log_file}, structured={structured_format})"
        )

    def _install(self, root: logging.Logger, name: str, handler: logging.Handler,
                 formatter: logging.Formatter) -> None:
        handler.setFormatter(formatter)
        handler.addFilter(CorrelationIdFilter())
        root.addHandler(handler)
        self._handlers[name] = handler

    def setup_from_config(self, config: LoggingConfig, force: bool = False) -> None:
        self.setup_logging(
            log_level=config.level,
            log_file=config.file,
            structured_format=config.structured,
            force=force
        )

    @staticmethod
    def new_correlation_id() -> str:
        return uuid.uuid4().hex[:12]

    def get_log_stats(self) -> Dict[str, Any]:
        return {
            "configured": self._configured,
            "handlers": list(self._handlers),
            "root_level": logging.getLogger().level,
            "correlation_id": correlation_id.get(),
        }


logging_manager = LoggingManager()


def get_logger(name: str, context: Optional[LogContext] = None) -> ContextualLogger:
    return ContextualLogger(name, context)


def with_correlation_id(corr_id: Optional[str] = None):
    """
    Run the decorated function under a correlation id.

    A fresh id is generated per call unless ``corr_id`` is given; the
    previous id is restored afterwards.
    """
    def decorator(func):
        if asyncio.iscoroutinefunction(func):
            @functools.wraps(func)
            async def async_wrapper(*args, **kwargs):
                token = correlation_id.set(corr_id or LoggingManager.new_correlation_id())
                try:
                    return await func(*args, **kwargs)
                finally:
                    correlation_id.reset(token)
            return async_wrapper

        @functools.wraps(func)
        def sync_wrapper(*args, **kwargs):
            token = correlation_id.set(corr_id or LoggingManager.new_correlation_id())
            try:
                return func(*args, **kwargs)
            finally:
                correlation_id.reset(token)
        return sync_wrapper
    return decorator

"""
Structured JSON logging for migration runs.

Log records go to stderr so that command summaries on stdout stay readable;
an optional file handler receives the same records.
"""
import json
import logging
import sys
import threading
from datetime import datetime, timezone
from typing import Dict, Any, Optional
from ...core.interfaces.logger_interface import ILogger, IOperationLogger

_RESERVED_ATTRS = frozenset({
    'name', 'msg', 'args', 'levelname', 'levelno', 'pathname', 'filename',
    'module', 'lineno', 'funcName', 'created', 'msecs', 'relativeCreated',
    'thread', 'threadName', 'processName', 'process', 'stack_info',
    'exc_info', 'exc_text', 'message', 'timestamp', 'taskName'
})


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class _StderrHandler(logging.StreamHandler):
    """Writes to whatever sys.stderr is at emit time"""

    @property
    def stream(self):
        return sys.stderr

    @stream.setter
    def stream(self, value):
        pass


class StructuredLogger(ILogger):
    """JSON logger with optional per-message context."""

    def __init__(self, name: str = "servermigrate", level: str = "INFO",
                 log_file: Optional[str] = None, stream=None):
        self.name = name
        self.logger = logging.getLogger(name)
        self.logger.setLevel(getattr(logging, level.upper(), logging.INFO))

        formatter = StructuredFormatter()

        if not self.logger.handlers:
            handler = logging.StreamHandler(stream) if stream is not None else _StderrHandler()
            handler.setFormatter(formatter)
            self.logger.addHandler(handler)

            if log_file:
                file_handler = logging.FileHandler(log_file)
                file_handler.setFormatter(formatter)
                self.logger.addHandler(file_handler)

        self.logger.propagate = False

    def debug(self, message: str, extra: Optional[Dict[str, Any]] = None) -> None:
        self._log(logging.DEBUG, message, extra)

    def info(self, message: str, extra: Optional[Dict[str, Any]] = None) -> None:
        self._log(logging.INFO, message, extra)

    def warning(self, message: str, extra: Optional[Dict[str, Any]] = None) -> None:
        self._log(logging.WARNING, message, extra)

    def error(self, message: str, extra: Optional[Dict[str, Any]] = None) -> None:
        self._log(logging.ERROR, message, extra)

    def exception(self, message: str, extra: Optional[Dict[str, Any]] = None) -> None:
        """Log error with the active traceback."""
        self._log(logging.ERROR, message, extra, exc_info=True)

    def _log(self, level: int, message: str, extra: Optional[Dict[str, Any]] = None, exc_info: bool = False) -> None:
        if not self.logger.isEnabledFor(level):
            return

        record = self.logger.makeRecord(
            name=self.name,
            level=level,
            fn="",
            lno=0,
            msg=message,
            args=(),
            exc_info=sys.exc_info() if exc_info else None
        )

        for key, value in (extra or {}).items():
            if key in _RESERVED_ATTRS:
                key = f"ctx_{key}"
            setattr(record, key, value)

        record.timestamp = _utcnow().isoformat()

        self.logger.handle(record)


class StructuredFormatter(logging.Formatter):
    """Formats records as single-line JSON."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": getattr(record, 'timestamp', _utcnow().isoformat()),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key in _RESERVED_ATTRS or key in log_entry:
                continue
            try:
                json.dumps(value)
                log_entry[key] = value
            except (TypeError, ValueError):
                log_entry[key] = str(value)

        return json.dumps(log_entry, ensure_ascii=False, separators=(',', ':'))


class ContextLogger(StructuredLogger):
    """Logger with persistent context merged into every message."""

    def __init__(self, name: str = "servermigrate", level: str = "INFO",
                 log_file: Optional[str] = None, context: Optional[Dict[str, Any]] = None,
                 stream=None):
        super().__init__(name, level, log_file, stream)
        self.context = dict(context or {})
        self._context_lock = threading.Lock()

    def add_context(self, key: str, value: Any) -> None:
        with self._context_lock:
            self.context[key] = value

    def remove_context(self, key: str) -> None:
        with self._context_lock:
            self.context.pop(key, None)

    def clear_context(self) -> None:
        with self._context_lock:
            self.context.clear()

    def _log(self, level: int, message: str, extra: Optional[Dict[str, Any]] = None, exc_info: bool = False) -> None:
        with self._context_lock:
            merged_extra = self.context.copy()
        if extra:
            merged_extra.update(extra)

        super()._log(level, message, merged_extra, exc_info)


class OperationLogger(ContextLogger, IOperationLogger):
    """Tracks one export/import/reconcile run with its duration."""

    def __init__(self, name: str = "servermigrate", level: str = "INFO",
                 log_file: Optional[str] = None, stream=None):
        super().__init__(name, level, log_file, stream=stream)
        self.operation_id: Optional[str] = None
        self.operation_start_time: Optional[datetime] = None

    def start_operation(self, operation_id: str, operation_type: str, **kwargs: Any) -> None:
        self.operation_id = operation_id
        self.operation_start_time = _utcnow()

        self.add_context("operation_id", operation_id)
        self.add_context("operation_type", operation_type)

        self.info(f"Starting operation: {operation_type}", kwargs)

    def complete_operation(self, success: bool = True, **kwargs: Any) -> None:
        if self.operation_id and self.operation_start_time:
            self.info(f"Operation completed: {self.context.get('operation_type', 'unknown')}", {
                "success": success,
                "duration_seconds": self._elapsed(),
                **kwargs
            })
            self._end_operation()

    def fail_operation(self, error: str, **kwargs: Any) -> None:
        if self.operation_id and self.operation_start_time:
            self.error(f"Operation failed: {self.context.get('operation_type', 'unknown')}", {
                "success": False,
                "error": error,
                "duration_seconds": self._elapsed(),
                **kwargs
            })
            self._end_operation()

    def _elapsed(self) -> float:
        return (_utcnow() - self.operation_start_time).total_seconds()

    def _end_operation(self) -> None:
        self.remove_context("operation_id")
        self.remove_context("operation_type")
        self.operation_id = None
        self.operation_start_time = None

"""
Logger interfaces used by every migration component.
"""
from abc import ABC, abstractmethod
from typing import Dict, Any, Optional


class ILogger(ABC):
    """Structured logging with optional extra context per message."""

    @abstractmethod
    def debug(self, message: str, extra: Optional[Dict[str, Any]] = None) -> None:
        pass

    @abstractmethod
    def info(self, message: str, extra: Optional[Dict[str, Any]] = None) -> None:
        pass

    @abstractmethod
    def warning(self, message: str, extra: Optional[Dict[str, Any]] = None) -> None:
        pass

    @abstractmethod
    def error(self, message: str, extra: Optional[Dict[str, Any]] = None) -> None:
        pass

    @abstractmethod
    def exception(self, message: str, extra: Optional[Dict[str, Any]] = None) -> None:
        """Log an error together with the active traceback."""
        pass


class IOperationLogger(ILogger):
    """Logger that tracks one whole operation (export, import, reconcile)."""

    @abstractmethod
    def start_operation(self, operation_id: str, operation_type: str, **kwargs: Any) -> None:
        pass

    @abstractmethod
    def complete_operation(self, success: bool = True, **kwargs: Any) -> None:
        pass

    @abstractmethod
    def fail_operation(self, error: str, **kwargs: Any) -> None:
        pass

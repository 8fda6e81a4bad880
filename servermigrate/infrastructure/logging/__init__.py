"""Structured logging implementations"""

from .structured_logger import StructuredLogger, ContextLogger, OperationLogger, StructuredFormatter

__all__ = ['StructuredLogger', 'ContextLogger', 'OperationLogger', 'StructuredFormatter']

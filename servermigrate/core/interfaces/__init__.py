"""Core domain interfaces"""

from .command_executor import ICommandExecutor, CommandResult
from .logger_interface import ILogger, IOperationLogger
from .storage_adapter import IStorageAdapter
from .service_controller import IServiceController

__all__ = [
    'ICommandExecutor',
    'CommandResult',
    'ILogger',
    'IOperationLogger',
    'IStorageAdapter',
    'IServiceController',
]

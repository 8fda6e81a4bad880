"""Infrastructure implementations of the core interfaces"""

from .command_executor import CommandExecutor
from .zfs_storage_adapter import ZFSStorageAdapter
from .systemd_service_controller import SystemdServiceController

__all__ = ['CommandExecutor', 'ZFSStorageAdapter', 'SystemdServiceController']

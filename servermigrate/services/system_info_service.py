import platform
import socket
from pathlib import Path

from ..core.interfaces.storage_adapter import IStorageAdapter
from ..models import HostInfo

OS_RELEASE = Path("/etc/os-release")


def read_os_version(os_release: Path = OS_RELEASE) -> str:
    """PRETTY_NAME from os-release, or 'unknown'"""
    try:
        for line in os_release.read_text(encoding='utf-8').splitlines():
            key, _, value = line.partition('=')
            if key.strip() == "PRETTY_NAME":
                return value.strip().strip('"') or "unknown"
    except OSError:
        return "unknown"
    return "unknown"


class SystemInfoService:
    """Collects the host facts recorded in a package manifest."""

    def __init__(self, storage: IStorageAdapter, os_release: Path = OS_RELEASE):
        self._storage = storage
        self._os_release = os_release

    async def collect(self) -> HostInfo:
        return HostInfo(
            hostname=socket.gethostname(),
            os_version=read_os_version(self._os_release),
            kernel_version=platform.release() or "unknown",
            storage_version=await self._storage.version(),
        )

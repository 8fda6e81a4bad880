"""Service binding domain entity"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import PurePosixPath
from typing import Callable, Optional, Tuple


class ConfigFormat(Enum):
    """On-disk format of a bound configuration file"""
    JSON = "json"
    INI = "ini"
    RSYSLOG = "rsyslog"
    LOGROTATE = "logrotate"


@dataclass(frozen=True)
class PathField:
    """A field of a configuration file that tracks the base directory.

    ``owned`` fields hold exactly ``<base>/<subpath>`` and are always set to the
    target value. Other fields are paths below ``<base>/<subpath>`` and are
    only rebased when they sit under a known previous base directory.
    """
    name: str
    subpath: str
    owned: bool = False

    def target_for(self, base_dir: str) -> str:
        return str(PurePosixPath(base_dir) / self.subpath)


@dataclass(frozen=True)
class ServiceBinding:
    """Maps a service to the configuration file and path fields it reads."""
    service_id: str
    config_path: str
    config_format: ConfigFormat
    fields: Tuple[PathField, ...]
    directories: Tuple[str, ...] = ()
    template: Optional[Callable[[str], str]] = field(default=None, compare=False, repr=False)
    description: str = ""

    def required_directories(self, base_dir: str) -> Tuple[str, ...]:
        """Directories the service expects under ``base_dir``"""
        return tuple(str(PurePosixPath(base_dir) / sub) for sub in self.directories)

    def render_template(self, base_dir: str) -> Optional[str]:
        if self.template is None:
            return None
        return self.template(base_dir)

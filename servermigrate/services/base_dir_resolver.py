from pathlib import Path

from ..config import PathsConfig
from ..core.interfaces.logger_interface import ILogger
from ..core.exceptions.migration_exceptions import ResolutionError


class BaseDirResolver:
    """Chooses the directory that holds all migrated server state.

    Candidates are tried in a fixed order: the dedicated pool mount, then the
    conventional service root. When neither exists the service root is
    created. A lower-priority candidate is never created while a
    higher-priority one exists.
    """

    def __init__(self, paths: PathsConfig, logger: ILogger):
        self._paths = paths
        self._logger = logger

    @property
    def candidates(self):
        return [Path(self._paths.pool_mount), Path(self._paths.service_root)]

    def resolve(self) -> Path:
        for candidate in self.candidates:
            if candidate.is_dir():
                self._logger.debug("Resolved base directory", {"base_dir": str(candidate)})
                return candidate

        fallback = Path(self._paths.service_root)
        try:
            fallback.mkdir(mode=0o755, parents=True, exist_ok=True)
        except OSError as e:
            raise ResolutionError(str(fallback), e.strerror or str(e)) from e

        self._logger.info("Created base directory", {"base_dir": str(fallback)})
        return fallback

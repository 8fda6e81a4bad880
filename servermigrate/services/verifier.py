from pathlib import Path
from typing import Callable, List, Optional

import docker
from docker.errors import DockerException

from ..config import StorageConfig
from ..core.entities.service_binding import ServiceBinding
from ..core.interfaces.logger_interface import ILogger
from ..core.interfaces.storage_adapter import IStorageAdapter
from ..core.exceptions.migration_exceptions import MigrationError, ResolutionError
from ..core.value_objects.dataset_name import DatasetName
from ..models import VerificationReport
from .base_dir_resolver import BaseDirResolver
from .organizer import LAYOUT
from .reconciliation.rewriters import get_rewriter


def _under(path: str, base: str) -> bool:
    base = base.rstrip('/')
    return path == base or path.startswith(base + '/')


class HostVerifier:
    """Read-only health report of the storage layout and service bindings."""

    def __init__(self, storage: IStorageAdapter, resolver: BaseDirResolver,
                 bindings: List[ServiceBinding], storage_config: StorageConfig,
                 logger: ILogger, docker_client_factory: Callable = docker.from_env):
        self._storage = storage
        self._resolver = resolver
        self._bindings = bindings
        self._config = storage_config
        self._logger = logger
        self._docker_client_factory = docker_client_factory

    async def verify_host(self) -> VerificationReport:
        report = VerificationReport()

        version = await self._storage.version()
        report.add("storage", version != "unknown", version)

        await self._check_pools(report)

        try:
            base = self._resolver.resolve()
        except ResolutionError as e:
            report.add("base_dir", False, str(e))
            return report

        report.base_dir = str(base)
        report.add("base_dir", True, str(base))

        for top in LAYOUT:
            directory = base / top
            report.add(f"layout:{top}", directory.is_dir(), str(directory))

        for binding in self._bindings:
            self._check_binding(report, binding, str(base))

        self._check_docker_root(report, str(base))
        return report

    async def _check_pools(self, report: VerificationReport) -> None:
        present = []
        for pool in self._config.pools:
            exists = await self._storage.pool_exists(pool)
            report.add(f"pool:{pool}", True if exists else None, "present" if exists else "absent")
            if exists:
                present.append(pool)

        if not present:
            report.add("pools", False, "no configured pool is present")
            return

        try:
            datasets = await self._storage.list_datasets(DatasetName(present[0]))
        except MigrationError as e:
            report.add("datasets", False, str(e))
            return
        report.add("datasets", bool(datasets), f"{len(datasets)} under {present[0]}")

    def _check_binding(self, report: VerificationReport, binding: ServiceBinding, base: str) -> None:
        name = f"binding:{binding.service_id}"
        path = Path(binding.config_path)
        if not path.is_file():
            report.add(name, None, f"{path} not present")
            return

        try:
            values = get_rewriter(binding.config_format).extract(path.read_text(encoding='utf-8'), binding)
        except (MigrationError, OSError, UnicodeDecodeError) as e:
            report.add(name, False, str(e))
            return

        if not values:
            report.add(name, False, "no tracked paths found")
            return
        stray = [v for v in values if not _under(v, base)]
        report.add(name, not stray, ", ".join(stray) if stray else f"points at {base}")

    def _check_docker_root(self, report: VerificationReport, base: str) -> None:
        root = self._docker_root()
        if root is None:
            report.add("docker_root", None, "container engine not reachable")
            return
        report.add("docker_root", _under(root, base), root)

    def _docker_root(self) -> Optional[str]:
        client = None
        try:
            client = self._docker_client_factory()
            return client.info().get("DockerRootDir")
        except DockerException as e:
            self._logger.debug("Docker engine not reachable", {"error": str(e)})
            return None
        finally:
            if client is not None:
                client.close()

from pathlib import Path
from typing import List, Optional, Union

from ..config import StorageConfig
from ..core.interfaces.storage_adapter import IStorageAdapter
from ..core.interfaces.logger_interface import ILogger
from ..core.value_objects.dataset_name import DatasetName
from ..core.exceptions.migration_exceptions import (
    MigrationError,
    RestoreError,
    StorageError,
)
from ..infrastructure.package_archive import PackageReader
from ..models import Manifest, RestoreResult
from .reconciliation.reconciler import ServiceReconciler


class ImportEngine:
    """Verifies a package and restores it under the imported namespace.

    Nothing touches storage until the package has passed ``verify``. A failed
    receive destroys whatever it created; an existing target is never
    overwritten.
    """

    def __init__(self, storage: IStorageAdapter, reconciler: ServiceReconciler,
                 storage_config: StorageConfig, logger: ILogger):
        self._storage = storage
        self._reconciler = reconciler
        self._config = storage_config
        self._logger = logger

    def verify(self, package_path: Union[str, Path]) -> Manifest:
        manifest = PackageReader(package_path).verify()
        self._logger.info("Package verified", {
            "package": str(package_path),
            "snapshot": f"{manifest.root_dataset}@{manifest.snapshot}",
            "stream_size": manifest.stream_size_human,
        })
        return manifest

    async def find_target_pool(self) -> str:
        for pool in self._config.pools:
            if await self._storage.pool_exists(pool):
                return pool
        raise StorageError(
            f"None of the configured pools exist: {', '.join(self._config.pools)}",
            error_code="POOL_NOT_FOUND",
            details={"pools": self._config.pools}
        )

    def target_for(self, pool: str, manifest: Manifest) -> DatasetName:
        source_root = DatasetName.from_string(manifest.root_dataset)
        return DatasetName(pool, (self._config.imported_namespace, source_root.leaf))

    async def import_package(self, package_path: Union[str, Path], target_base_dir: Union[str, Path],
                             previous_bases: Optional[List[str]] = None) -> RestoreResult:
        manifest = self.verify(package_path)

        pool = await self.find_target_pool()
        target = self.target_for(pool, manifest)
        received = await self._restore(PackageReader(package_path), manifest, target)

        await self._storage.mount(target)
        mountpoint = await self._storage.get_mountpoint(target)
        self._logger.info("Datasets mounted", {"target": str(target), "mountpoint": mountpoint})

        bases = [manifest.source_base_dir] + list(previous_bases or [])
        outcomes = await self._reconciler.reconcile(str(target_base_dir), previous_bases=bases)

        return RestoreResult(
            package_path=str(package_path),
            label=manifest.label,
            target_dataset=str(target),
            mountpoint=mountpoint,
            received=received,
            outcomes=outcomes,
        )

    async def _restore(self, reader: PackageReader, manifest: Manifest, target: DatasetName) -> bool:
        """Receive the stream into ``target``; False when it was already there"""
        if await self._storage.dataset_exists(target):
            if await self._storage.snapshot_exists(target, manifest.snapshot):
                self._logger.info("Target already holds this package, skipping receive", {
                    "target": str(target), "snapshot": manifest.snapshot
                })
                return False
            raise RestoreError(
                f"Target {target} exists and does not hold {manifest.snapshot}; refusing to overwrite",
                target=str(target)
            )

        await self._storage.create_namespace(target.parent)
        chunk_size = self._config.stream_chunk_size
        try:
            await self._storage.receive_stream(reader.iter_stream(manifest, chunk_size), target)
        except MigrationError as e:
            self._logger.error("Receive failed, rolling back", {"target": str(target), "error": str(e)})
            await self._rollback(target)
            if isinstance(e, RestoreError):
                raise
            raise RestoreError(f"Receive into {target} failed: {e}", target=str(target)) from e

        self._logger.info("Stream received", {"target": str(target)})
        return True

    async def _rollback(self, target: DatasetName) -> None:
        try:
            if await self._storage.dataset_exists(target):
                await self._storage.destroy_dataset(target, recursive=True)
        except StorageError as e:
            raise RestoreError(
                f"Receive into {target} failed and rollback did not complete: {e}",
                target=str(target)
            ) from e

import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Union

from ..config import MigrateConfig
from ..core.entities.service_binding import ServiceBinding
from ..core.entities.snapshot import Snapshot
from ..core.interfaces.logger_interface import IOperationLogger
from ..core.value_objects.dataset_name import DatasetName
from ..core.value_objects.snapshot_label import SnapshotLabel
from ..core.exceptions.migration_exceptions import (
    MigrationError,
    PackageError,
    SnapshotError,
    StorageError,
)
from ..models import ExportResult, ManifestInfo, RestoreResult
from .base_dir_resolver import BaseDirResolver
from .export_packager import ExportPackager
from .import_engine import ImportEngine
from .snapshot_manager import SnapshotManager
from .system_info_service import SystemInfoService


class MigrationOrchestrator:
    """Runs the export and import pipelines as tracked operations.

    Export: resolver, snapshot manager, packager.
    Import: import engine (verify, receive, mount), then reconciliation.
    """

    def __init__(self, config: MigrateConfig, resolver: BaseDirResolver,
                 snapshot_manager: SnapshotManager, packager: ExportPackager,
                 import_engine: ImportEngine, system_info: SystemInfoService,
                 bindings: List[ServiceBinding], logger: IOperationLogger):
        self._config = config
        self._resolver = resolver
        self._snapshots = snapshot_manager
        self._packager = packager
        self._import_engine = import_engine
        self._system_info = system_info
        self._bindings = bindings
        self._logger = logger

    async def run_export(self, label: Optional[SnapshotLabel] = None,
                         output_dir: Optional[Union[str, Path]] = None) -> ExportResult:
        label = label or SnapshotLabel.now()
        output_dir = output_dir or self._config.paths.package_dir
        self._logger.start_operation(str(uuid.uuid4()), "export", label=str(label))

        try:
            base_dir = self._resolver.resolve()
            root = await self._snapshots.find_export_root(self._config.storage.pools)
            datasets = await self._snapshots.discover_datasets(root)
            batch = await self._snapshots.snapshot_all([d.name for d in datasets], label)

            snapshots = await self._with_root_snapshot(root, batch.snapshots)
            info = ManifestInfo(
                created_at=datetime.now(timezone.utc).isoformat(),
                host=await self._system_info.collect(),
                source_base_dir=str(base_dir),
                included_configs=[b.config_path for b in self._bindings],
            )
            package = await self._packager.export(snapshots, info, output_dir)
        except MigrationError as e:
            self._logger.fail_operation(str(e), error_code=e.error_code)
            raise
        except OSError as e:
            error = PackageError(
                f"Cannot write package to {output_dir}: {e}",
                error_code="PACKAGE_WRITE_FAILED",
                details={"output_dir": str(output_dir), "errno": e.errno}
            )
            self._logger.fail_operation(str(error), error_code=error.error_code)
            raise error from e

        result = ExportResult(
            package=package,
            created_snapshots=[s.full_name for s in batch.created],
            skipped_snapshots=list(batch.skipped),
            failed_snapshots={name: str(err) for name, err in batch.failures.items()},
        )
        self._logger.complete_operation(
            success=not result.is_partial,
            package=package.path,
            failed_snapshots=len(result.failed_snapshots)
        )
        return result

    async def _with_root_snapshot(self, root: DatasetName, snapshots: List[Snapshot]) -> List[Snapshot]:
        """Fall back to the newest earlier migration snapshot when the root's failed"""
        if any(s.dataset == root for s in snapshots):
            return snapshots

        latest = await self._snapshots.latest_migration_snapshot(root)
        if latest is None:
            raise SnapshotError(
                f"No migration snapshot of {root} is available",
                dataset=str(root),
                error_code="ROOT_SNAPSHOT_MISSING"
            )
        self._logger.warning("Root snapshot failed, packaging most recent earlier snapshot", {
            "snapshot": latest.full_name
        })
        return [latest]

    async def run_import(self, package_path: Union[str, Path],
                         target_base_dir: Optional[Union[str, Path]] = None) -> RestoreResult:
        self._logger.start_operation(str(uuid.uuid4()), "import", package=str(package_path))

        try:
            target = Path(target_base_dir) if target_base_dir else self._resolver.resolve()
            result = await self._import_engine.import_package(package_path, target)
        except MigrationError as e:
            self._logger.fail_operation(str(e), error_code=e.error_code)
            raise
        except OSError as e:
            error = StorageError(
                f"Import of {package_path} failed: {e}",
                error_code="IMPORT_IO_FAILED",
                details={"package": str(package_path), "errno": e.errno}
            )
            self._logger.fail_operation(str(error), error_code=error.error_code)
            raise error from e

        self._logger.complete_operation(
            success=not result.is_partial,
            target_dataset=result.target_dataset,
            failed_services=result.failed_services
        )
        return result

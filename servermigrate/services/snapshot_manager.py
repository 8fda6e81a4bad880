from typing import Dict, List, Optional

from ..core.interfaces.storage_adapter import IStorageAdapter
from ..core.interfaces.logger_interface import ILogger
from ..core.entities.dataset import Dataset
from ..core.entities.snapshot import Snapshot
from ..core.entities.snapshot_batch import SnapshotBatchReport
from ..core.value_objects.dataset_name import DatasetName
from ..core.value_objects.snapshot_label import SnapshotLabel
from ..core.exceptions.migration_exceptions import (
    StorageError,
    SnapshotError,
    SnapshotExistsError,
)
from ..core.result import Result
from ..models import PruneReport


class SnapshotManager:
    """Creates and retires the ``migrate-<label>`` snapshots of an export."""

    def __init__(self, storage: IStorageAdapter, logger: ILogger):
        self._storage = storage
        self._logger = logger

    async def find_export_root(self, pools: List[str]) -> DatasetName:
        """First configured pool present on this host"""
        for pool in pools:
            if await self._storage.pool_exists(pool):
                return DatasetName(pool)
        raise StorageError(
            f"None of the configured pools exist: {', '.join(pools)}",
            error_code="POOL_NOT_FOUND",
            details={"pools": pools}
        )

    async def discover_datasets(self, root: DatasetName) -> List[Dataset]:
        """The root and every dataset below it; nothing outside the root"""
        datasets = await self._storage.list_datasets(root)
        return [d for d in datasets if root.contains(d.name)]

    async def snapshot_all(self, datasets: List[DatasetName], label: SnapshotLabel) -> SnapshotBatchReport:
        """Snapshot every dataset with the shared label.

        A snapshot that already exists with this label is kept and counted as
        usable. Per-dataset failures are recorded in the report; only a batch
        with no usable snapshot at all raises ``SnapshotError``.
        """
        report = SnapshotBatchReport(label=label)
        snapshot_name = label.snapshot_name

        for dataset in datasets:
            key = str(dataset)
            try:
                snapshot = await self._storage.create_snapshot(dataset, snapshot_name)
                report.record(key, Result.success(snapshot))
                self._logger.info("Created snapshot", {"snapshot": snapshot.full_name})
            except SnapshotExistsError:
                self._logger.warning(
                    "Snapshot already exists, reusing it",
                    {"snapshot": f"{dataset}@{snapshot_name}"}
                )
                report.skipped.append(key)
                report.record(key, Result.success(Snapshot(dataset, snapshot_name)))
            except SnapshotError as e:
                self._logger.error("Snapshot failed", {"dataset": key, "error": str(e)})
                report.record(key, Result.failure(e))
            except StorageError as e:
                self._logger.error("Snapshot failed", {"dataset": key, "error": str(e)})
                report.record(key, Result.failure(SnapshotError(str(e), dataset=key)))

        if not report.snapshots:
            raise SnapshotError(
                f"No usable snapshot for label '{label}' ({len(report.failures)} failed)",
                error_code="SNAPSHOT_BATCH_FAILED"
            )

        return report

    async def list_migration_snapshots(self, root: DatasetName) -> List[Snapshot]:
        """``migrate-*`` snapshots at or below the root, oldest first"""
        snapshots = await self._storage.list_snapshots(root, recursive=True)
        migration = [s for s in snapshots if s.is_migration_snapshot()]
        return sorted(migration, key=_sort_key)

    async def latest_migration_snapshot(self, dataset: DatasetName) -> Optional[Snapshot]:
        snapshots = await self._storage.list_snapshots(dataset, recursive=False)
        migration = sorted((s for s in snapshots if s.is_migration_snapshot()), key=_sort_key)
        return migration[-1] if migration else None

    async def prune(self, root: DatasetName, keep: int) -> PruneReport:
        """Destroy all but the newest ``keep`` migration labels"""
        if keep < 0:
            raise ValueError("keep must be zero or positive")

        by_label: Dict[str, List[Snapshot]] = {}
        for snapshot in await self.list_migration_snapshots(root):
            by_label.setdefault(str(snapshot.label), []).append(snapshot)

        labels = sorted(by_label, key=lambda name: _sort_key(by_label[name][0]))
        doomed = labels[:max(len(labels) - keep, 0)]

        report = PruneReport(kept=[label for label in labels if label not in doomed])
        for label in doomed:
            # Deepest datasets first
            for snapshot in sorted(by_label[label], key=lambda s: s.dataset.depth, reverse=True):
                try:
                    await self._storage.destroy_snapshot(snapshot)
                    report.destroyed.append(snapshot.full_name)
                    self._logger.info("Destroyed snapshot", {"snapshot": snapshot.full_name})
                except StorageError as e:
                    report.failed[snapshot.full_name] = str(e)
                    self._logger.error(
                        "Failed to destroy snapshot",
                        {"snapshot": snapshot.full_name, "error": str(e)}
                    )
        return report


def _sort_key(snapshot: Snapshot):
    created = snapshot.creation_time.timestamp() if snapshot.creation_time else 0.0
    return (created, snapshot.name)

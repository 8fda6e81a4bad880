"""
ZFS implementation of the storage adapter.

Every call shells out through the command executor; output is requested with
``-H -p`` so it can be split on tabs without unit parsing.
"""
from datetime import datetime, timezone
from typing import AsyncIterator, List, Optional

from ..core.interfaces.command_executor import ICommandExecutor, CommandResult
from ..core.interfaces.logger_interface import ILogger
from ..core.interfaces.storage_adapter import IStorageAdapter
from ..core.entities.dataset import Dataset
from ..core.entities.snapshot import Snapshot
from ..core.value_objects.dataset_name import DatasetName
from ..core.exceptions.migration_exceptions import (
    StorageError,
    SnapshotError,
    SnapshotExistsError,
    RestoreError,
)

DEFAULT_CHUNK_SIZE = 1024 * 1024


def _not_found(result: CommandResult) -> bool:
    return "does not exist" in result.stderr.lower()


class ZFSStorageAdapter(IStorageAdapter):
    """Storage adapter backed by the ``zfs`` and ``zpool`` command line tools."""

    def __init__(self, executor: ICommandExecutor, logger: ILogger,
                 chunk_size: int = DEFAULT_CHUNK_SIZE):
        self._executor = executor
        self._logger = logger
        self._chunk_size = chunk_size

    async def pool_exists(self, pool: str) -> bool:
        result = await self._executor.execute_system("zpool", "list", "-H", "-o", "name", pool)
        return result.is_success and result.stdout.strip() == pool

    async def list_datasets(self, root: DatasetName) -> List[Dataset]:
        result = await self._executor.execute_zfs(
            "list", "-H", "-p", "-o", "name,mountpoint", "-t", "filesystem", "-r", str(root)
        )
        if not result.is_success:
            raise StorageError(
                f"Failed to list datasets under {root}: {result.stderr}",
                error_code="DATASET_LIST_FAILED",
                details={"root": str(root)}
            )

        datasets = []
        for line in result.stdout.splitlines():
            parts = line.split('\t')
            if not parts or not parts[0]:
                continue
            mountpoint = parts[1] if len(parts) > 1 else None
            datasets.append(Dataset(DatasetName.from_string(parts[0]), mountpoint))
        return datasets

    async def dataset_exists(self, name: DatasetName) -> bool:
        result = await self._executor.execute_zfs("list", "-H", "-o", "name", str(name))
        if result.is_success:
            return True
        if _not_found(result):
            return False
        raise StorageError(f"Failed to query dataset {name}: {result.stderr}")

    async def create_snapshot(self, dataset: DatasetName, snapshot_name: str) -> Snapshot:
        full_name = f"{dataset}@{snapshot_name}"
        self._logger.debug("Creating snapshot", {"snapshot": full_name})

        result = await self._executor.execute_zfs("snapshot", full_name)
        if not result.is_success:
            if "dataset already exists" in result.stderr.lower():
                raise SnapshotExistsError(full_name)
            raise SnapshotError(
                f"Failed to create snapshot {full_name}: {result.stderr}",
                dataset=str(dataset),
                error_code="SNAPSHOT_CREATE_FAILED"
            )
        return Snapshot(dataset, snapshot_name, datetime.now(timezone.utc))

    async def snapshot_exists(self, dataset: DatasetName, snapshot_name: str) -> bool:
        result = await self._executor.execute_zfs(
            "list", "-H", "-t", "snapshot", "-o", "name", f"{dataset}@{snapshot_name}"
        )
        if result.is_success:
            return True
        if _not_found(result):
            return False
        raise SnapshotError(
            f"Failed to query snapshot {dataset}@{snapshot_name}: {result.stderr}",
            dataset=str(dataset)
        )

    async def list_snapshots(self, dataset: DatasetName, recursive: bool = False) -> List[Snapshot]:
        scope = ["-r"] if recursive else ["-d", "1"]
        result = await self._executor.execute_zfs(
            "list", "-H", "-p", "-t", "snapshot", "-o", "name,creation", *scope, str(dataset)
        )
        if not result.is_success:
            raise SnapshotError(
                f"Failed to list snapshots of {dataset}: {result.stderr}",
                dataset=str(dataset),
                error_code="SNAPSHOT_LIST_FAILED"
            )

        snapshots = []
        for line in result.stdout.splitlines():
            parts = line.split('\t')
            if '@' not in parts[0]:
                continue
            creation = None
            if len(parts) > 1 and parts[1].isdigit():
                creation = datetime.fromtimestamp(int(parts[1]), tz=timezone.utc)
            snapshots.append(Snapshot.parse(parts[0], creation))
        return snapshots

    async def destroy_snapshot(self, snapshot: Snapshot) -> None:
        result = await self._executor.execute_zfs("destroy", snapshot.full_name)
        if not result.is_success:
            raise SnapshotError(
                f"Failed to destroy snapshot {snapshot}: {result.stderr}",
                dataset=str(snapshot.dataset),
                error_code="SNAPSHOT_DESTROY_FAILED"
            )

    async def send_stream(self, snapshot: Snapshot, recursive: bool = True) -> AsyncIterator[bytes]:
        args = ["-R"] if recursive else []
        process = await self._executor.spawn_zfs("send", *args, snapshot.full_name, stdout=True)
        self._logger.info("Sending snapshot stream", {"snapshot": snapshot.full_name})
        try:
            while True:
                chunk = await process.stdout.read(self._chunk_size)
                if not chunk:
                    break
                yield chunk

            stderr = await process.stderr.read()
            returncode = await process.wait()
            if returncode != 0:
                raise StorageError(
                    f"zfs send of {snapshot} failed: {stderr.decode(errors='replace').strip()}",
                    error_code="SEND_FAILED",
                    details={"snapshot": snapshot.full_name, "returncode": returncode}
                )
        finally:
            if process.returncode is None:
                process.kill()
                await process.wait()

    async def receive_stream(self, chunks: AsyncIterator[bytes], target: DatasetName) -> None:
        process = await self._executor.spawn_zfs(
            "receive", "-u", "-x", "mountpoint", str(target), stdin=True
        )
        self._logger.info("Receiving snapshot stream", {"target": str(target)})
        try:
            try:
                async for chunk in chunks:
                    process.stdin.write(chunk)
                    await process.stdin.drain()
            except (BrokenPipeError, ConnectionResetError):
                # zfs receive exited early; its stderr carries the reason
                pass
            process.stdin.close()
            _, stderr = await process.communicate()
        finally:
            if process.returncode is None:
                process.kill()
                await process.wait()

        if process.returncode != 0:
            raise RestoreError(
                f"zfs receive into {target} failed: {stderr.decode(errors='replace').strip()}",
                target=str(target)
            )

    async def create_namespace(self, name: DatasetName) -> None:
        result = await self._executor.execute_zfs("create", "-p", str(name))
        if not result.is_success:
            raise StorageError(
                f"Failed to create dataset {name}: {result.stderr}",
                error_code="DATASET_CREATE_FAILED",
                details={"dataset": str(name)}
            )

    async def destroy_dataset(self, name: DatasetName, recursive: bool = True) -> None:
        args = ["-r"] if recursive else []
        result = await self._executor.execute_zfs("destroy", *args, str(name))
        if not result.is_success and not _not_found(result):
            raise StorageError(
                f"Failed to destroy dataset {name}: {result.stderr}",
                error_code="DATASET_DESTROY_FAILED",
                details={"dataset": str(name)}
            )

    async def mount(self, name: DatasetName) -> None:
        for dataset in await self.list_datasets(name):
            result = await self._executor.execute_zfs("mount", str(dataset.name))
            if not result.is_success and "already mounted" not in result.stderr.lower():
                raise StorageError(
                    f"Failed to mount {dataset.name}: {result.stderr}",
                    error_code="MOUNT_FAILED",
                    details={"dataset": str(dataset.name)}
                )

    async def get_mountpoint(self, name: DatasetName) -> Optional[str]:
        result = await self._executor.execute_zfs("get", "-H", "-o", "value", "mountpoint", str(name))
        if not result.is_success:
            raise StorageError(
                f"Failed to read mountpoint of {name}: {result.stderr}",
                details={"dataset": str(name)}
            )
        return Dataset(name, result.stdout.strip()).get_mount_point()

    async def version(self) -> str:
        result = await self._executor.execute_zfs("version")
        if result.is_success and result.stdout:
            return result.stdout.splitlines()[0].strip()
        return "unknown"

"""
Directory-backed stand-ins for the storage layer and the service manager.

Each dataset is a directory under a temporary root. Snapshots capture the
file contents of their dataset, and the send stream is a tar archive of the
captured files, so export and import can run end to end without ZFS.
"""

import io
import json
import shutil
import tarfile
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import AsyncIterator, Dict, Iterable, List, Optional, Set

from servermigrate.core.entities.dataset import Dataset
from servermigrate.core.entities.snapshot import Snapshot
from servermigrate.core.exceptions.migration_exceptions import (
    RestoreError,
    ServiceControlError,
    SnapshotError,
    SnapshotExistsError,
    StorageError,
)
from servermigrate.core.interfaces.service_controller import IServiceController
from servermigrate.core.interfaces.storage_adapter import IStorageAdapter
from servermigrate.core.value_objects.dataset_name import DatasetName

_EPOCH = datetime(2024, 1, 1, tzinfo=timezone.utc)


class InMemoryStorageAdapter(IStorageAdapter):
    def __init__(self, mount_root: Path, pools: Iterable[str] = ("server-data",), chunk_size: int = 1024):
        self.mount_root = Path(mount_root)
        self.pools: Set[str] = set(pools)
        self.datasets: Dict[str, Path] = {}
        self.snapshots: Dict[str, Dict[str, bytes]] = {}
        self.snapshot_times: Dict[str, datetime] = {}
        self.mounted: Set[str] = set()
        self.chunk_size = chunk_size

        self.receive_calls = 0
        self.fail_receive = False
        self.fail_snapshot_for: Set[str] = set()
        self.fail_destroy_for: Set[str] = set()
        self._clock = 0

        for pool in sorted(self.pools):
            self.add_dataset(pool)

    # -- test helpers --

    def add_dataset(self, name: str) -> Path:
        mount = self.mount_root / name
        mount.mkdir(parents=True, exist_ok=True)
        self.datasets[name] = mount
        self.mounted.add(name)
        return mount

    def write_file(self, dataset: str, relpath: str, content: bytes) -> Path:
        path = self.datasets[dataset] / relpath
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
        return path

    def _tick(self) -> datetime:
        self._clock += 1
        return _EPOCH + timedelta(minutes=self._clock)

    def _children(self, name: DatasetName) -> List[str]:
        return sorted(
            n for n in self.datasets
            if DatasetName.from_string(n).is_descendant_of(name)
        )

    def _capture(self, name: str) -> Dict[str, bytes]:
        mount = self.datasets[name]
        child_mounts = [self.datasets[c] for c in self._children(DatasetName.from_string(name))]
        files = {}
        for path in sorted(mount.rglob("*")):
            if not path.is_file():
                continue
            if any(m in path.parents for m in child_mounts):
                continue
            files[path.relative_to(mount).as_posix()] = path.read_bytes()
        return files

    # -- IStorageAdapter --

    async def pool_exists(self, pool: str) -> bool:
        return pool in self.pools

    async def list_datasets(self, root: DatasetName) -> List[Dataset]:
        if str(root) not in self.datasets:
            raise StorageError(f"dataset does not exist: {root}")
        names = [str(root)] + self._children(root)
        return [Dataset(DatasetName.from_string(n), str(self.datasets[n])) for n in names]

    async def dataset_exists(self, name: DatasetName) -> bool:
        return str(name) in self.datasets

    async def create_snapshot(self, dataset: DatasetName, snapshot_name: str) -> Snapshot:
        full_name = f"{dataset}@{snapshot_name}"
        if str(dataset) in self.fail_snapshot_for:
            raise SnapshotError(f"out of space on {dataset}", dataset=str(dataset))
        if str(dataset) not in self.datasets:
            raise SnapshotError(f"dataset does not exist: {dataset}", dataset=str(dataset))
        if full_name in self.snapshots:
            raise SnapshotExistsError(full_name)
        self.snapshots[full_name] = self._capture(str(dataset))
        self.snapshot_times[full_name] = self._tick()
        return Snapshot(dataset, snapshot_name, self.snapshot_times[full_name])

    async def snapshot_exists(self, dataset: DatasetName, snapshot_name: str) -> bool:
        return f"{dataset}@{snapshot_name}" in self.snapshots

    async def list_snapshots(self, dataset: DatasetName, recursive: bool = False) -> List[Snapshot]:
        result = []
        for full_name in sorted(self.snapshots):
            snapshot = Snapshot.parse(full_name, self.snapshot_times.get(full_name))
            if snapshot.dataset == dataset or (recursive and snapshot.dataset.is_descendant_of(dataset)):
                result.append(snapshot)
        return result

    async def destroy_snapshot(self, snapshot: Snapshot) -> None:
        if snapshot.full_name in self.fail_destroy_for:
            raise SnapshotError(f"snapshot is held: {snapshot}", dataset=str(snapshot.dataset))
        if snapshot.full_name not in self.snapshots:
            raise SnapshotError(f"could not find any snapshots to destroy: {snapshot}")
        del self.snapshots[snapshot.full_name]
        self.snapshot_times.pop(snapshot.full_name, None)

    async def send_stream(self, snapshot: Snapshot, recursive: bool = True) -> AsyncIterator[bytes]:
        if snapshot.full_name not in self.snapshots:
            raise StorageError(f"snapshot does not exist: {snapshot}")

        names = [str(snapshot.dataset)]
        if recursive:
            names += [c for c in self._children(snapshot.dataset)
                      if f"{c}@{snapshot.name}" in self.snapshots]

        buffer = io.BytesIO()
        with tarfile.open(fileobj=buffer, mode="w") as tar:
            header = {
                "snapshot": snapshot.name,
                "datasets": [list(DatasetName.from_string(n).relative_to(snapshot.dataset)) for n in names],
            }
            _add_bytes(tar, "header.json", json.dumps(header).encode())
            for index, name in enumerate(names):
                for relpath, data in self.snapshots[f"{name}@{snapshot.name}"].items():
                    _add_bytes(tar, f"files/{index}/{relpath}", data)

        data = buffer.getvalue()
        for offset in range(0, len(data), self.chunk_size):
            yield data[offset:offset + self.chunk_size]

    async def receive_stream(self, chunks: AsyncIterator[bytes], target: DatasetName) -> None:
        self.receive_calls += 1
        data = b"".join([chunk async for chunk in chunks])

        if self.fail_receive:
            # Leave a partial dataset behind, as an interrupted receive would
            self.add_dataset(str(target))
            self.mounted.discard(str(target))
            raise RestoreError("cannot receive new filesystem stream: checksum mismatch", target=str(target))

        try:
            with tarfile.open(fileobj=io.BytesIO(data), mode="r:") as tar:
                header = json.loads(tar.extractfile("header.json").read())
                received = [target.child(*rel) for rel in header["datasets"]]
                for name in received:
                    self.add_dataset(str(name))
                    self.mounted.discard(str(name))
                for member in tar.getmembers():
                    if not member.name.startswith("files/"):
                        continue
                    _, index, relpath = member.name.split("/", 2)
                    self.write_file(str(received[int(index)]), relpath, tar.extractfile(member).read())
        except (tarfile.TarError, KeyError, ValueError) as e:
            raise RestoreError(f"invalid stream: {e}", target=str(target)) from e

        for name in received:
            full_name = f"{name}@{header['snapshot']}"
            self.snapshots[full_name] = self._capture(str(name))
            self.snapshot_times[full_name] = self._tick()

    async def create_namespace(self, name: DatasetName) -> None:
        parts = [DatasetName(name.pool, name.path[:i]) for i in range(len(name.path) + 1)]
        for part in parts:
            if str(part) not in self.datasets:
                self.add_dataset(str(part))

    async def destroy_dataset(self, name: DatasetName, recursive: bool = True) -> None:
        doomed = [str(name)] + (self._children(name) if recursive else [])
        for dataset in doomed:
            mount = self.datasets.pop(dataset, None)
            self.mounted.discard(dataset)
            for full_name in [s for s in self.snapshots if s.startswith(f"{dataset}@")]:
                del self.snapshots[full_name]
            if mount is not None and mount.exists():
                shutil.rmtree(mount)

    async def mount(self, name: DatasetName) -> None:
        for dataset in [str(name)] + self._children(name):
            self.mounted.add(dataset)

    async def get_mountpoint(self, name: DatasetName) -> Optional[str]:
        mount = self.datasets.get(str(name))
        return str(mount) if mount is not None and str(name) in self.mounted else None

    async def version(self) -> str:
        return "zfs-2.2.2-fake"


def _add_bytes(tar: tarfile.TarFile, name: str, data: bytes) -> None:
    info = tarfile.TarInfo(name)
    info.size = len(data)
    tar.addfile(info, io.BytesIO(data))


class RecordingServiceController(IServiceController):
    def __init__(self, active: Optional[Dict[str, bool]] = None, fail_reload: Iterable[str] = ()):
        self.active = dict(active or {})
        self.fail_reload = set(fail_reload)
        self.reloads: List[str] = []

    async def is_active(self, service_id: str) -> bool:
        return self.active.get(service_id, False)

    async def reload(self, service_id: str) -> None:
        if service_id in self.fail_reload:
            raise ServiceControlError(service_id, "restart", "unit failed to start")
        self.reloads.append(service_id)

"""
Storage adapter interface: the boundary between the migration engine and the
snapshot-capable storage layer.
"""
from abc import ABC, abstractmethod
from typing import AsyncIterator, List, Optional

from ..entities.dataset import Dataset
from ..entities.snapshot import Snapshot
from ..value_objects.dataset_name import DatasetName


class IStorageAdapter(ABC):
    """Snapshot-capable storage layer.

    The engine assumes nothing about snapshot naming beyond
    ``<dataset>@<name>``. Failures surface as ``StorageError`` subclasses.
    """

    @abstractmethod
    async def pool_exists(self, pool: str) -> bool:
        pass

    @abstractmethod
    async def list_datasets(self, root: DatasetName) -> List[Dataset]:
        """List ``root`` and every dataset below it"""
        pass

    @abstractmethod
    async def dataset_exists(self, name: DatasetName) -> bool:
        pass

    @abstractmethod
    async def create_snapshot(self, dataset: DatasetName, snapshot_name: str) -> Snapshot:
        pass

    @abstractmethod
    async def snapshot_exists(self, dataset: DatasetName, snapshot_name: str) -> bool:
        pass

    @abstractmethod
    async def list_snapshots(self, dataset: DatasetName, recursive: bool = False) -> List[Snapshot]:
        pass

    @abstractmethod
    async def destroy_snapshot(self, snapshot: Snapshot) -> None:
        pass

    @abstractmethod
    def send_stream(self, snapshot: Snapshot, recursive: bool = True) -> AsyncIterator[bytes]:
        """Serialize a snapshot (and, recursively, its children) as raw chunks"""
        pass

    @abstractmethod
    async def receive_stream(self, chunks: AsyncIterator[bytes], target: DatasetName) -> None:
        """Deserialize a stream into ``target``, left unmounted"""
        pass

    @abstractmethod
    async def create_namespace(self, name: DatasetName) -> None:
        """Create ``name`` and any missing parents"""
        pass

    @abstractmethod
    async def destroy_dataset(self, name: DatasetName, recursive: bool = True) -> None:
        pass

    @abstractmethod
    async def mount(self, name: DatasetName) -> None:
        """Mount ``name`` and its children"""
        pass

    @abstractmethod
    async def get_mountpoint(self, name: DatasetName) -> Optional[str]:
        pass

    @abstractmethod
    async def version(self) -> str:
        pass

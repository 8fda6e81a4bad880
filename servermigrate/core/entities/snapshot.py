"""
Snapshot domain entity.
"""
from dataclasses import dataclass
from typing import Optional, Dict, Any
from datetime import datetime

from ..value_objects.dataset_name import DatasetName
from ..value_objects.snapshot_label import SnapshotLabel


@dataclass(frozen=True)
class Snapshot:
    """Immutable point-in-time reference to a dataset, ``<dataset>@<name>``."""

    dataset: DatasetName
    name: str
    creation_time: Optional[datetime] = None

    def __post_init__(self):
        if not self.name:
            raise ValueError("Snapshot name cannot be empty")

        if '@' in self.name:
            raise ValueError("Snapshot name should not contain '@' - use dataset@snapshot format")

        if not isinstance(self.dataset, DatasetName):
            raise ValueError("Dataset must be a DatasetName instance")

    @classmethod
    def parse(cls, full_name: str, creation_time: Optional[datetime] = None) -> 'Snapshot':
        """Build from ``dataset@name``"""
        dataset_part, sep, snapshot_part = full_name.partition('@')
        if not sep:
            raise ValueError(f"Not a snapshot name: {full_name}")
        return cls(DatasetName.from_string(dataset_part), snapshot_part, creation_time)

    @property
    def full_name(self) -> str:
        return f"{self.dataset}@{self.name}"

    @property
    def label(self) -> Optional[SnapshotLabel]:
        """Migration label, or None for snapshots this engine did not create"""
        return SnapshotLabel.from_snapshot_name(self.name)

    def is_migration_snapshot(self) -> bool:
        return self.label is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'full_name': self.full_name,
            'dataset': str(self.dataset),
            'creation_time': self.creation_time.isoformat() if self.creation_time else None,
        }

    def __str__(self) -> str:
        return self.full_name

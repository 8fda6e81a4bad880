"""Core domain value objects"""

from .dataset_name import DatasetName
from .snapshot_label import SnapshotLabel, SNAPSHOT_PREFIX

__all__ = [
    'DatasetName',
    'SnapshotLabel',
    'SNAPSHOT_PREFIX',
]

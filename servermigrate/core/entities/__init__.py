"""Core domain entities"""

from .dataset import Dataset
from .snapshot import Snapshot
from .snapshot_batch import SnapshotBatchReport
from .service_binding import ServiceBinding, PathField, ConfigFormat

__all__ = [
    'Dataset',
    'Snapshot',
    'SnapshotBatchReport',
    'ServiceBinding',
    'PathField',
    'ConfigFormat',
]

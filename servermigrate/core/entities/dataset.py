from dataclasses import dataclass, field
from typing import Optional, Dict, Any

from ..value_objects.dataset_name import DatasetName

_UNMOUNTED_VALUES = ('none', '-', 'legacy', '')


@dataclass
class Dataset:
    """Dataset domain entity"""
    name: DatasetName
    mountpoint: Optional[str] = None
    properties: Dict[str, str] = field(default_factory=dict)

    def is_mounted(self) -> bool:
        return self.get_mount_point() is not None

    def get_mount_point(self) -> Optional[str]:
        """Get mount point if dataset has one"""
        if self.mountpoint and self.mountpoint not in _UNMOUNTED_VALUES:
            return self.mountpoint
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': str(self.name),
            'mountpoint': self.get_mount_point(),
            'properties': self.properties,
        }

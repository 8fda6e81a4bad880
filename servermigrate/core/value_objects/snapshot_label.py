"""SnapshotLabel value object"""

import re
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ..exceptions.validation_exceptions import InvalidSnapshotLabelError

SNAPSHOT_PREFIX = "migrate"
PACKAGE_SUFFIX = ".pkg"
TIMESTAMP_FORMAT = "%Y%m%d-%H%M%S"

_LABEL_PATTERN = re.compile(r'^[A-Za-z0-9][A-Za-z0-9_.:-]*$')


@dataclass(frozen=True)
class SnapshotLabel:
    """Label shared by every snapshot of one export batch.

    The snapshot on each dataset is named ``migrate-<label>`` and the package
    produced from the batch is ``migrate-<label>.pkg``.
    """

    value: str

    def __post_init__(self):
        if not self.value:
            raise InvalidSnapshotLabelError(self.value, "label cannot be empty")
        if len(self.value) > 200:
            raise InvalidSnapshotLabelError(self.value, "label cannot exceed 200 characters")
        if not _LABEL_PATTERN.match(self.value):
            raise InvalidSnapshotLabelError(
                self.value,
                "must start with a letter or digit and contain only letters, digits, '-', '_', '.' and ':'"
            )

    @classmethod
    def now(cls, clock: Optional[datetime] = None) -> 'SnapshotLabel':
        """Create a label from the wall clock, taken once per batch"""
        moment = clock or datetime.now()
        return cls(moment.strftime(TIMESTAMP_FORMAT))

    @classmethod
    def from_snapshot_name(cls, snapshot_name: str) -> Optional['SnapshotLabel']:
        """Parse ``migrate-<label>`` (with or without the dataset part)"""
        short_name = snapshot_name.split('@')[-1]
        prefix = f"{SNAPSHOT_PREFIX}-"
        if not short_name.startswith(prefix) or len(short_name) == len(prefix):
            return None
        try:
            return cls(short_name[len(prefix):])
        except InvalidSnapshotLabelError:
            return None

    @property
    def snapshot_name(self) -> str:
        return f"{SNAPSHOT_PREFIX}-{self.value}"

    @property
    def package_name(self) -> str:
        return f"{SNAPSHOT_PREFIX}-{self.value}{PACKAGE_SUFFIX}"

    def get_timestamp(self) -> Optional[datetime]:
        """Timestamp encoded in the label, if it is a generated one"""
        try:
            return datetime.strptime(self.value, TIMESTAMP_FORMAT)
        except ValueError:
            return None

    def __str__(self) -> str:
        return self.value

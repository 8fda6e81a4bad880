"""Snapshot batch domain entity"""

from dataclasses import dataclass, field
from typing import Dict, List

from ..exceptions.migration_exceptions import SnapshotError
from ..result import Result, partition_results
from ..value_objects.snapshot_label import SnapshotLabel
from .snapshot import Snapshot


@dataclass
class SnapshotBatchReport:
    """Per-dataset outcome of one ``snapshot_all`` call"""

    label: SnapshotLabel
    results: Dict[str, Result[Snapshot, SnapshotError]] = field(default_factory=dict)
    skipped: List[str] = field(default_factory=list)

    def record(self, dataset: str, result: Result[Snapshot, SnapshotError]) -> None:
        self.results[dataset] = result

    @property
    def snapshots(self) -> List[Snapshot]:
        """Usable snapshots: created now or already present with this label"""
        snapshots, _ = partition_results(list(self.results.values()))
        return snapshots

    @property
    def created(self) -> List[Snapshot]:
        return [s for s in self.snapshots if str(s.dataset) not in self.skipped]

    @property
    def failures(self) -> Dict[str, SnapshotError]:
        return {name: r.error for name, r in self.results.items() if r.is_failure}

    @property
    def is_partial(self) -> bool:
        return bool(self.failures) and bool(self.snapshots)

    def to_dict(self) -> dict:
        return {
            'label': str(self.label),
            'created': [s.full_name for s in self.created],
            'skipped': list(self.skipped),
            'failed': {name: str(err) for name, err in self.failures.items()},
        }

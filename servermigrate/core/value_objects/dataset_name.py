import re
from dataclasses import dataclass
from typing import Tuple

from ..exceptions.validation_exceptions import InvalidDatasetNameError

_COMPONENT_PATTERN = re.compile(r'^[A-Za-z0-9][A-Za-z0-9_.: -]*$')


@dataclass(frozen=True)
class DatasetName:
    """Type-safe dataset name value object"""
    pool: str
    path: Tuple[str, ...] = ()

    def __post_init__(self):
        if not self.pool:
            raise InvalidDatasetNameError(str(self.pool), "pool name cannot be empty")

        # Validate pool name format
        if not self.pool.replace('_', '').replace('-', '').replace('.', '').isalnum():
            raise InvalidDatasetNameError(
                self.pool, "pool name must contain only alphanumeric characters, hyphens, dots and underscores"
            )

        for part in self.path:
            if not part.strip():
                raise InvalidDatasetNameError(self._join(), "path components cannot be empty")
            if not _COMPONENT_PATTERN.match(part) or '..' in part:
                raise InvalidDatasetNameError(self._join(), f"invalid path component '{part}'")

    @classmethod
    def from_string(cls, dataset_str: str) -> 'DatasetName':
        """Create DatasetName from string representation"""
        if not dataset_str:
            raise InvalidDatasetNameError(dataset_str, "dataset string cannot be empty")
        if '@' in dataset_str:
            raise InvalidDatasetNameError(dataset_str, "snapshot names are not dataset names")
        if dataset_str.startswith('/') or dataset_str.endswith('/'):
            raise InvalidDatasetNameError(dataset_str, "leading or trailing '/'")

        parts = dataset_str.split('/')
        return cls(pool=parts[0], path=tuple(parts[1:]))

    def _join(self) -> str:
        if self.path:
            return f"{self.pool}/{'/'.join(self.path)}"
        return self.pool

    def __str__(self) -> str:
        return self._join()

    @property
    def is_pool_root(self) -> bool:
        return len(self.path) == 0

    @property
    def depth(self) -> int:
        return len(self.path)

    @property
    def leaf(self) -> str:
        """Last component of the name (the pool name for a pool root)"""
        return self.path[-1] if self.path else self.pool

    @property
    def parent(self) -> 'DatasetName':
        """Get parent dataset name"""
        if self.is_pool_root:
            raise InvalidDatasetNameError(str(self), "pool root has no parent")
        return DatasetName(pool=self.pool, path=self.path[:-1])

    def child(self, *names: str) -> 'DatasetName':
        """Create a descendant dataset name"""
        return DatasetName(pool=self.pool, path=self.path + tuple(names))

    def is_descendant_of(self, other: 'DatasetName') -> bool:
        """True for strict descendants of ``other``"""
        return (
            self.pool == other.pool
            and len(self.path) > len(other.path)
            and self.path[:len(other.path)] == other.path
        )

    def contains(self, other: 'DatasetName') -> bool:
        """True if ``other`` is this dataset or one of its descendants"""
        return other == self or other.is_descendant_of(self)

    def relative_to(self, ancestor: 'DatasetName') -> Tuple[str, ...]:
        """Path components below ``ancestor``"""
        if not ancestor.contains(self):
            raise InvalidDatasetNameError(str(self), f"not inside '{ancestor}'")
        return self.path[len(ancestor.path):]

    def to_dict(self) -> dict:
        return {
            'pool': self.pool,
            'path': list(self.path),
            'full_name': str(self)
        }

"""Core domain exceptions"""

from .migration_exceptions import (
    MigrationError,
    ResolutionError,
    StorageError,
    SnapshotError,
    SnapshotExistsError,
    RestoreError,
    PackageError,
    PackageIntegrityError,
    PackageExistsError,
    ServiceControlError,
    ReconcileFailure,
)
from .validation_exceptions import (
    ValidationException,
    InvalidDatasetNameError,
    InvalidSnapshotLabelError,
)

__all__ = [
    'MigrationError',
    'ResolutionError',
    'StorageError',
    'SnapshotError',
    'SnapshotExistsError',
    'RestoreError',
    'PackageError',
    'PackageIntegrityError',
    'PackageExistsError',
    'ServiceControlError',
    'ReconcileFailure',
    'ValidationException',
    'InvalidDatasetNameError',
    'InvalidSnapshotLabelError',
]

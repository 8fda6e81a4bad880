from typing import Dict, Any, Optional


class MigrationError(Exception):
    """Base exception for all migration engine operations"""

    def __init__(self, message: str, error_code: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.error_code = error_code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for serialization"""
        return {
            'error_type': self.__class__.__name__,
            'message': str(self),
            'error_code': self.error_code,
            'details': self.details
        }


class ResolutionError(MigrationError):
    """No writable base directory could be determined"""

    def __init__(self, candidate: str, reason: str = ""):
        message = f"Cannot create base directory '{candidate}'"
        if reason:
            message += f": {reason}"
        super().__init__(
            message,
            error_code="BASE_DIR_UNRESOLVABLE",
            details={"candidate": candidate, "reason": reason}
        )


class StorageError(MigrationError):
    """The storage layer refused or failed an operation"""

    def __init__(self, message: str, error_code: Optional[str] = "STORAGE_ERROR",
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(message, error_code=error_code, details=details)


class SnapshotError(StorageError):
    """Snapshot creation, listing or destruction failed"""

    def __init__(self, message: str, dataset: Optional[str] = None, error_code: str = "SNAPSHOT_FAILED"):
        super().__init__(message, error_code=error_code, details={"dataset": dataset})
        self.dataset = dataset


class SnapshotExistsError(SnapshotError):
    """Snapshot with the requested name already exists"""

    def __init__(self, snapshot_name: str):
        super().__init__(
            f"Snapshot '{snapshot_name}' already exists",
            dataset=snapshot_name.split('@')[0],
            error_code="SNAPSHOT_ALREADY_EXISTS"
        )
        self.snapshot_name = snapshot_name


class RestoreError(StorageError):
    """Receiving a dataset stream failed; no partial dataset is left behind"""

    def __init__(self, message: str, target: Optional[str] = None):
        super().__init__(message, error_code="RESTORE_FAILED", details={"target": target})
        self.target = target


class PackageError(MigrationError):
    """Migration package problems"""
    pass


class PackageIntegrityError(PackageError):
    """Package is corrupt, truncated or incomplete"""

    def __init__(self, package_path: str, reason: str):
        super().__init__(
            f"Package '{package_path}' failed integrity check: {reason}",
            error_code="PACKAGE_INTEGRITY",
            details={"package_path": package_path, "reason": reason}
        )
        self.package_path = package_path
        self.reason = reason


class PackageExistsError(PackageError):
    """A package with the same label already exists"""

    def __init__(self, package_path: str):
        super().__init__(
            f"Package '{package_path}' already exists",
            error_code="PACKAGE_EXISTS",
            details={"package_path": package_path}
        )
        self.package_path = package_path


class ServiceControlError(MigrationError):
    """A service manager operation failed"""

    def __init__(self, service_id: str, action: str, reason: str = ""):
        message = f"Failed to {action} service '{service_id}'"
        if reason:
            message += f": {reason}"
        super().__init__(
            message,
            error_code="SERVICE_CONTROL_FAILED",
            details={"service": service_id, "action": action, "reason": reason}
        )
        self.service_id = service_id


class ReconcileFailure(MigrationError):
    """One service binding could not be repointed"""

    def __init__(self, service_id: str, reason: str):
        super().__init__(
            f"Reconciliation of '{service_id}' failed: {reason}",
            error_code="RECONCILE_FAILED",
            details={"service": service_id, "reason": reason}
        )
        self.service_id = service_id
        self.reason = reason

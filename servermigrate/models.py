from pydantic import BaseModel, Field, computed_field
from typing import List, Optional, Dict
from enum import Enum
from .utils import format_bytes

FORMAT_VERSION = 1


class HostInfo(BaseModel):
    """Facts about the exporting host recorded in the manifest"""
    hostname: str
    os_version: str = "unknown"
    kernel_version: str = "unknown"
    storage_version: str = "unknown"


class ManifestInfo(BaseModel):
    """Caller-provided part of the manifest; the packager adds the integrity section"""
    created_at: str
    host: HostInfo
    source_base_dir: str
    included_configs: List[str] = []


class Manifest(BaseModel):
    format_version: int = FORMAT_VERSION
    created_at: str
    source_host: str
    os_version: str
    kernel_version: str
    storage_version: str
    source_base_dir: str
    included_configs: List[str] = []

    # Integrity section
    label: str
    root_dataset: str
    snapshot: str
    datasets: List[str] = []
    stream_file: str
    stream_sha256: str
    stream_size: int = Field(ge=0)
    config_checksums: Dict[str, str] = {}

    @computed_field
    def stream_size_human(self) -> str:
        return format_bytes(self.stream_size)

    @classmethod
    def build(cls, info: ManifestInfo, **integrity) -> 'Manifest':
        return cls(
            created_at=info.created_at,
            source_host=info.host.hostname,
            os_version=info.host.os_version,
            kernel_version=info.host.kernel_version,
            storage_version=info.host.storage_version,
            source_base_dir=info.source_base_dir,
            included_configs=list(info.included_configs),
            **integrity
        )


class MigrationPackage(BaseModel):
    path: str
    manifest: Manifest
    size_bytes: int

    @computed_field
    def size_human(self) -> str:
        return format_bytes(self.size_bytes)

    @property
    def label(self) -> str:
        return self.manifest.label


class ReconcileStatus(str, Enum):
    OK = "ok"
    UNCHANGED = "unchanged"
    FAILED = "failed"


class ReconcileOutcome(BaseModel):
    service: str
    config_path: str
    status: ReconcileStatus
    reason: Optional[str] = None
    service_active: bool = False
    reloaded: bool = False
    changed_fields: List[str] = []

    @classmethod
    def ok(cls, service: str, config_path: str, **kwargs) -> 'ReconcileOutcome':
        return cls(service=service, config_path=config_path, status=ReconcileStatus.OK, **kwargs)

    @classmethod
    def unchanged(cls, service: str, config_path: str, **kwargs) -> 'ReconcileOutcome':
        return cls(service=service, config_path=config_path, status=ReconcileStatus.UNCHANGED, **kwargs)

    @classmethod
    def failed(cls, service: str, config_path: str, reason: str, **kwargs) -> 'ReconcileOutcome':
        return cls(service=service, config_path=config_path, status=ReconcileStatus.FAILED,
                   reason=reason, **kwargs)

    @property
    def is_failure(self) -> bool:
        return self.status == ReconcileStatus.FAILED


class ExportResult(BaseModel):
    package: MigrationPackage
    created_snapshots: List[str] = []
    skipped_snapshots: List[str] = []
    failed_snapshots: Dict[str, str] = {}

    @property
    def is_partial(self) -> bool:
        return bool(self.failed_snapshots)


class RestoreResult(BaseModel):
    package_path: str
    label: str
    target_dataset: str
    mountpoint: Optional[str] = None
    received: bool = True
    outcomes: List[ReconcileOutcome] = []

    @property
    def failed_services(self) -> List[str]:
        return [o.service for o in self.outcomes if o.is_failure]

    @property
    def is_partial(self) -> bool:
        return bool(self.failed_services)


class PruneReport(BaseModel):
    kept: List[str] = []
    destroyed: List[str] = []
    failed: Dict[str, str] = {}

    @property
    def is_partial(self) -> bool:
        return bool(self.failed)


class OrganizeReport(BaseModel):
    base_dir: str
    created_directories: List[str] = []
    written_templates: List[str] = []
    outcomes: List[ReconcileOutcome] = []

    @property
    def failed_services(self) -> List[str]:
        return [o.service for o in self.outcomes if o.is_failure]


class VerificationCheck(BaseModel):
    name: str
    ok: Optional[bool] = None  # None: not applicable on this host
    detail: str = ""


class VerificationReport(BaseModel):
    base_dir: Optional[str] = None
    checks: List[VerificationCheck] = []

    def add(self, name: str, ok: Optional[bool], detail: str = "") -> None:
        self.checks.append(VerificationCheck(name=name, ok=ok, detail=detail))

    @property
    def failed_checks(self) -> List[VerificationCheck]:
        return [c for c in self.checks if c.ok is False]

    @computed_field
    def passed(self) -> bool:
        return not self.failed_checks

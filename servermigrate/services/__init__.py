"""Migration engine services"""

from .base_dir_resolver import BaseDirResolver
from .snapshot_manager import SnapshotManager
from .export_packager import ExportPackager
from .import_engine import ImportEngine
from .organizer import ServerOrganizer
from .verifier import HostVerifier
from .migration_orchestrator import MigrationOrchestrator

__all__ = [
    'BaseDirResolver',
    'SnapshotManager',
    'ExportPackager',
    'ImportEngine',
    'ServerOrganizer',
    'HostVerifier',
    'MigrationOrchestrator',
]

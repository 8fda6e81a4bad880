"""
Service factory for dependency injection and service creation.
"""
from typing import Dict, List, Optional

from ..config import MigrateConfig
from ..core.entities.service_binding import ServiceBinding
from ..core.interfaces.command_executor import ICommandExecutor
from ..core.interfaces.logger_interface import ILogger
from ..core.interfaces.service_controller import IServiceController
from ..core.interfaces.storage_adapter import IStorageAdapter
from ..infrastructure.command_executor import CommandExecutor
from ..infrastructure.logging.structured_logger import StructuredLogger, OperationLogger
from ..infrastructure.systemd_service_controller import SystemdServiceController
from ..infrastructure.zfs_storage_adapter import ZFSStorageAdapter
from ..services.base_dir_resolver import BaseDirResolver
from ..services.export_packager import ExportPackager
from ..services.import_engine import ImportEngine
from ..services.migration_orchestrator import MigrationOrchestrator
from ..services.organizer import ServerOrganizer
from ..services.reconciliation.bindings import build_default_bindings, service_units
from ..services.reconciliation.reconciler import ServiceReconciler
from ..services.snapshot_manager import SnapshotManager
from ..services.system_info_service import SystemInfoService
from ..services.verifier import HostVerifier


class ServiceFactory:
    """Builds every component from one configuration object.

    ``storage``, ``controller`` and ``bindings`` can be injected to run the
    engine against something other than the live host.
    """

    def __init__(self, config: MigrateConfig,
                 storage: Optional[IStorageAdapter] = None,
                 controller: Optional[IServiceController] = None,
                 bindings: Optional[List[ServiceBinding]] = None,
                 executor: Optional[ICommandExecutor] = None):
        self._config = config
        self._logger_instances: Dict[str, ILogger] = {}

        self._executor: ICommandExecutor = executor or CommandExecutor(
            timeout=config.storage.command_timeout
        )
        self._storage = storage or ZFSStorageAdapter(
            self._executor,
            self._get_logger("storage"),
            chunk_size=config.storage.stream_chunk_size
        )
        self._controller = controller or SystemdServiceController(
            self._executor,
            self._get_logger("services"),
            service_units(config.services)
        )
        self._bindings = list(bindings) if bindings is not None else build_default_bindings(config.services)

    @property
    def config(self) -> MigrateConfig:
        return self._config

    @property
    def storage(self) -> IStorageAdapter:
        return self._storage

    @property
    def bindings(self) -> List[ServiceBinding]:
        return list(self._bindings)

    def create_resolver(self) -> BaseDirResolver:
        return BaseDirResolver(self._config.paths, self._get_logger("resolver"))

    def create_snapshot_manager(self) -> SnapshotManager:
        return SnapshotManager(self._storage, self._get_logger("snapshots"))

    def create_export_packager(self) -> ExportPackager:
        return ExportPackager(self._storage, self._get_logger("packager"))

    def create_reconciler(self) -> ServiceReconciler:
        return ServiceReconciler(
            self._bindings,
            self._controller,
            self._get_logger("reconcile"),
            default_previous_bases=[self._config.paths.pool_mount, self._config.paths.service_root]
        )

    def create_import_engine(self) -> ImportEngine:
        return ImportEngine(
            self._storage,
            self.create_reconciler(),
            self._config.storage,
            self._get_logger("import")
        )

    def create_organizer(self) -> ServerOrganizer:
        return ServerOrganizer(self.create_reconciler(), self._get_logger("organize"))

    def create_verifier(self) -> HostVerifier:
        return HostVerifier(
            self._storage,
            self.create_resolver(),
            self._bindings,
            self._config.storage,
            self._get_logger("verify")
        )

    def create_orchestrator(self) -> MigrationOrchestrator:
        return MigrationOrchestrator(
            config=self._config,
            resolver=self.create_resolver(),
            snapshot_manager=self.create_snapshot_manager(),
            packager=self.create_export_packager(),
            import_engine=self.create_import_engine(),
            system_info=SystemInfoService(self._storage),
            bindings=self._bindings,
            logger=self._get_operation_logger()
        )

    def _get_logger(self, service_name: str) -> ILogger:
        """Get or create a logger instance for a service."""
        name = f"servermigrate.{service_name}"
        if name not in self._logger_instances:
            self._logger_instances[name] = StructuredLogger(
                name=name,
                level=self._config.logging.level,
                log_file=self._config.logging.log_file or None
            )
        return self._logger_instances[name]

    def _get_operation_logger(self) -> OperationLogger:
        name = "servermigrate.operation"
        if name not in self._logger_instances:
            self._logger_instances[name] = OperationLogger(
                name=name,
                level=self._config.logging.level,
                log_file=self._config.logging.log_file or None
            )
        return self._logger_instances[name]

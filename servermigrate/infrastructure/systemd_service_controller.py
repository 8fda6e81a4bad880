from typing import Dict, Optional

from ..core.interfaces.command_executor import ICommandExecutor
from ..core.interfaces.logger_interface import ILogger
from ..core.interfaces.service_controller import IServiceController
from ..core.exceptions.migration_exceptions import ServiceControlError


class SystemdServiceController(IServiceController):
    """Service control through ``systemctl``.

    ``units`` maps service ids to systemd unit names. Services mapped to None
    have no daemon (npm, logrotate): they are never active and reload is a no-op.
    """

    def __init__(self, executor: ICommandExecutor, logger: ILogger,
                 units: Dict[str, Optional[str]]):
        self._executor = executor
        self._logger = logger
        self._units = dict(units)

    async def is_active(self, service_id: str) -> bool:
        unit = self._units.get(service_id)
        if not unit:
            return False
        result = await self._executor.execute_system("systemctl", "is-active", "--quiet", unit)
        return result.is_success

    async def reload(self, service_id: str) -> None:
        unit = self._units.get(service_id)
        if not unit:
            return
        self._logger.info("Restarting service", {"service": service_id, "unit": unit})
        result = await self._executor.execute_system("systemctl", "restart", unit)
        if not result.is_success:
            raise ServiceControlError(service_id, "restart", result.stderr)

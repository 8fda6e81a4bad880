from abc import ABC, abstractmethod


class IServiceController(ABC):
    """Service manager boundary; services are addressed by stable ids."""

    @abstractmethod
    async def is_active(self, service_id: str) -> bool:
        pass

    @abstractmethod
    async def reload(self, service_id: str) -> None:
        """Restart the service so it rereads its configuration.

        Raises ``ServiceControlError`` on failure.
        """
        pass

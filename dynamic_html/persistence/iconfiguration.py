from abc import ABC, abstractmethod

from dynamic_html.helpers.monitoring import start_as_current_span
from dynamic_html.models.readiness import ReadinessEnum


class ConfigurationUnavailable(Exception):
    """
    The configuration entry is missing or the store cannot be reached.
    """

    name: str
    reason: str

    def __init__(self, name: str, reason: str):
        super().__init__(f'Configuration "{name}" is unavailable: {reason}')
        self.name = name
        self.reason = reason


class IConfigurationStore(ABC):
    """
    Centralized store holding operator-settable values, read at request time.

    Implementations must not cache values, each `get` reads the current value.
    """

    @abstractmethod
    @start_as_current_span("configuration_readiness")
    async def readiness(self, name: str) -> ReadinessEnum:
        """
        Check the store can serve the entry `name`.
        """
        pass

    @abstractmethod
    @start_as_current_span("configuration_get")
    async def get(self, name: str) -> str:
        """
        Read the current value of an entry.

        Raises `ConfigurationUnavailable` if the entry does not exist or the store cannot be reached.
        """
        pass

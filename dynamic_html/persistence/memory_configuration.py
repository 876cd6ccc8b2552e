from dynamic_html.helpers.config_models.store import MemoryModel
from dynamic_html.helpers.logging import logger
from dynamic_html.models.readiness import ReadinessEnum
from dynamic_html.persistence.iconfiguration import (
    ConfigurationUnavailable,
    IConfigurationStore,
)


class MemoryConfigurationStore(IConfigurationStore):
    """
    Configuration store backed by a dict, for local development and tests.

    Values are seeded from the settings and can be changed at runtime with `put`, mimicking an operator editing the entry.
    """

    _values: dict[str, str]

    def __init__(self, config: MemoryModel):
        logger.warning(
            "Using memory configuration store, values are lost on restart, prefer SSM or App Configuration"
        )
        self._values = dict(config.values)

    async def readiness(self, name: str) -> ReadinessEnum:
        """
        Check the entry is set.
        """
        return ReadinessEnum.OK if name in self._values else ReadinessEnum.FAIL

    async def get(self, name: str) -> str:
        try:
            return self._values[name]
        except KeyError as e:
            raise ConfigurationUnavailable(
                name=name,
                reason="parameter not found",
            ) from e

    def put(self, name: str, value: str) -> None:
        """
        Set the value of an entry.
        """
        self._values[name] = value

    def remove(self, name: str) -> None:
        """
        Unset an entry. No-op if the entry does not exist.
        """
        self._values.pop(name, None)

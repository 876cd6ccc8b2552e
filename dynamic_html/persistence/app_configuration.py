from azure.appconfiguration.aio import AzureAppConfigurationClient
from azure.core.exceptions import AzureError, ResourceNotFoundError

from dynamic_html.helpers.cache import lru_acache
from dynamic_html.helpers.config_models.store import AppConfigurationModel
from dynamic_html.helpers.http import azure_transport
from dynamic_html.helpers.identity import credential
from dynamic_html.helpers.logging import logger
from dynamic_html.helpers.monitoring import start_as_current_span
from dynamic_html.models.readiness import ReadinessEnum
from dynamic_html.persistence.iconfiguration import (
    ConfigurationUnavailable,
    IConfigurationStore,
)


class AppConfigurationStore(IConfigurationStore):
    """
    Configuration store backed by Azure App Configuration.

    Entry names are used as keys, the optional label from the settings selects the environment.
    """

    _config: AppConfigurationModel

    def __init__(self, config: AppConfigurationModel):
        self._config = config

    async def readiness(self, name: str) -> ReadinessEnum:
        """
        Check the entry can be read.
        """
        try:
            await self.get(name)
            return ReadinessEnum.OK
        except ConfigurationUnavailable:
            logger.exception("Readiness test failed")
        return ReadinessEnum.FAIL

    @start_as_current_span("app_configuration_get")
    async def get(self, name: str) -> str:
        try:
            client = await self._use_client()
            setting = await client.get_configuration_setting(
                key=name,
                label=self._config.label,
            )
        except ResourceNotFoundError as e:
            raise ConfigurationUnavailable(
                name=name,
                reason="parameter not found",
            ) from e
        except AzureError as e:
            raise ConfigurationUnavailable(
                name=name,
                reason="store unreachable",
            ) from e

        # Settings can exist without a value
        if not setting or setting.value is None:
            raise ConfigurationUnavailable(
                name=name,
                reason="parameter has no value",
            )

        logger.debug("Setting %s read, etag %s", name, setting.etag)
        return setting.value

    @lru_acache()
    async def _use_client(self) -> AzureAppConfigurationClient:
        """
        Generate the App Configuration client.

        Object is cached for performance.
        """
        logger.debug("Using App Configuration client for %s", self._config.endpoint)

        return AzureAppConfigurationClient(
            # Performance
            transport=await azure_transport(),
            # Deployment
            base_url=self._config.endpoint,
            # Authentication
            credential=await credential(),
        )

import asyncio

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from dynamic_html.helpers.cache import lru_cache
from dynamic_html.helpers.config_models.store import SsmModel
from dynamic_html.helpers.logging import logger
from dynamic_html.helpers.monitoring import start_as_current_span
from dynamic_html.models.readiness import ReadinessEnum
from dynamic_html.persistence.iconfiguration import (
    ConfigurationUnavailable,
    IConfigurationStore,
)


class SsmConfigurationStore(IConfigurationStore):
    """
    Configuration store backed by AWS Systems Manager Parameter Store.

    boto3 is blocking, calls are run in a worker thread to keep the event loop free. The function needs the `ssm:GetParameter` permission on the entry.
    """

    _config: SsmModel

    def __init__(self, config: SsmModel):
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

    @start_as_current_span("ssm_get")
    async def get(self, name: str) -> str:
        client = self._use_client()
        try:
            res = await asyncio.to_thread(
                client.get_parameter,
                Name=name,
                WithDecryption=self._config.with_decryption,
            )
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code", "Unknown")
            if code == "ParameterNotFound":
                raise ConfigurationUnavailable(
                    name=name,
                    reason="parameter not found",
                ) from e
            raise ConfigurationUnavailable(
                name=name,
                reason=f"store returned {code}",
            ) from e
        except BotoCoreError as e:
            raise ConfigurationUnavailable(
                name=name,
                reason="store unreachable",
            ) from e

        value = res["Parameter"]["Value"]
        logger.debug(
            "Parameter %s read, version %s", name, res["Parameter"].get("Version")
        )
        return value

    @lru_cache()
    def _use_client(self):
        """
        Generate the SSM client.

        Object is cached for performance, boto3 clients are thread-safe.
        """
        logger.debug("Using SSM client in region %s", self._config.region or "default")

        return boto3.client(
            "ssm",
            # Deployment
            endpoint_url=self._config.endpoint_url,
            region_name=self._config.region,
            # Reliability
            config=Config(
                connect_timeout=self._config.timeout_sec,
                read_timeout=self._config.timeout_sec,
                retries={"mode": "standard"},
            ),
        )

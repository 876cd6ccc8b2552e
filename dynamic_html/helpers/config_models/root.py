from pydantic import AliasChoices, Field
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from dynamic_html.helpers.config_models.api import ApiModel
from dynamic_html.helpers.config_models.cache import CacheModel
from dynamic_html.helpers.config_models.edge import EdgeModel
from dynamic_html.helpers.config_models.monitoring import MonitoringModel
from dynamic_html.helpers.config_models.store import (
    DEFAULT_PARAMETER_NAME,
    StoreModel,
)


class RootModel(BaseSettings):
    # Pydantic settings
    model_config = SettingsConfigDict(
        env_ignore_empty=True,
        env_nested_delimiter="__",
        env_prefix="",
    )

    # Immutable fields
    parameter_name: str = Field(
        default=DEFAULT_PARAMETER_NAME,
        frozen=True,
        min_length=1,
        validation_alias=AliasChoices(
            "parameter_name",
            "ssm_parameter_name",  # Compatibility with the Lambda deployment
        ),
    )
    version: str = Field(default="0.0.0-unknown", frozen=True)
    # Editable fields
    api: ApiModel = ApiModel()  # Object is fully defined by default
    cache: CacheModel = CacheModel()  # Object is fully defined by default
    edge: EdgeModel = EdgeModel()  # Object is fully defined by default
    monitoring: MonitoringModel = (
        MonitoringModel()
    )  # Object is fully defined by default
    store: StoreModel = StoreModel()  # Object is fully defined by default

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],  # noqa: ARG003
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """
        Customise the order of the settings sources.

        Order is now:
        1. Environment variables
        2. .env file
        3. Docker secrets
        4. Initial settings

        See: https://docs.pydantic.dev/latest/concepts/pydantic_settings/#changing-priority
        """
        return env_settings, dotenv_settings, file_secret_settings, init_settings

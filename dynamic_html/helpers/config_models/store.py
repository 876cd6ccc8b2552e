from enum import Enum
from functools import cached_property

from pydantic import BaseModel, Field, model_validator

from dynamic_html.persistence.iconfiguration import IConfigurationStore

DEFAULT_PARAMETER_NAME = "/dynamic-html/string"
DEFAULT_PARAMETER_VALUE = "Initial Dynamic String"


class ModeEnum(str, Enum):
    APP_CONFIGURATION = "app_configuration"
    """Use Azure App Configuration."""
    MEMORY = "memory"
    """Use static values held in memory, for local development and tests."""
    SSM = "ssm"
    """Use AWS Systems Manager Parameter Store."""


class MemoryModel(BaseModel, frozen=True):
    values: dict[str, str] = Field(
        default_factory=lambda: {DEFAULT_PARAMETER_NAME: DEFAULT_PARAMETER_VALUE}
    )

    @cached_property
    def instance(self) -> IConfigurationStore:
        from dynamic_html.persistence.memory_configuration import (
            MemoryConfigurationStore,
        )

        return MemoryConfigurationStore(self)


class SsmModel(BaseModel, frozen=True):
    endpoint_url: str | None = None
    region: str | None = None
    timeout_sec: int = Field(default=5, ge=1)
    with_decryption: bool = True

    @cached_property
    def instance(self) -> IConfigurationStore:
        from dynamic_html.persistence.ssm import (
            SsmConfigurationStore,
        )

        return SsmConfigurationStore(self)


class AppConfigurationModel(BaseModel, frozen=True):
    endpoint: str
    label: str | None = None

    @cached_property
    def instance(self) -> IConfigurationStore:
        from dynamic_html.persistence.app_configuration import (
            AppConfigurationStore,
        )

        return AppConfigurationStore(self)


class StoreModel(BaseModel):
    """
    Configuration store holding the dynamic string.
    """

    app_configuration: AppConfigurationModel | None = None
    memory: MemoryModel | None = MemoryModel()  # Object is fully defined by default
    mode: ModeEnum = ModeEnum.MEMORY
    ssm: SsmModel | None = SsmModel()  # Object is fully defined by default

    @model_validator(mode="after")
    def _validate_mode(self) -> "StoreModel":
        if self.mode == ModeEnum.APP_CONFIGURATION and not self.app_configuration:
            raise ValueError("App Configuration config required")
        if self.mode == ModeEnum.MEMORY and not self.memory:
            raise ValueError("Memory config required")
        if self.mode == ModeEnum.SSM and not self.ssm:
            raise ValueError("SSM config required")
        return self

    @cached_property
    def instance(self) -> IConfigurationStore:
        if self.mode == ModeEnum.APP_CONFIGURATION:
            assert self.app_configuration
            return self.app_configuration.instance

        if self.mode == ModeEnum.SSM:
            assert self.ssm
            return self.ssm.instance

        assert self.memory
        return self.memory.instance

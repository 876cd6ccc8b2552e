from enum import Enum
from functools import cached_property

from pydantic import BaseModel, Field, SecretStr, model_validator

from dynamic_html.persistence.icache import ICache


class ModeEnum(str, Enum):
    MEMORY = "memory"
    """Keep edge responses in the process memory."""
    REDIS = "redis"
    """Keep edge responses in Redis, shared between edge replicas."""


class MemoryModel(BaseModel, frozen=True):
    max_size: int = Field(default=128, ge=10)

    @cached_property
    def instance(self) -> ICache:
        from dynamic_html.persistence.memory import (
            MemoryCache,
        )

        return MemoryCache(self)


class RedisModel(BaseModel, frozen=True):
    database: int = Field(default=0, ge=0)
    host: str
    password: SecretStr | None = None
    port: int = 6379
    ssl: bool = True

    @cached_property
    def instance(self) -> ICache:
        from dynamic_html.persistence.redis import (
            RedisCache,
        )

        return RedisCache(self)


class CacheModel(BaseModel):
    """
    Storage backend of the edge cache.
    """

    memory: MemoryModel | None = MemoryModel()  # Object is fully defined by default
    mode: ModeEnum = ModeEnum.MEMORY
    redis: RedisModel | None = None

    @model_validator(mode="after")
    def _validate_mode(self) -> "CacheModel":
        if self.mode == ModeEnum.REDIS and not self.redis:
            raise ValueError("Redis config required")
        if self.mode == ModeEnum.MEMORY and not self.memory:
            raise ValueError("Memory config required")
        return self

    @cached_property
    def instance(self) -> ICache:
        if self.mode == ModeEnum.MEMORY:
            assert self.memory
            return self.memory.instance

        assert self.redis
        return self.redis.instance

import hashlib
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from uuid import uuid4

from opentelemetry.instrumentation.redis import RedisInstrumentor
from redis.asyncio import Connection, ConnectionPool, Redis, SSLConnection
from redis.asyncio.retry import Retry
from redis.backoff import ExponentialBackoff
from redis.exceptions import (
    BusyLoadingError,
    ConnectionError as RedisConnectionError,
    RedisError,
)

from dynamic_html.helpers.cache import lru_acache
from dynamic_html.helpers.config_models.cache import RedisModel
from dynamic_html.helpers.logging import logger
from dynamic_html.models.readiness import ReadinessEnum
from dynamic_html.persistence.icache import ICache

# Instrument redis
RedisInstrumentor().instrument()

_KEY_PREFIX = b"dynamic-html:edge:"


class RedisCache(ICache):
    """
    Redis backed cache, shared between edge replicas.

    Expiration is delegated to Redis with the `EX` option.
    """

    _config: RedisModel

    def __init__(self, config: RedisModel):
        self._config = config

    async def readiness(self) -> ReadinessEnum:
        """
        Check the readiness of the Redis cache.

        A random key is created, read back and deleted.
        """
        test_name = self._key_to_hash(str(uuid4()))
        test_value = "test"
        try:
            async with self._use_client() as client:
                assert await client.get(test_name) is None
                await client.set(
                    ex=10,
                    name=test_name,
                    value=test_value,
                )
                assert (await client.get(test_name)).decode() == test_value
                await client.delete(test_name)
            return ReadinessEnum.OK
        except AssertionError:
            logger.exception("Readiness test failed")
        except RedisError:
            logger.exception("Error requesting Redis")
        return ReadinessEnum.FAIL

    async def get(self, key: str) -> bytes | None:
        """
        Get a value from the cache.

        If the key does not exist or on connection error, return `None`. A cache failure is a cache miss.
        """
        try:
            async with self._use_client() as client:
                return await client.get(self._key_to_hash(key))
        except RedisError:
            logger.exception("Error getting value")
        return None

    async def set(
        self,
        key: str,
        ttl_sec: int,
        value: str | bytes | None,
    ) -> bool:
        """
        Set a value in the cache.

        If the value is `None`, set an empty string.
        """
        try:
            async with self._use_client() as client:
                await client.set(
                    ex=ttl_sec,
                    name=self._key_to_hash(key),
                    value=value if value else "",
                )
        except RedisError:
            logger.exception("Error setting value")
            return False
        return True

    async def delete(self, key: str) -> bool:
        """
        Delete a value from the cache.
        """
        try:
            async with self._use_client() as client:
                await client.delete(self._key_to_hash(key))
        except RedisError:
            logger.exception("Error deleting value")
            return False
        return True

    @lru_acache()
    async def _use_connection_pool(self) -> ConnectionPool:
        """
        Generate the Redis connection pool.
        """
        logger.info("Using Redis cache %s:%s", self._config.host, self._config.port)

        return ConnectionPool(
            # Database location
            db=self._config.database,
            # Reliability
            health_check_interval=10,  # Check the health of the connection every 10 secs
            retry_on_error=[BusyLoadingError, RedisConnectionError],
            retry_on_timeout=True,
            retry=Retry(backoff=ExponentialBackoff(), retries=3),
            socket_connect_timeout=5,
            socket_timeout=1,  # Respond quickly or abort, this is a cache
            # Deployment
            connection_class=SSLConnection if self._config.ssl else Connection,
            host=self._config.host,
            port=self._config.port,
            # Authentication
            password=self._config.password.get_secret_value()
            if self._config.password
            else None,
        )

    @asynccontextmanager
    async def _use_client(self) -> AsyncGenerator[Redis, None]:
        """
        Return a Redis client bound to the shared connection pool.
        """
        async with Redis(
            auto_close_connection_pool=False,
            connection_pool=await self._use_connection_pool(),
        ) as client:
            yield client

    @staticmethod
    def _key_to_hash(key: str) -> bytes:
        """
        Transform the key into a namespaced hash.

        SHA-256 lower the collision probability and bounds the key size.
        """
        return _KEY_PREFIX + hashlib.sha256(
            key.encode(), usedforsecurity=False
        ).digest()

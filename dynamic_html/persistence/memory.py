import hashlib
from collections import OrderedDict
from datetime import UTC, datetime, timedelta

from dynamic_html.helpers.config_models.cache import MemoryModel
from dynamic_html.helpers.logging import logger
from dynamic_html.helpers.monitoring import suppress
from dynamic_html.models.readiness import ReadinessEnum
from dynamic_html.persistence.icache import ICache


class MemoryCache(ICache):
    """
    A simple in-memory cache, local to the process.

    Use the least recently used (LRU) policy to remove the oldest used items when the cache is full. Each edge replica keeps its own copy, prefer Redis when running more than one.

    See: https://en.wikipedia.org/wiki/Cache_replacement_policies#Least_recently_used_(LRU)
    """

    _cache: OrderedDict[str, bytes | None]
    _config: MemoryModel
    _ttl: dict[str, datetime]

    def __init__(self, config: MemoryModel):
        logger.debug("Using memory cache with %s size limit", config.max_size)
        self._cache = OrderedDict()
        self._config = config
        self._ttl = {}

    async def readiness(self) -> ReadinessEnum:
        """
        Check the readiness of the memory cache.
        """
        return ReadinessEnum.OK  # Always ready, it's memory :)

    async def get(self, key: str) -> bytes | None:
        """
        Get a value from the cache.

        If the key does not exist or is expired, return `None`.
        """
        sha_key = self._key_to_hash(key)

        # Check TTL, delete if expired
        ttl = self._ttl.get(sha_key, None)
        if ttl and ttl <= datetime.now(UTC):
            await self.delete(key)
            return None

        # Get from cache
        res = self._cache.get(sha_key, None)
        if not res:
            return None

        # Mark as most recently used
        self._cache.move_to_end(sha_key)
        return res

    async def set(
        self,
        key: str,
        ttl_sec: int,
        value: str | bytes | None,
    ) -> bool:
        """
        Set a value in the cache.
        """
        sha_key = self._key_to_hash(key)

        # Evict the least recently used if full
        if sha_key not in self._cache and len(self._cache) >= self._config.max_size:
            evicted, _ = self._cache.popitem(last=False)
            self._ttl.pop(evicted, None)

        self._ttl[sha_key] = datetime.now(UTC) + timedelta(seconds=ttl_sec)
        self._cache[sha_key] = value.encode() if isinstance(value, str) else value
        self._cache.move_to_end(sha_key)

        return True

    async def delete(self, key: str) -> bool:
        """
        Delete a value from the cache.
        """
        sha_key = self._key_to_hash(key)

        # Delete keys
        with suppress(KeyError):
            self._ttl.pop(sha_key)
        with suppress(KeyError):
            self._cache.pop(sha_key)

        return True

    @staticmethod
    def _key_to_hash(key: str) -> str:
        """
        Transform the key into a hash.

        SHA-256 lower the collision probability. Plus, it reduce the key size, which is useful for memory usage.
        """
        return hashlib.sha256(key.encode(), usedforsecurity=False).hexdigest()

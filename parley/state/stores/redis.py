"""Redis implementation of PersistentStorage."""

import redis.asyncio as redis

from parley.config.models.storage import StorageConfig
from parley.errors import StorageConnectionError
from parley.observability.logging import get_logger
from parley.state.storage import PersistentStorage

logger = get_logger(__name__)


class RedisStorage(PersistentStorage):
    """Redis-backed persistent store.

    Key format: {prefix}:{key}
    """

    def __init__(self, client: redis.Redis, key_prefix: str = "parley") -> None:
        """Initialize Redis storage.

        Args:
            client: Redis client instance (decode_responses=True expected)
            key_prefix: Prefix for Redis keys
        """
        self._client = client
        self._prefix = key_prefix

    @classmethod
    def from_config(cls, config: StorageConfig) -> "RedisStorage":
        """Create storage with a client built from the storage config."""
        client = redis.Redis.from_url(
            config.connection_url or "redis://localhost:6379/0",
            decode_responses=True,
            socket_timeout=config.socket_timeout,
        )
        return cls(client, key_prefix=config.key_prefix)

    def _key(self, key: str) -> str:
        return f"{self._prefix}:{key}"

    async def read(self, keys: list[str]) -> dict[str, str]:
        if not keys:
            return {}
        try:
            values = await self._client.mget([self._key(k) for k in keys])
        except redis.RedisError as e:
            logger.error("redis_read_error", keys=keys, error=str(e))
            raise StorageConnectionError(f"Failed to read state: {e}", cause=e) from e

        result: dict[str, str] = {}
        for key, value in zip(keys, values):
            if value is None:
                continue
            result[key] = value.decode() if isinstance(value, bytes) else value
        return result

    async def write(self, changes: dict[str, str]) -> None:
        if not changes:
            return
        try:
            await self._client.mset({self._key(k): v for k, v in changes.items()})
        except redis.RedisError as e:
            logger.error("redis_write_error", keys=list(changes), error=str(e))
            raise StorageConnectionError(f"Failed to write state: {e}", cause=e) from e

    async def delete(self, keys: list[str]) -> None:
        if not keys:
            return
        try:
            await self._client.delete(*[self._key(k) for k in keys])
        except redis.RedisError as e:
            logger.error("redis_delete_error", keys=keys, error=str(e))
            raise StorageConnectionError(f"Failed to delete state: {e}", cause=e) from e

    async def health_check(self) -> bool:
        """Check Redis connection health."""
        try:
            await self._client.ping()
            return True
        except redis.RedisError as e:
            logger.warning("redis_health_check_failed", error=str(e))
            return False

    async def close(self) -> None:
        await self._client.aclose()

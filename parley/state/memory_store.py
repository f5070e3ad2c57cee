"""Write-through value cache over persistent storage.

The cache is process-local. Correctness relies on the input queue
admitting only one turn at a time, so no locking is performed here.
Replicas sharing one persistent store may observe stale cached reads.
"""

from parley.observability.logging import get_logger
from parley.observability.metrics import CACHE_HITS, STORE_OPERATIONS
from parley.state.storage import PersistentStorage

logger = get_logger(__name__)


class MemoryStore:
    """Async get/set/delete over opaque string blobs.

    Cache entries hold either the last known value or None, meaning the
    key is known to be absent from the store.
    """

    def __init__(self, storage: PersistentStorage) -> None:
        self._storage = storage
        self._cache: dict[str, str | None] = {}

    @property
    def storage(self) -> PersistentStorage:
        return self._storage

    async def get(self, key: str) -> str | None:
        """Return the value for key, reading through to storage on a cache miss.

        Raises:
            StorageError: If the store is unreachable and the key isn't cached
        """
        if key in self._cache:
            CACHE_HITS.labels(operation="get").inc()
            logger.debug("memory_cache_read", key=key)
            return self._cache[key]

        STORE_OPERATIONS.labels(operation="read").inc()
        data = await self._storage.read([key])
        value = data.get(key)
        self._cache[key] = value
        logger.debug("memory_store_read", key=key, found=value is not None)
        return value

    async def set(self, key: str, value: str | None) -> None:
        """Write value through to storage unless the cache already holds it."""
        if value is None:
            await self.delete(key)
            return

        if key in self._cache and self._cache[key] == value:
            CACHE_HITS.labels(operation="set").inc()
            logger.debug("memory_write_skipped", key=key)
            return

        STORE_OPERATIONS.labels(operation="write").inc()
        await self._storage.write({key: value})
        self._cache[key] = value
        logger.debug("memory_store_write", key=key)

    async def delete(self, key: str) -> None:
        """Delete key from storage unless it is already known to be absent."""
        if key in self._cache and self._cache[key] is None:
            CACHE_HITS.labels(operation="delete").inc()
            logger.debug("memory_delete_skipped", key=key)
            return

        STORE_OPERATIONS.labels(operation="delete").inc()
        await self._storage.delete([key])
        self._cache[key] = None
        logger.debug("memory_store_delete", key=key)

    def invalidate(self, key: str) -> None:
        """Drop the cache entry for key so the next get reads storage."""
        self._cache.pop(key, None)

    def clear_cache(self) -> None:
        """Drop every cache entry."""
        self._cache.clear()

"""PersistentStorage implementations."""

from parley.config.models.storage import StorageConfig
from parley.state.storage import PersistentStorage
from parley.state.stores.inmemory import InMemoryStorage
from parley.state.stores.redis import RedisStorage


def create_storage(config: StorageConfig) -> PersistentStorage:
    """Build the configured storage backend."""
    if config.backend == "redis":
        return RedisStorage.from_config(config)
    return InMemoryStorage()


__all__ = ["InMemoryStorage", "RedisStorage", "create_storage"]

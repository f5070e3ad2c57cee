"""Unit tests for PersistentStorage backends."""

from unittest.mock import AsyncMock

import pytest
import redis.asyncio as redis

from parley.config.models.storage import StorageConfig
from parley.errors import StorageConnectionError, StorageError
from parley.state.stores import InMemoryStorage, RedisStorage, create_storage


class TestInMemoryStorage:
    """Tests for InMemoryStorage."""

    @pytest.fixture
    def storage(self) -> InMemoryStorage:
        return InMemoryStorage()

    @pytest.mark.asyncio
    async def test_read_returns_only_existing(self, storage: InMemoryStorage) -> None:
        await storage.write({"a": "1", "b": "2"})

        assert await storage.read(["a", "missing"]) == {"a": "1"}

    @pytest.mark.asyncio
    async def test_delete_ignores_missing(self, storage: InMemoryStorage) -> None:
        await storage.write({"a": "1"})
        await storage.delete(["a", "missing"])

        assert await storage.read(["a"]) == {}

    @pytest.mark.asyncio
    async def test_clear(self, storage: InMemoryStorage) -> None:
        await storage.write({"a": "1"})
        storage.clear()

        assert await storage.read(["a"]) == {}


@pytest.fixture
def mock_redis():
    """Create mock Redis client."""
    client = AsyncMock()
    client.mget = AsyncMock(return_value=[])
    client.mset = AsyncMock(return_value=True)
    client.delete = AsyncMock(return_value=1)
    client.ping = AsyncMock(return_value=True)
    return client


@pytest.fixture
def redis_storage(mock_redis) -> RedisStorage:
    return RedisStorage(mock_redis, key_prefix="test")


class TestRedisStorage:
    """Tests for RedisStorage with a mocked client."""

    @pytest.mark.asyncio
    async def test_read_prefixes_keys(self, redis_storage: RedisStorage, mock_redis) -> None:
        mock_redis.mget.return_value = ["v1", None]

        result = await redis_storage.read(["a", "b"])

        mock_redis.mget.assert_awaited_once_with(["test:a", "test:b"])
        assert result == {"a": "v1"}

    @pytest.mark.asyncio
    async def test_read_decodes_bytes(self, redis_storage: RedisStorage, mock_redis) -> None:
        mock_redis.mget.return_value = [b"v1"]

        assert await redis_storage.read(["a"]) == {"a": "v1"}

    @pytest.mark.asyncio
    async def test_write_uses_mset(self, redis_storage: RedisStorage, mock_redis) -> None:
        await redis_storage.write({"a": "1"})

        mock_redis.mset.assert_awaited_once_with({"test:a": "1"})

    @pytest.mark.asyncio
    async def test_delete(self, redis_storage: RedisStorage, mock_redis) -> None:
        await redis_storage.delete(["a", "b"])

        mock_redis.delete.assert_awaited_once_with("test:a", "test:b")

    @pytest.mark.asyncio
    async def test_empty_inputs_skip_redis(self, redis_storage: RedisStorage, mock_redis) -> None:
        assert await redis_storage.read([]) == {}
        await redis_storage.write({})
        await redis_storage.delete([])

        mock_redis.mget.assert_not_awaited()
        mock_redis.mset.assert_not_awaited()
        mock_redis.delete.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_read_error_wrapped(self, redis_storage: RedisStorage, mock_redis) -> None:
        error = redis.ConnectionError("refused")
        mock_redis.mget.side_effect = error

        with pytest.raises(StorageConnectionError) as exc_info:
            await redis_storage.read(["a"])
        assert exc_info.value.cause is error
        assert isinstance(exc_info.value, StorageError)

    @pytest.mark.asyncio
    async def test_write_error_wrapped(self, redis_storage: RedisStorage, mock_redis) -> None:
        mock_redis.mset.side_effect = redis.TimeoutError("slow")

        with pytest.raises(StorageConnectionError):
            await redis_storage.write({"a": "1"})

    @pytest.mark.asyncio
    async def test_health_check(self, redis_storage: RedisStorage, mock_redis) -> None:
        assert await redis_storage.health_check() is True

        mock_redis.ping.side_effect = redis.ConnectionError("refused")
        assert await redis_storage.health_check() is False


class TestCreateStorage:
    """Tests for create_storage factory."""

    def test_inmemory_default(self) -> None:
        assert isinstance(create_storage(StorageConfig()), InMemoryStorage)

    def test_redis_backend(self) -> None:
        storage = create_storage(
            StorageConfig(backend="redis", connection_url="redis://localhost:6379/1")
        )
        assert isinstance(storage, RedisStorage)

"""Unit tests for the write-through MemoryStore cache."""

from unittest.mock import AsyncMock

import pytest

from parley.errors import StorageConnectionError
from parley.state.memory_store import MemoryStore
from parley.state.stores.inmemory import InMemoryStorage


@pytest.fixture
def mock_storage():
    """Storage double recording every backend call."""
    storage = AsyncMock()
    storage.read = AsyncMock(return_value={})
    storage.write = AsyncMock()
    storage.delete = AsyncMock()
    return storage


@pytest.fixture
def store(mock_storage) -> MemoryStore:
    return MemoryStore(mock_storage)


class TestGet:
    """Tests for MemoryStore.get."""

    @pytest.mark.asyncio
    async def test_miss_reads_storage(self, store: MemoryStore, mock_storage) -> None:
        mock_storage.read.return_value = {"k": "v"}

        assert await store.get("k") == "v"
        mock_storage.read.assert_awaited_once_with(["k"])

    @pytest.mark.asyncio
    async def test_hit_skips_storage(self, store: MemoryStore, mock_storage) -> None:
        mock_storage.read.return_value = {"k": "v"}
        await store.get("k")
        await store.get("k")

        assert mock_storage.read.await_count == 1

    @pytest.mark.asyncio
    async def test_absence_is_cached(self, store: MemoryStore, mock_storage) -> None:
        """A missing key is remembered as known-absent."""
        assert await store.get("missing") is None
        assert await store.get("missing") is None

        assert mock_storage.read.await_count == 1

    @pytest.mark.asyncio
    async def test_unreachable_store_raises(self, store: MemoryStore, mock_storage) -> None:
        mock_storage.read.side_effect = StorageConnectionError("down")

        with pytest.raises(StorageConnectionError):
            await store.get("k")

    @pytest.mark.asyncio
    async def test_cached_value_survives_outage(self, store: MemoryStore, mock_storage) -> None:
        mock_storage.read.return_value = {"k": "v"}
        await store.get("k")
        mock_storage.read.side_effect = StorageConnectionError("down")

        assert await store.get("k") == "v"


class TestSet:
    """Tests for MemoryStore.set."""

    @pytest.mark.asyncio
    async def test_set_then_get(self, store: MemoryStore, mock_storage) -> None:
        await store.set("k", "v")

        assert await store.get("k") == "v"
        mock_storage.write.assert_awaited_once_with({"k": "v"})
        mock_storage.read.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_identical_set_writes_once(self, store: MemoryStore, mock_storage) -> None:
        await store.set("k", "v")
        await store.set("k", "v")

        assert mock_storage.write.await_count == 1

    @pytest.mark.asyncio
    async def test_changed_value_writes_again(self, store: MemoryStore, mock_storage) -> None:
        await store.set("k", "v1")
        await store.set("k", "v2")

        assert mock_storage.write.await_count == 2
        assert await store.get("k") == "v2"

    @pytest.mark.asyncio
    async def test_none_delegates_to_delete(self, store: MemoryStore, mock_storage) -> None:
        await store.set("k", "v")
        await store.set("k", None)

        mock_storage.delete.assert_awaited_once_with(["k"])
        assert await store.get("k") is None

    @pytest.mark.asyncio
    async def test_failed_write_leaves_cache_untouched(
        self, store: MemoryStore, mock_storage
    ) -> None:
        await store.set("k", "v1")
        mock_storage.write.side_effect = StorageConnectionError("down")

        with pytest.raises(StorageConnectionError):
            await store.set("k", "v2")
        assert await store.get("k") == "v1"


class TestDelete:
    """Tests for MemoryStore.delete."""

    @pytest.mark.asyncio
    async def test_delete_known_absent_is_noop(self, store: MemoryStore, mock_storage) -> None:
        await store.get("k")
        await store.delete("k")

        mock_storage.delete.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_delete_uncached_key_deletes_through(
        self, store: MemoryStore, mock_storage
    ) -> None:
        await store.delete("k")

        mock_storage.delete.assert_awaited_once_with(["k"])

    @pytest.mark.asyncio
    async def test_second_delete_is_noop(self, store: MemoryStore, mock_storage) -> None:
        await store.set("k", "v")
        await store.delete("k")
        await store.delete("k")

        assert mock_storage.delete.await_count == 1


class TestCacheControl:
    """Tests for invalidate and clear_cache."""

    @pytest.mark.asyncio
    async def test_invalidate_forces_read(self, store: MemoryStore, mock_storage) -> None:
        mock_storage.read.return_value = {"k": "v"}
        await store.get("k")
        store.invalidate("k")
        await store.get("k")

        assert mock_storage.read.await_count == 2

    @pytest.mark.asyncio
    async def test_clear_cache_sees_other_writers(self) -> None:
        """Two stores over one backend only agree after a cache clear."""
        storage = InMemoryStorage()
        first = MemoryStore(storage)
        second = MemoryStore(storage)

        await first.set("k", "old")
        assert await second.get("k") == "old"
        await first.set("k", "new")

        assert await second.get("k") == "old"
        second.clear_cache()
        assert await second.get("k") == "new"

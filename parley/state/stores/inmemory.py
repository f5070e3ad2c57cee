"""In-memory implementation of PersistentStorage."""

from parley.state.storage import PersistentStorage


class InMemoryStorage(PersistentStorage):
    """In-memory storage for testing and development.

    Not shared across processes.
    """

    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    async def read(self, keys: list[str]) -> dict[str, str]:
        return {key: self._data[key] for key in keys if key in self._data}

    async def write(self, changes: dict[str, str]) -> None:
        self._data.update(changes)

    async def delete(self, keys: list[str]) -> None:
        for key in keys:
            self._data.pop(key, None)

    def clear(self) -> None:
        """Clear all entries (test utility)."""
        self._data.clear()

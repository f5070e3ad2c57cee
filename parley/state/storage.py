"""PersistentStorage abstract interface."""

from abc import ABC, abstractmethod


class PersistentStorage(ABC):
    """Abstract interface for the persistent key/value store.

    Values are opaque serialized documents. Implementations must wrap
    backend failures in StorageError subclasses.
    """

    @abstractmethod
    async def read(self, keys: list[str]) -> dict[str, str]:
        """Read keys, returning only those that exist."""
        pass

    @abstractmethod
    async def write(self, changes: dict[str, str]) -> None:
        """Write every key/value pair in changes."""
        pass

    @abstractmethod
    async def delete(self, keys: list[str]) -> None:
        """Delete keys. Missing keys are ignored."""
        pass

    async def close(self) -> None:
        """Release backend connections."""
        pass

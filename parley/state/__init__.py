"""Persisted per-conversation state: storage backends and the value cache."""

from parley.state.keys import Namespace, build_key, scope_key
from parley.state.memory_store import MemoryStore
from parley.state.storage import PersistentStorage

__all__ = [
    "MemoryStore",
    "Namespace",
    "PersistentStorage",
    "build_key",
    "scope_key",
]

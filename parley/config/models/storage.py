"""Persistent store configuration models."""

from typing import Literal

from pydantic import BaseModel, Field

StorageBackend = Literal["inmemory", "redis"]


class StorageConfig(BaseModel):
    """Configuration for the persistent key/value store."""

    backend: StorageBackend = Field(
        default="inmemory",
        description="Backend type",
    )
    connection_url: str | None = Field(
        default=None,
        description="Redis connection URL (from env var)",
    )
    key_prefix: str = Field(
        default="parley",
        description="Prefix applied to every persisted key",
    )
    socket_timeout: float = Field(
        default=5.0,
        gt=0,
        description="Redis socket timeout in seconds",
    )

"""Configuration model exports."""

from parley.config.models.observability import LoggingConfig, ObservabilityConfig
from parley.config.models.runtime import QueueConfig, RuntimeConfig
from parley.config.models.storage import StorageConfig

__all__ = [
    "LoggingConfig",
    "ObservabilityConfig",
    "QueueConfig",
    "RuntimeConfig",
    "StorageConfig",
]

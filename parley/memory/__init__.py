"""Entity memory: the mapping of entity name to remembered values."""

from parley.memory.entity_memory import EntityMemory
from parley.memory.manager import MemoryManager
from parley.memory.models import (
    EntityDefinition,
    EntityRef,
    EntityType,
    FilledEntity,
    FilledEntityMap,
    Memory,
    MemoryValue,
    NegativeEntity,
    PositiveEntity,
    parse_entity_ref,
)

__all__ = [
    "EntityDefinition",
    "EntityMemory",
    "EntityRef",
    "EntityType",
    "FilledEntity",
    "FilledEntityMap",
    "Memory",
    "MemoryManager",
    "MemoryValue",
    "NegativeEntity",
    "PositiveEntity",
    "parse_entity_ref",
]

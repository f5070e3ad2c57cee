"""Persisted entity memory for one conversation scope.

Every operation loads the map from the MemoryStore, applies its change
and writes the map back as one blob. Only one turn runs at a time, so the
read-modify-write cycle needs no locking.
"""

from typing import Any

from parley.memory.models import (
    EntityRef,
    FilledEntity,
    FilledEntityMap,
    Memory,
    MemoryValue,
    NegativeEntity,
    parse_entity_ref,
)
from parley.observability.logging import get_logger
from parley.state.memory_store import MemoryStore

logger = get_logger(__name__)


class EntityMemory:
    """Typed view over the MemoryStore blob holding a FilledEntityMap."""

    def __init__(self, store: MemoryStore, key: str) -> None:
        self._store = store
        self._key = key

    @property
    def key(self) -> str:
        return self._key

    async def filled_entity_map(self) -> FilledEntityMap:
        """Load the current map. An unparsable blob reads as an empty map."""
        data = await self._store.get(self._key)
        if not data:
            return FilledEntityMap()
        try:
            return FilledEntityMap.deserialize(data)
        except ValueError as e:
            logger.warning("entity_memory_parse_failed", key=self._key, error=str(e))
            return FilledEntityMap()

    async def restore(self, filled_entity_map: FilledEntityMap) -> None:
        """Persist a whole map, replacing what is stored."""
        await self._store.set(self._key, filled_entity_map.serialize())

    async def clear(self) -> None:
        await self.restore(FilledEntityMap())

    async def remember_entity(
        self,
        entity_name: str,
        entity_id: str,
        entity_value: str,
        is_bucket: bool = False,
        builtin_type: str | None = None,
        resolution: dict[str, Any] | None = None,
    ) -> None:
        entities = await self.filled_entity_map()
        entities.remember(
            entity_name, entity_id, entity_value, is_bucket, builtin_type, resolution
        )
        await self.restore(entities)

    async def remember_many(
        self,
        entity_name: str,
        entity_id: str,
        entity_values: list[str],
        is_bucket: bool = False,
        builtin_type: str | None = None,
        resolution: dict[str, Any] | None = None,
    ) -> None:
        entities = await self.filled_entity_map()
        entities.remember_many(
            entity_name, entity_id, entity_values, is_bucket, builtin_type, resolution
        )
        await self.restore(entities)

    async def forget(
        self, entity_name: str, entity_value: str | None = None, is_bucket: bool = False
    ) -> None:
        entities = await self.filled_entity_map()
        entities.forget(entity_name, entity_value, is_bucket)
        await self.restore(entities)

    async def forget_entity(
        self, entity: EntityRef | str, entity_value: str | None, is_bucket: bool
    ) -> None:
        """Forget a value of the positive counterpart of a negative entity.

        Positive references have nothing to retract and are ignored.
        """
        ref = parse_entity_ref(entity) if isinstance(entity, str) else entity
        if isinstance(ref, NegativeEntity):
            await self.forget(ref.positive_name, entity_value, is_bucket)

    async def filled_entities(self) -> list[FilledEntity]:
        return (await self.filled_entity_map()).filled_entities()

    async def remembered_names(self) -> list[str]:
        return (await self.filled_entity_map()).entity_names()

    async def dump(self) -> list[Memory]:
        return (await self.filled_entity_map()).dump()

    async def value(self, entity_name: str) -> str | None:
        return (await self.filled_entity_map()).value_as_string(entity_name)

    async def value_as_list(self, entity_name: str) -> list[str]:
        return (await self.filled_entity_map()).value_as_list(entity_name)

    async def value_as_prebuilt(self, entity_name: str) -> list[MemoryValue]:
        return (await self.filled_entity_map()).value_as_prebuilt(entity_name)

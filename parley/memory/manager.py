"""Memory façade handed to user callbacks.

Callbacks receive a MemoryManager over the turn's working copy of entity
memory plus a read-only snapshot of memory as it was before the turn.
The caller persists the working copy once the callback returns.
"""

import json
from collections.abc import Iterable
from typing import Any

from parley.errors import UnknownEntityError
from parley.memory.models import (
    EntityDefinition,
    EntityType,
    FilledEntity,
    FilledEntityMap,
    MemoryValue,
)
from parley.observability.logging import get_logger
from parley.session.models import SessionInfo

logger = get_logger(__name__)

EXPIRED_MESSAGE = (
    "called after your function has already returned. "
    "You must await results within your code rather than use callbacks"
)


def _as_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return str(value)


class MemoryManager:
    """Entity memory operations available inside callbacks.

    Operations naming an entity the model doesn't define are logged and
    skipped; the turn continues.
    """

    def __init__(
        self,
        prev_memories: FilledEntityMap,
        cur_memories: FilledEntityMap,
        entities: Iterable[EntityDefinition],
        session_info: SessionInfo | None = None,
    ) -> None:
        self.prev_memories = prev_memories
        self.cur_memories = cur_memories
        self._entities = {e.entity_name: e for e in entities}
        self._session_info = session_info
        self._expired = False

    def expire(self) -> None:
        """Reject further mutations once the owning callback has returned."""
        self._expired = True

    @property
    def expired(self) -> bool:
        return self._expired

    def _find_entity(self, entity_name: str) -> EntityDefinition:
        entity = self._entities.get(entity_name)
        if entity is None:
            raise UnknownEntityError(entity_name)
        return entity

    def _writable_entity(self, entity_name: str, operation: str) -> EntityDefinition | None:
        if self._expired:
            logger.error("memory_manager_expired", operation=operation, detail=EXPIRED_MESSAGE)
            return None
        try:
            entity = self._find_entity(entity_name)
        except UnknownEntityError as e:
            logger.error("unknown_entity", operation=operation, entity_name=entity_name, error=e.message)
            return None
        if entity.entity_type == EntityType.PREBUILT:
            logger.error(
                "prebuilt_entity_write_rejected",
                operation=operation,
                entity_name=entity_name,
            )
            return None
        return entity

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def remember_entity(self, entity_name: str, entity_value: Any) -> None:
        entity = self._writable_entity(entity_name, "remember_entity")
        if entity is None:
            return
        self.cur_memories.remember(
            entity.entity_name, entity.entity_id, _as_text(entity_value), entity.is_bucket
        )

    def remember_entities(self, entity_name: str, entity_values: Iterable[Any]) -> None:
        entity = self._writable_entity(entity_name, "remember_entities")
        if entity is None:
            return
        if not entity.is_bucket:
            logger.warning(
                "remember_entities_on_scalar",
                entity_name=entity_name,
                detail="Only the last value will be remembered",
            )
        self.cur_memories.remember_many(
            entity.entity_name,
            entity.entity_id,
            [_as_text(v) for v in entity_values],
            entity.is_bucket,
        )

    def forget_entity(self, entity_name: str, value: str | None = None) -> None:
        """Forget one bucket value, or the whole entity when value is None."""
        if self._expired:
            logger.error("memory_manager_expired", operation="forget_entity", detail=EXPIRED_MESSAGE)
            return
        try:
            entity = self._find_entity(entity_name)
        except UnknownEntityError as e:
            logger.error("unknown_entity", operation="forget_entity", entity_name=entity_name, error=e.message)
            return
        self.cur_memories.forget(entity.entity_name, value, entity.is_bucket)

    def forget_all_entities(self, save_entity_names: Iterable[str] = ()) -> None:
        """Clear every entity except those named in save_entity_names."""
        if self._expired:
            logger.error("memory_manager_expired", operation="forget_all_entities", detail=EXPIRED_MESSAGE)
            return
        keep = set(save_entity_names)
        for entity in self._entities.values():
            if entity.entity_name not in keep:
                self.cur_memories.forget(entity.entity_name)

    def copy_entity(self, entity_name_from: str, entity_name_to: str) -> None:
        entity_from = self._writable_entity(entity_name_from, "copy_entity")
        entity_to = self._writable_entity(entity_name_to, "copy_entity")
        if entity_from is None or entity_to is None:
            return
        if entity_from.is_bucket != entity_to.is_bucket:
            logger.error(
                "copy_entity_kind_mismatch",
                entity_from=entity_name_from,
                entity_to=entity_name_to,
            )
            return

        values = self.cur_memories.value_as_list(entity_name_from)
        self.cur_memories.forget(entity_name_to)
        self.cur_memories.remember_many(
            entity_to.entity_name, entity_to.entity_id, values, entity_to.is_bucket
        )

    # ------------------------------------------------------------------
    # Current values
    # ------------------------------------------------------------------

    def entity_value(self, entity_name: str) -> str | None:
        return self.cur_memories.value_as_string(entity_name)

    def entity_value_as_list(self, entity_name: str) -> list[str]:
        return self.cur_memories.value_as_list(entity_name)

    def entity_value_as_prebuilt(self, entity_name: str) -> list[MemoryValue]:
        return self.cur_memories.value_as_prebuilt(entity_name)

    def entity_value_as_number(self, entity_name: str) -> float | None:
        return self.cur_memories.value_as_number(entity_name)

    def entity_value_as_boolean(self, entity_name: str) -> bool | None:
        return self.cur_memories.value_as_boolean(entity_name)

    def entity_value_as_object(self, entity_name: str) -> Any:
        return self.cur_memories.value_as_object(entity_name)

    # ------------------------------------------------------------------
    # Values before the turn
    # ------------------------------------------------------------------

    def prev_entity_value(self, entity_name: str) -> str | None:
        return self.prev_memories.value_as_string(entity_name)

    def prev_entity_value_as_list(self, entity_name: str) -> list[str]:
        return self.prev_memories.value_as_list(entity_name)

    def prev_entity_value_as_prebuilt(self, entity_name: str) -> list[MemoryValue]:
        return self.prev_memories.value_as_prebuilt(entity_name)

    def prev_entity_value_as_number(self, entity_name: str) -> float | None:
        return self.prev_memories.value_as_number(entity_name)

    def prev_entity_value_as_boolean(self, entity_name: str) -> bool | None:
        return self.prev_memories.value_as_boolean(entity_name)

    def prev_entity_value_as_object(self, entity_name: str) -> Any:
        return self.prev_memories.value_as_object(entity_name)

    def get_filled_entities(self) -> list[FilledEntity]:
        return self.cur_memories.filled_entities()

    def session_info(self) -> SessionInfo | None:
        return self._session_info

"""Entity detection shared by live turns and training replay."""

from parley.memory.manager import MemoryManager
from parley.memory.models import (
    EntityDefinition,
    EntityRef,
    FilledEntityMap,
    NegativeEntity,
    PositiveEntity,
    parse_entity_ref,
)
from parley.observability.logging import get_logger
from parley.runtime.callbacks import CallbackRegistry, invoke
from parley.runtime.models import PredictedEntity
from parley.session.container import ConversationState

logger = get_logger(__name__)


def resolve_entity_ref(
    entity: EntityDefinition, definitions: dict[str, EntityDefinition]
) -> EntityRef:
    """Tag an entity as positive or as the negation of another entity."""
    if not entity.is_negative:
        return PositiveEntity(entity.entity_name)
    positive = definitions.get(entity.positive_id or "")
    if positive is not None:
        return NegativeEntity(positive.entity_name)
    return parse_entity_ref(entity.entity_name)


class EntityDetector:
    """Applies predicted entities to memory, then runs the user callback."""

    def __init__(self, callbacks: CallbackRegistry) -> None:
        self._callbacks = callbacks

    def apply(
        self,
        filled_entity_map: FilledEntityMap,
        predicted: list[PredictedEntity],
        entities: list[EntityDefinition],
    ) -> None:
        """Remember predicted values; negative entities forget positive ones."""
        by_id = {e.entity_id: e for e in entities}
        by_name = {e.entity_name: e for e in entities}

        for prediction in predicted:
            entity = by_id.get(prediction.entity_id)
            if entity is None:
                logger.warning("predicted_entity_unknown", entity_id=prediction.entity_id)
                continue

            ref = resolve_entity_ref(entity, by_id)
            if isinstance(ref, NegativeEntity):
                positive = by_name.get(ref.positive_name)
                is_bucket = positive.is_bucket if positive else entity.is_bucket
                filled_entity_map.forget(ref.positive_name, prediction.entity_text, is_bucket)
            else:
                filled_entity_map.remember(
                    entity.entity_name,
                    entity.entity_id,
                    prediction.entity_text,
                    entity.is_bucket,
                    prediction.builtin_type,
                    prediction.resolution,
                )

    async def detect(
        self,
        state: ConversationState,
        text: str,
        predicted: list[PredictedEntity],
        entities: list[EntityDefinition],
    ) -> FilledEntityMap:
        """Update the scope's entity memory for one user input.

        Returns:
            The entity memory after detection, as persisted
        """
        prev_memories = await state.entity_memory.filled_entity_map()
        cur_memories = prev_memories.copy()
        self.apply(cur_memories, predicted, entities)

        callback = self._callbacks.entity_detection
        if callback is not None:
            manager = MemoryManager(
                prev_memories, cur_memories, entities, await state.bot_state.session_info()
            )
            try:
                await invoke(callback, text, predicted, manager)
            finally:
                manager.expire()

        await state.entity_memory.restore(cur_memories)
        logger.debug(
            "entities_detected",
            predicted=len(predicted),
            remembered=len(cur_memories),
        )
        return cur_memories

"""Turn a resolved action into a bot response.

Responses are response text, a card attachment dict, or None when the
action produces nothing to send.
"""

from collections.abc import Awaitable, Callable
from typing import Any

from parley.memory.manager import MemoryManager
from parley.memory.models import FilledEntityMap
from parley.observability.logging import get_logger
from parley.runtime.callbacks import CallbackRegistry, invoke
from parley.runtime.models import ActionDefinition, ActionType

logger = get_logger(__name__)

CARD_CONTENT_TYPE = "application/vnd.microsoft.card.adaptive"

BotResponse = str | dict[str, Any] | None

CardRenderer = Callable[
    [str, dict[str, str], FilledEntityMap],
    dict[str, Any] | None | Awaitable[dict[str, Any] | None],
]


def default_card_renderer(
    template_name: str,
    arguments: dict[str, str],
    filled_entity_map: FilledEntityMap,  # noqa: ARG001
) -> dict[str, Any]:
    """Render a card as its template name plus substituted arguments."""
    return {"template": template_name, "arguments": arguments}


class ActionDispatcher:
    """Produces bot responses for TEXT, CARD, API_LOCAL and END_SESSION actions."""

    def __init__(
        self,
        callbacks: CallbackRegistry,
        card_renderer: CardRenderer = default_card_renderer,
    ) -> None:
        self._callbacks = callbacks
        self._card_renderer = card_renderer

    async def dispatch(
        self,
        action: ActionDefinition,
        filled_entity_map: FilledEntityMap,
        memory: MemoryManager,
    ) -> BotResponse:
        """Produce the response for an action.

        Args:
            action: Resolved action definition
            filled_entity_map: Entity values used for $entity substitution
            memory: Memory handed to local action callbacks

        Returns:
            Response text, a card attachment, or None
        """
        if action.action_type == ActionType.CARD:
            return await self._card(action, filled_entity_map)
        if action.action_type == ActionType.API_LOCAL:
            return await self._local(action, filled_entity_map, memory)
        if action.action_type == ActionType.END_SESSION:
            return filled_entity_map.substitute(action.payload) if action.payload else None
        return filled_entity_map.substitute(action.payload)

    def _arguments(
        self, action: ActionDefinition, filled_entity_map: FilledEntityMap
    ) -> dict[str, str]:
        return {
            arg.parameter: filled_entity_map.substitute_entities(arg.value)
            for arg in action.arguments
        }

    async def _card(
        self, action: ActionDefinition, filled_entity_map: FilledEntityMap
    ) -> BotResponse:
        arguments = self._arguments(action, filled_entity_map)
        form = await invoke(self._card_renderer, action.payload, arguments, filled_entity_map)
        if form is None:
            logger.error("card_template_missing", template=action.payload, action_id=action.action_id)
            return f"Missing Template: {action.payload}"
        return {"content_type": CARD_CONTENT_TYPE, "content": form}

    async def _local(
        self,
        action: ActionDefinition,
        filled_entity_map: FilledEntityMap,
        memory: MemoryManager,
    ) -> BotResponse:
        callback = self._callbacks.action(action.payload)
        if callback is None:
            logger.error("local_action_undefined", action_name=action.payload, action_id=action.action_id)
            return f'API "{action.payload}" is undefined'

        args = list(self._arguments(action, filled_entity_map).values())
        try:
            return await invoke(callback, memory, *args)
        finally:
            memory.expire()

"""Registry of user callbacks for one runtime.

Callbacks may be plain functions or coroutine functions.
"""

import inspect
from collections.abc import Awaitable
from typing import Any, Protocol

from parley.memory.manager import MemoryManager
from parley.observability.logging import get_logger
from parley.runtime.models import PredictedEntity

logger = get_logger(__name__)


class EntityDetectionCallback(Protocol):
    """Adjusts entity memory after extraction, as live traffic would."""

    def __call__(
        self, text: str, predicted: list[PredictedEntity], memory: MemoryManager
    ) -> Awaitable[None] | None: ...


class LocalAction(Protocol):
    """Bot code run for an API_LOCAL action.

    Returns response text, a card payload, or None for no response.
    """

    def __call__(self, memory: MemoryManager, *args: str) -> Any: ...


class SessionCallback(Protocol):
    """Runs when a session starts or ends."""

    def __call__(self, memory: MemoryManager) -> Awaitable[None] | None: ...


async def invoke(callback: Any, *args: Any) -> Any:
    """Call a sync or async callback and return its result."""
    result = callback(*args)
    if inspect.isawaitable(result):
        result = await result
    return result


class CallbackRegistry:
    """Owned table of user callbacks, one per runtime."""

    def __init__(self) -> None:
        self._actions: dict[str, LocalAction] = {}
        self.entity_detection: EntityDetectionCallback | None = None
        self.on_session_start: SessionCallback | None = None
        self.on_session_end: SessionCallback | None = None

    def register_action(self, name: str, callback: LocalAction) -> None:
        """Register bot code for API_LOCAL actions whose payload is name."""
        if name in self._actions:
            logger.warning("local_action_replaced", action_name=name)
        self._actions[name] = callback

    def action(self, name: str) -> LocalAction | None:
        return self._actions.get(name)

    @property
    def action_names(self) -> list[str]:
        return list(self._actions)

    def set_entity_detection(self, callback: EntityDetectionCallback | None) -> None:
        self.entity_detection = callback

    def set_session_start(self, callback: SessionCallback | None) -> None:
        self.on_session_start = callback

    def set_session_end(self, callback: SessionCallback | None) -> None:
        self.on_session_end = callback

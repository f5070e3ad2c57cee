"""Per-scope bundle of all persisted conversation state."""

import time
from collections.abc import Awaitable, Callable

from parley.memory.entity_memory import EntityMemory
from parley.session.bot_state import BotState
from parley.session.session_state import SessionHook, SessionState
from parley.state.keys import Namespace, build_key, scope_key
from parley.state.memory_store import MemoryStore

StateHook = Callable[["ConversationState"], Awaitable[None]]


class ConversationState:
    """Bot state, entity memory and session lifecycle for one scope.

    The scope is the sha256 of the model id plus the conversation (or
    user) identity, so several models can share one conversation without
    sharing state.
    """

    def __init__(
        self,
        store: MemoryStore,
        identity: str,
        model_id: str = "",
        on_session_start: StateHook | None = None,
        on_session_end: StateHook | None = None,
        max_session_length: float = 1800.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.identity = identity
        self.scope = scope_key(identity, model_id)
        self._store = store

        self.bot_state = BotState(store, build_key(self.scope, Namespace.BOT_STATE))
        self.entity_memory = EntityMemory(store, build_key(self.scope, Namespace.ENTITY_MEMORY))
        self.session = SessionState(
            self.bot_state,
            self.entity_memory,
            on_start=self._bind(on_session_start),
            on_end=self._bind(on_session_end),
            max_session_length=max_session_length,
            clock=clock,
        )

    def _bind(self, hook: StateHook | None) -> SessionHook | None:
        if hook is None:
            return None

        async def _run() -> None:
            await hook(self)

        return _run

    @property
    def train_history_key(self) -> str:
        return build_key(self.scope, Namespace.TRAIN_HISTORY)

    async def train_history(self) -> str | None:
        """Serialized summary of the last replay run in this scope."""
        return await self._store.get(self.train_history_key)

    async def save_train_history(self, summary: str) -> None:
        await self._store.set(self.train_history_key, summary)

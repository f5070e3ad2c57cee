"""Conversation runtime: the owned service container for one running model.

Usage:
    runtime = ConversationRuntime.from_settings(get_settings())
    runtime.callbacks.register_action("lookup_weather", lookup_weather)

    result = await runtime.handle_input(conversation_id, "what's the weather in Paris?")
"""

import time
from collections.abc import Callable

from parley.client.client import HttpConversationService
from parley.client.service import ConversationService
from parley.config import get_settings
from parley.config.models.runtime import QueueConfig, RuntimeConfig
from parley.config.settings import Settings
from parley.errors import ConfigurationError, StorageError
from parley.memory.manager import MemoryManager
from parley.observability.logging import get_logger, setup_logging
from parley.runtime.actions import ActionDispatcher, CardRenderer, default_card_renderer
from parley.runtime.callbacks import CallbackRegistry, SessionCallback, invoke
from parley.runtime.detection import EntityDetector
from parley.runtime.models import Definitions, ReplayResult, TrainDialog, TurnResult
from parley.runtime.queue import InputQueue
from parley.runtime.replay import ReplayEngine
from parley.runtime.turn import TurnProcessor
from parley.session.container import ConversationState
from parley.state.keys import Namespace, build_key, scope_key
from parley.state.memory_store import MemoryStore
from parley.state.storage import PersistentStorage
from parley.state.stores import create_storage

logger = get_logger(__name__)

# Identity of the process-wide scope holding the in-flight marker
PROCESS_SCOPE = "parley-process"


class ConversationRuntime:
    """Owns storage, the value cache, the admission queue and turn processing.

    Every collaborator is an instance owned by the runtime, so several
    runtimes can run side by side in one process.
    """

    def __init__(
        self,
        storage: PersistentStorage,
        service: ConversationService,
        runtime_config: RuntimeConfig | None = None,
        queue_config: QueueConfig | None = None,
        callbacks: CallbackRegistry | None = None,
        card_renderer: CardRenderer = default_card_renderer,
        clock: Callable[[], float] = time.time,
        name: str = "default",
    ) -> None:
        self._config = runtime_config or RuntimeConfig()
        queue_config = queue_config or QueueConfig()
        self._clock = clock

        self.storage = storage
        self.store = MemoryStore(storage)
        self.service = service
        self.callbacks = callbacks or CallbackRegistry()
        self.definitions = Definitions()

        self.queue = InputQueue(
            self.store,
            build_key(scope_key(PROCESS_SCOPE, name), Namespace.MESSAGE_PROCESSING),
            timeout=queue_config.timeout_seconds,
            watchdog=queue_config.watchdog,
            clock=clock,
            name=name,
        )
        self.detector = EntityDetector(self.callbacks)
        self.dispatcher = ActionDispatcher(self.callbacks, card_renderer)
        self.replay = ReplayEngine(self.detector, self.dispatcher)
        self.turns = TurnProcessor(
            service,
            self.detector,
            self.dispatcher,
            app_id=self._config.app_id,
            max_turn_steps=self._config.max_turn_steps,
            on_definitions=self._set_definitions,
        )

    @classmethod
    def from_settings(
        cls,
        settings: Settings | None = None,
        storage: PersistentStorage | None = None,
        service: ConversationService | None = None,
        callbacks: CallbackRegistry | None = None,
        card_renderer: CardRenderer = default_card_renderer,
        configure_logging: bool = True,
    ) -> "ConversationRuntime":
        """Build a runtime from configuration.

        Logging is configured from settings.observability unless
        configure_logging is False (the host application owns it).

        Raises:
            ConfigurationError: If app_id is missing outside localhost mode,
                or service_uri is missing and no service was given
        """
        settings = settings or get_settings()
        config = settings.runtime

        if configure_logging:
            log_config = settings.observability.logging
            setup_logging(
                level=log_config.level,
                format=log_config.format,
                redact_secrets=log_config.redact_secrets,
            )

        missing = []
        if not config.localhost and not config.app_id:
            missing.append("runtime.app_id")
        if service is None and not config.service_uri:
            missing.append("runtime.service_uri")
        if missing:
            logger.error("runtime_misconfigured", missing=missing)
            raise ConfigurationError(missing)

        if service is None:
            service = HttpConversationService(
                config.service_uri,
                api_key=config.service_key,
                timeout=config.service_timeout,
            )

        return cls(
            storage=storage or create_storage(settings.storage),
            service=service,
            runtime_config=config,
            queue_config=settings.queue,
            callbacks=callbacks,
            card_renderer=card_renderer,
            name=settings.app_name,
        )

    def _set_definitions(self, definitions: Definitions) -> None:
        self.definitions = definitions

    def state_for(self, key: str, model_id: str | None = None) -> ConversationState:
        """Get the state of the scope identified by key (a conversation or user id)."""
        return ConversationState(
            self.store,
            key,
            model_id=self._config.model_id if model_id is None else model_id,
            on_session_start=self._on_session_start,
            on_session_end=self._on_session_end,
            max_session_length=self._config.max_session_length_seconds,
            clock=self._clock,
        )

    async def _on_session_start(self, state: ConversationState) -> None:
        await self._run_session_callback(self.callbacks.on_session_start, state)

    async def _on_session_end(self, state: ConversationState) -> None:
        await self._run_session_callback(self.callbacks.on_session_end, state)

    async def _run_session_callback(
        self, callback: SessionCallback | None, state: ConversationState
    ) -> None:
        if callback is None:
            return
        memory = await state.entity_memory.filled_entity_map()
        manager = MemoryManager(
            memory.copy(), memory, self.definitions.entities, await state.bot_state.session_info()
        )
        try:
            await invoke(callback, manager)
        finally:
            manager.expire()
        await state.entity_memory.restore(memory)

    async def handle_input(
        self, conversation_id: str, text: str, key: str | None = None
    ) -> TurnResult:
        """Process user input once the queue admits it.

        Args:
            conversation_id: Conversation the input belongs to
            text: User text
            key: State scope identity (defaults to the conversation id)
        """
        try:
            admitted = await self.queue.admit(conversation_id)
        except StorageError as e:
            logger.error("turn_admission_failed", conversation_id=conversation_id, error=e.message)
            return TurnResult(responses=[e.message], error=e.message)

        if not admitted:
            logger.warning("turn_not_admitted", conversation_id=conversation_id)
            return TurnResult(error="Input was abandoned before it could be processed")

        try:
            state = self.state_for(key or conversation_id)
            return await self.turns.process(state, conversation_id, text)
        finally:
            try:
                await self.queue.pop(conversation_id)
            except StorageError as e:
                logger.error("turn_release_failed", conversation_id=conversation_id, error=e.message)

    async def get_history(
        self,
        train_dialog: TrainDialog,
        key: str,
        update_state: bool = False,
        ignore_last_extraction: bool = False,
        user_id: str = "user",
        user_name: str = "user",
    ) -> ReplayResult:
        """Replay a training dialog into the scope identified by key."""
        self._set_definitions(train_dialog.definitions)
        return await self.replay.get_history(
            train_dialog,
            self.state_for(key),
            update_state=update_state,
            ignore_last_extraction=ignore_last_extraction,
            user_id=user_id,
            user_name=user_name,
        )

    async def close(self) -> None:
        """Stop the queue watchdog and release connections."""
        self.queue.close()
        await self.service.close()
        await self.storage.close()

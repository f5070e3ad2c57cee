"""Live turn processing.

A turn binds the conversation to the configured app, makes sure a
session is running, extracts entities from the user's text and then
scores and takes actions until a terminal action is reached. The scoring
loop is bounded by max_turn_steps so a model whose actions never
terminate can't spin forever.
"""

from collections.abc import Callable

from parley.client.service import ConversationService
from parley.errors import (
    ActionResolutionError,
    ConfigurationError,
    ParleyError,
    ServiceError,
    StorageError,
)
from parley.memory.manager import MemoryManager
from parley.observability.logging import get_logger
from parley.observability.metrics import TURN_ERRORS
from parley.runtime.actions import ActionDispatcher, BotResponse
from parley.runtime.detection import EntityDetector
from parley.runtime.models import (
    ActionDefinition,
    ActionType,
    Definitions,
    ExtractResponse,
    PredictedEntity,
    ScoreInput,
    TurnResult,
)
from parley.session.container import ConversationState
from parley.session.models import AppBinding

logger = get_logger(__name__)

STRUCTURAL_ERRORS = (StorageError, ActionResolutionError, ServiceError, ConfigurationError)


class TurnProcessor:
    """Runs one user input through extraction and scoring."""

    def __init__(
        self,
        service: ConversationService,
        detector: EntityDetector,
        dispatcher: ActionDispatcher,
        app_id: str | None = None,
        max_turn_steps: int = 10,
        on_definitions: Callable[[Definitions], None] | None = None,
    ) -> None:
        self._service = service
        self._detector = detector
        self._dispatcher = dispatcher
        self._app_id = app_id
        self._max_turn_steps = max_turn_steps
        self._on_definitions = on_definitions

    async def process(
        self, state: ConversationState, conversation_id: str, text: str
    ) -> TurnResult:
        """Process one user input.

        Structural failures end the session and come back as the error
        text in place of the bot's reply.
        """
        try:
            app, app_changed = await self._ensure_app(state)

            session_id = None
            if not app_changed:
                session_id = await state.session.session_id_for(conversation_id)
            if session_id is None:
                started = await self._service.start_session(app.app_id)
                await state.session.start_session(started.session_id, conversation_id)
                session_id = started.session_id

            # Teach mode inputs are labelled by the trainer, not scored
            if await state.bot_state.in_teach():
                logger.debug("teach_input_skipped", conversation_id=conversation_id)
                return TurnResult(session_id=session_id)

            extracted = await self._service.extract(app.app_id, session_id, text)
            if self._on_definitions is not None:
                self._on_definitions(extracted.definitions)
            responses = await self._score_loop(state, app.app_id, session_id, extracted)
            return TurnResult(session_id=session_id, responses=responses)

        except STRUCTURAL_ERRORS as e:
            return await self._fail(state, conversation_id, e)

    async def _ensure_app(self, state: ConversationState) -> tuple[AppBinding, bool]:
        app = await state.bot_state.get_app()
        if app is not None and (not self._app_id or app.app_id == self._app_id):
            return app, False

        if not self._app_id:
            raise ConfigurationError(["runtime.app_id"])

        app = await self._service.get_app(self._app_id)
        await state.session.set_app(app)
        logger.info("app_selected", app_id=app.app_id)
        return app, True

    async def _score_loop(
        self,
        state: ConversationState,
        app_id: str,
        session_id: str,
        extracted: ExtractResponse,
    ) -> list[str | dict]:
        definitions = extracted.definitions
        responses: list[str | dict] = []
        text = extracted.text
        predicted: list[PredictedEntity] = extracted.predicted_entities

        for _ in range(self._max_turn_steps):
            memory = await self._detector.detect(state, text, predicted, definitions.entities)
            scored = await self._service.score(
                app_id, session_id, ScoreInput(filled_entities=memory.filled_entities())
            )
            if not scored.scored_actions:
                logger.info("no_action_scored", session_id=session_id)
                return responses

            best = scored.scored_actions[0]
            action = definitions.find_action(best.action_id)
            if action is None:
                raise ActionResolutionError(best.action_id)

            response = await self._take_action(state, action, definitions)
            if response is not None:
                responses.append(response)

            if action.action_type == ActionType.END_SESSION:
                await state.session.end_session()
                return responses
            if action.is_terminal:
                return responses

            # Later steps score again without new user input
            text, predicted = "", []

        logger.error(
            "max_turn_steps_exceeded",
            session_id=session_id,
            max_turn_steps=self._max_turn_steps,
        )
        return responses

    async def _take_action(
        self, state: ConversationState, action: ActionDefinition, definitions: Definitions
    ) -> BotResponse:
        live = await state.entity_memory.filled_entity_map()
        manager = MemoryManager(
            live.copy(), live, definitions.entities, await state.bot_state.session_info()
        )
        response = await self._dispatcher.dispatch(action, live, manager)
        await state.entity_memory.restore(live)
        logger.debug("action_taken", action_id=action.action_id, action_type=action.action_type.value)
        return response

    async def _fail(
        self, state: ConversationState, conversation_id: str, error: ParleyError
    ) -> TurnResult:
        TURN_ERRORS.labels(error_type=type(error).__name__).inc()
        logger.error(
            "turn_failed",
            conversation_id=conversation_id,
            error_type=type(error).__name__,
            error=error.message,
        )
        try:
            await state.session.end_session()
        except StorageError as end_error:
            logger.error("session_end_failed", conversation_id=conversation_id, error=end_error.message)
        return TurnResult(responses=[error.message], error=error.message)

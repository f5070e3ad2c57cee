"""Training dialog replay.

Rebuilds the activity sequence of a recorded training dialog. When asked
to update state, each round's user input is run through entity detection
against live memory and the result is compared with the entity state the
dialog recorded; the first divergence stops the replay and is reported.
"""

import uuid

from parley.errors import ActionResolutionError
from parley.memory.manager import MemoryManager
from parley.memory.models import (
    FilledEntity,
    FilledEntityMap,
    Memory,
    filled_entity_value_as_string,
)
from parley.observability.logging import get_logger
from parley.observability.metrics import REPLAY_DISCREPANCIES
from parley.runtime.actions import ActionDispatcher, BotResponse
from parley.runtime.detection import EntityDetector
from parley.runtime.models import (
    ActionDefinition,
    Activity,
    ChannelData,
    Definitions,
    DialogMode,
    ReplayResult,
    ReplaySummary,
    Round,
    ScorerStep,
    SenderType,
    TextVariation,
    TrainDialog,
)
from parley.session.container import ConversationState

logger = get_logger(__name__)

ACTIVITY_NAMESPACE = uuid.uuid5(uuid.NAMESPACE_URL, "parley/activity")

TRAINER_ID = "ParleyTrainer"
TRAINER_NAME = "ParleyTrainer"


def activity_id(dialog_id: str, round_index: int, score_index: int, sender: SenderType) -> str:
    """Stable id of a replayed activity."""
    return str(
        uuid.uuid5(ACTIVITY_NAMESPACE, f"{dialog_id}/{round_index}/{score_index}/{sender.value}")
    )


def entities_match(recorded: list[FilledEntity], live: list[FilledEntity]) -> bool:
    """Compare recorded and live entity state.

    Equal when both hold the same number of entities and every recorded
    entity is live with the same number of values, each recorded value
    text being among the live ones.
    """
    if len(recorded) != len(live):
        return False

    live_by_id = {filled.entity_id: filled for filled in live}
    for old in recorded:
        new = live_by_id.get(old.entity_id)
        if new is None or len(old.values) != len(new.values):
            return False
        live_texts = {value.user_text for value in new.values}
        if any(value.user_text not in live_texts for value in old.values):
            return False
    return True


def _entity_lines(filled_entities: list[FilledEntity], definitions: Definitions) -> list[str]:
    lines = []
    for filled in filled_entities:
        entity = definitions.find_entity(filled.entity_id)
        name = entity.entity_name if entity else filled.entity_id
        lines.append(f"{name} = ({filled_entity_value_as_string(filled)})")
    return lines


def discrepancy_report(
    user_text: str,
    recorded: list[FilledEntity],
    live: list[FilledEntity],
    definitions: Definitions,
) -> list[str]:
    """Describe a divergence between recorded and live entity state."""
    return [
        "",
        "User Input Step:",
        user_text,
        "",
        "Original Entities:",
        *_entity_lines(recorded, definitions),
        "",
        "New Entities:",
        *_entity_lines(live, definitions),
    ]


def _recorded_entities(round_: Round) -> list[FilledEntity]:
    if not round_.scorer_steps:
        return []
    return round_.scorer_steps[0].filled_entities


class ReplayEngine:
    """Replays training dialogs against the current model and callbacks."""

    def __init__(self, detector: EntityDetector, dispatcher: ActionDispatcher) -> None:
        self._detector = detector
        self._dispatcher = dispatcher

    async def get_history(
        self,
        train_dialog: TrainDialog,
        state: ConversationState,
        update_state: bool = False,
        ignore_last_extraction: bool = False,
        user_id: str = "user",
        user_name: str = "user",
    ) -> ReplayResult:
        """Rebuild a training dialog's activities.

        Args:
            train_dialog: Dialog to replay
            state: Conversation scope replayed into when update_state is set
            update_state: Run entity detection against live memory, checking
                each round for discrepancies, and leave memory as it ends
            ignore_last_extraction: Skip the discrepancy check of the final
                round (the user is editing it)
            user_id: Sender id of user activities
            user_name: Sender name of user activities

        Returns:
            Activities, discrepancies and memory snapshots

        Raises:
            ActionResolutionError: If a scorer step names an unknown action
        """
        definitions = train_dialog.definitions
        last_round = len(train_dialog.rounds) - 1

        if update_state:
            await state.entity_memory.clear()

        activities: list[Activity] = []
        discrepancies: list[str] = []
        prev_memories: list[Memory] | None = [] if update_state else None
        is_last_action_terminal = False
        rounds_replayed = 0

        for round_index, round_ in enumerate(train_dialog.rounds):
            variation = (
                round_.extractor_step.text_variations[0]
                if round_.extractor_step.text_variations
                else TextVariation(text="")
            )
            activities.append(
                Activity(
                    id=activity_id(train_dialog.dialog_id, round_index, 0, SenderType.USER),
                    text=variation.text,
                    from_id=user_id,
                    from_name=user_name,
                    channel_data=ChannelData(
                        sender_type=SenderType.USER, round_index=round_index, score_index=0
                    ),
                )
            )

            if update_state:
                prev_memories = await state.entity_memory.dump()
                live = await self._detector.detect(
                    state, variation.text, variation.label_entities, definitions.entities
                )

                if not (ignore_last_extraction and round_index == last_round):
                    recorded = _recorded_entities(round_)
                    if not entities_match(recorded, live.filled_entities()):
                        discrepancies = discrepancy_report(
                            variation.text, recorded, live.filled_entities(), definitions
                        )
                        REPLAY_DISCREPANCIES.inc()
                        logger.info(
                            "replay_discrepancy",
                            dialog_id=train_dialog.dialog_id,
                            round_index=round_index,
                        )
                        break

            for score_index, step in enumerate(round_.scorer_steps):
                action = definitions.find_action(step.labeled_action_id)
                if action is None:
                    raise ActionResolutionError(step.labeled_action_id)
                is_last_action_terminal = action.is_terminal

                response = await self._replay_step(
                    state, step, action, definitions, update_state
                )
                activity = self._bot_activity(
                    train_dialog.dialog_id, round_index, score_index, response
                )
                if activity is not None:
                    activities.append(activity)

            rounds_replayed += 1

        dialog_mode = DialogMode.WAIT if is_last_action_terminal else DialogMode.SCORER
        memories = await state.entity_memory.dump() if update_state else None

        if update_state:
            summary = ReplaySummary(
                dialog_id=train_dialog.dialog_id,
                rounds_replayed=rounds_replayed,
                activity_count=len(activities),
                discrepancies=discrepancies,
                dialog_mode=dialog_mode,
            )
            await state.save_train_history(summary.model_dump_json())

        logger.info(
            "dialog_replayed",
            dialog_id=train_dialog.dialog_id,
            update_state=update_state,
            rounds_replayed=rounds_replayed,
            activities=len(activities),
            has_discrepancies=bool(discrepancies),
        )
        return ReplayResult(
            activities=activities,
            discrepancies=discrepancies,
            prev_memories=prev_memories,
            memories=memories,
            dialog_mode=dialog_mode,
        )

    async def _replay_step(
        self,
        state: ConversationState,
        step: ScorerStep,
        action: ActionDefinition,
        definitions: Definitions,
        update_state: bool,
    ) -> BotResponse:
        if not update_state:
            # Callbacks see the recorded state; their changes are discarded
            recorded = FilledEntityMap.from_filled_entities(
                step.filled_entities, definitions.entities
            )
            manager = MemoryManager(recorded, recorded.copy(), definitions.entities)
            return await self._dispatcher.dispatch(action, recorded, manager)

        live = await state.entity_memory.filled_entity_map()
        manager = MemoryManager(
            live.copy(), live, definitions.entities, await state.bot_state.session_info()
        )
        response = await self._dispatcher.dispatch(action, live, manager)
        await state.entity_memory.restore(live)
        return response

    def _bot_activity(
        self, dialog_id: str, round_index: int, score_index: int, response: BotResponse
    ) -> Activity | None:
        if response is None:
            return None
        channel_data = ChannelData(
            sender_type=SenderType.BOT, round_index=round_index, score_index=score_index
        )
        activity_kwargs = {
            "id": activity_id(dialog_id, round_index, score_index, SenderType.BOT),
            "from_id": TRAINER_ID,
            "from_name": TRAINER_NAME,
            "channel_data": channel_data,
        }
        if isinstance(response, str):
            return Activity(text=response, **activity_kwargs)
        return Activity(attachments=[response], **activity_kwargs)

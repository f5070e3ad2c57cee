"""Models for training dialogs, actions, activities and service exchanges."""

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from parley.memory.models import EntityDefinition, FilledEntity, Memory


class ActionType(str, Enum):
    """How an action produces its bot response."""

    TEXT = "TEXT"
    CARD = "CARD"
    API_LOCAL = "API_LOCAL"
    END_SESSION = "END_SESSION"


class ActionArgument(BaseModel):
    """A named argument template of an action."""

    parameter: str
    value: str = Field(description="Text with $entity tokens")


class ActionDefinition(BaseModel):
    """An action defined by the active model.

    The payload is the response text for TEXT actions, the template name
    for CARD actions, the callback name for API_LOCAL actions and an
    optional farewell text for END_SESSION actions.
    """

    action_id: str
    action_type: ActionType = ActionType.TEXT
    payload: str = ""
    arguments: list[ActionArgument] = Field(default_factory=list)
    is_terminal: bool = Field(default=True, description="Wait for user input afterwards")


class PredictedEntity(BaseModel):
    """An entity found in user text, predicted or labelled."""

    entity_id: str
    entity_text: str
    entity_name: str | None = None
    builtin_type: str | None = None
    resolution: dict[str, Any] | None = None
    start_char_index: int | None = None
    end_char_index: int | None = None


class TextVariation(BaseModel):
    text: str
    label_entities: list[PredictedEntity] = Field(default_factory=list)


class ExtractorStep(BaseModel):
    text_variations: list[TextVariation] = Field(default_factory=list)


class ScorerStep(BaseModel):
    """One recorded bot action and the entity state it was chosen under."""

    labeled_action_id: str
    filled_entities: list[FilledEntity] = Field(default_factory=list)


class Round(BaseModel):
    """One user input and the bot actions that followed it."""

    extractor_step: ExtractorStep
    scorer_steps: list[ScorerStep] = Field(default_factory=list)


class Definitions(BaseModel):
    entities: list[EntityDefinition] = Field(default_factory=list)
    actions: list[ActionDefinition] = Field(default_factory=list)

    def find_action(self, action_id: str) -> ActionDefinition | None:
        return next((a for a in self.actions if a.action_id == action_id), None)

    def find_entity(self, entity_id: str) -> EntityDefinition | None:
        return next((e for e in self.entities if e.entity_id == entity_id), None)


class TrainDialog(BaseModel):
    """A recorded training conversation."""

    dialog_id: str
    rounds: list[Round] = Field(default_factory=list)
    definitions: Definitions = Field(default_factory=Definitions)


class SenderType(str, Enum):
    USER = "user"
    BOT = "bot"


class ChannelData(BaseModel):
    sender_type: SenderType
    round_index: int
    score_index: int


class Activity(BaseModel):
    """A reconstructed conversation activity."""

    id: str
    type: str = "message"
    text: str | None = None
    attachments: list[dict[str, Any]] = Field(default_factory=list)
    from_id: str
    from_name: str
    channel_data: ChannelData


class DialogMode(str, Enum):
    """What a reconstructed conversation is waiting for."""

    WAIT = "wait"  # Last action was terminal; waiting for user input
    SCORER = "scorer"  # Last action was not terminal; bot continues


class ReplayResult(BaseModel):
    activities: list[Activity] = Field(default_factory=list)
    discrepancies: list[str] = Field(default_factory=list)
    prev_memories: list[Memory] | None = None
    memories: list[Memory] | None = None
    dialog_mode: DialogMode = DialogMode.WAIT


# ---------------------------------------------------------------------------
# Extraction / scoring service exchanges
# ---------------------------------------------------------------------------


class StartSessionResponse(BaseModel):
    session_id: str


class ExtractResponse(BaseModel):
    text: str
    predicted_entities: list[PredictedEntity] = Field(default_factory=list)
    definitions: Definitions = Field(default_factory=Definitions)


class ScoreInput(BaseModel):
    filled_entities: list[FilledEntity] = Field(default_factory=list)
    context: dict[str, Any] = Field(default_factory=dict)
    masked_actions: list[str] = Field(default_factory=list)


class ScoredAction(BaseModel):
    action_id: str
    score: float = 0.0


class ScoreResponse(BaseModel):
    scored_actions: list[ScoredAction] = Field(
        default_factory=list, description="Best first"
    )


class TurnResult(BaseModel):
    """Responses produced by one live turn."""

    session_id: str | None = None
    responses: list[str | dict[str, Any]] = Field(default_factory=list)
    error: str | None = None


class ReplaySummary(BaseModel):
    """Audit record of the last replay that updated a scope's state."""

    dialog_id: str
    rounds_replayed: int
    activity_count: int
    discrepancies: list[str] = Field(default_factory=list)
    dialog_mode: DialogMode

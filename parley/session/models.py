"""Session and app binding models persisted in bot state."""

from enum import Enum

from pydantic import BaseModel, Field


class SessionStatus(str, Enum):
    """Lifecycle state of a conversation scope's session."""

    NO_SESSION = "no_session"
    ACTIVE = "active"
    ENDED = "ended"


class AppBinding(BaseModel):
    """The model a conversation scope is bound to."""

    app_id: str
    app_name: str = ""


class SessionRecord(BaseModel):
    """The single session record of a conversation scope."""

    session_id: str
    conversation_id: str | None = None
    in_teach: bool = Field(default=False, description="Collecting labelled training data")
    org_session_id: str | None = Field(
        default=None, description="Session this one resumes after expiry"
    )
    on_end_session_called: bool = Field(
        default=False, description="Session end callback has fired for this record"
    )
    last_active_at: float = Field(default=0.0, description="Unix time of the last turn")


class BotStateDocument(BaseModel):
    """Everything persisted under the bot state namespace of one scope."""

    app: AppBinding | None = None
    session: SessionRecord | None = None
    status: SessionStatus = SessionStatus.NO_SESSION


class SessionInfo(BaseModel):
    """Session details exposed to user callbacks."""

    session_id: str | None = None
    conversation_id: str | None = None
    in_teach: bool = False

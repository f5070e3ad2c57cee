"""Turn processing and admission queue configuration models."""

from pydantic import BaseModel, Field


class QueueConfig(BaseModel):
    """Input admission queue configuration."""

    timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Age after which an in-flight turn is treated as abandoned",
    )
    watchdog: bool = Field(
        default=True,
        description="Re-check the in-flight turn after the timeout even without new input",
    )


class RuntimeConfig(BaseModel):
    """Conversation runtime configuration."""

    app_id: str | None = Field(
        default=None,
        description="Model to bind conversations to (required unless localhost)",
    )
    model_id: str = Field(
        default="",
        description="Distinguishes state when several models share a conversation",
    )
    service_uri: str | None = Field(
        default=None,
        description="Base URL of the extraction/scoring service",
    )
    service_key: str | None = Field(
        default=None,
        description="Credential for the extraction/scoring service",
    )
    service_timeout: float = Field(
        default=30.0,
        gt=0,
        description="HTTP timeout for the extraction/scoring service",
    )
    localhost: bool = Field(
        default=False,
        description="Running against the local training UI",
    )
    max_turn_steps: int = Field(
        default=10,
        gt=0,
        description="Maximum non-terminal actions taken in one turn",
    )
    max_session_length_seconds: float = Field(
        default=1800.0,
        gt=0,
        description="Inactivity after which a session is considered expired",
    )

"""Interface to the remote entity extraction and scoring service."""

from typing import Protocol

from parley.runtime.models import (
    ExtractResponse,
    ScoreInput,
    ScoreResponse,
    StartSessionResponse,
)
from parley.session.models import AppBinding


class ConversationService(Protocol):
    """Remote model hosting extraction and action scoring.

    Implementations raise ServiceError on any failure.
    """

    async def get_app(self, app_id: str) -> AppBinding:
        """Fetch the app a conversation should be bound to."""
        ...

    async def start_session(self, app_id: str) -> StartSessionResponse:
        """Open a session on the service."""
        ...

    async def extract(self, app_id: str, session_id: str, text: str) -> ExtractResponse:
        """Predict entities in user text."""
        ...

    async def score(
        self, app_id: str, session_id: str, score_input: ScoreInput
    ) -> ScoreResponse:
        """Rank candidate actions for the current entity state."""
        ...

    async def close(self) -> None:
        ...

"""Session lifecycle and app binding for a conversation scope.

Only the models are exported here. Import SessionState, BotState and
ConversationState from their modules.
"""

from parley.session.models import (
    AppBinding,
    BotStateDocument,
    SessionInfo,
    SessionRecord,
    SessionStatus,
)

__all__ = [
    "AppBinding",
    "BotStateDocument",
    "SessionInfo",
    "SessionRecord",
    "SessionStatus",
]

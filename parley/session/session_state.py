"""Session lifecycle transitions for one conversation scope.

States move NO_SESSION -> ACTIVE -> ENDED -> ACTIVE ... Ending a session
or switching the bound app always clears entity memory. The session end
hook fires at most once per session record, whichever path ends it.
"""

import time
from collections.abc import Awaitable, Callable

from parley.memory.entity_memory import EntityMemory
from parley.observability.logging import get_logger
from parley.session.bot_state import BotState
from parley.session.models import AppBinding, SessionRecord, SessionStatus

logger = get_logger(__name__)

SessionHook = Callable[[], Awaitable[None]]


class SessionState:
    """Start, end and expire sessions, and bind the conversation to an app."""

    def __init__(
        self,
        bot_state: BotState,
        entity_memory: EntityMemory,
        on_start: SessionHook | None = None,
        on_end: SessionHook | None = None,
        max_session_length: float = 1800.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._bot_state = bot_state
        self._entity_memory = entity_memory
        self._on_start = on_start
        self._on_end = on_end
        self._max_session_length = max_session_length
        self._clock = clock

    async def status(self) -> SessionStatus:
        return await self._bot_state.status()

    async def start_session(
        self,
        session_id: str,
        conversation_id: str | None,
        in_teach: bool = False,
        org_session_id: str | None = None,
        is_continued: bool = False,
    ) -> SessionRecord:
        """Begin a new session record.

        A continued session (an edited dialog picking up where it left off)
        or a resumed one (org_session_id given) keeps entity memory. Any
        other start first ends the current session.
        """
        if not is_continued and not org_session_id:
            await self.end_session()

        if self._on_start is not None:
            await self._on_start()

        record = SessionRecord(
            session_id=session_id,
            conversation_id=conversation_id,
            in_teach=in_teach,
            org_session_id=org_session_id,
            last_active_at=self._clock(),
        )
        await self._bot_state.set_session(record, SessionStatus.ACTIVE)
        logger.info(
            "session_started",
            session_id=session_id,
            conversation_id=conversation_id,
            in_teach=in_teach,
            org_session_id=org_session_id,
        )
        return record

    async def end_session(self) -> None:
        """Fire the end hook unless it already fired, then clear memory."""
        record = await self._bot_state.get_session()

        if record is not None and not record.on_end_session_called:
            if self._on_end is not None:
                await self._on_end()
            record.on_end_session_called = True

        await self._entity_memory.clear()
        await self._bot_state.set_session(record, SessionStatus.ENDED)
        logger.info(
            "session_ended",
            session_id=record.session_id if record else None,
        )

    async def set_app(self, app: AppBinding | None) -> None:
        """Bind the scope to an app, clearing memory unless it is the same app."""
        current = await self._bot_state.get_app()
        await self._bot_state.set_app(app)

        if app is None or current is None or current.app_id != app.app_id:
            await self._entity_memory.clear()
            logger.info(
                "app_bound",
                app_id=app.app_id if app else None,
                previous_app_id=current.app_id if current else None,
            )

    async def session_id_for(self, conversation_id: str | None) -> str | None:
        """Return the live session id of a conversation, refreshing its activity.

        Returns None when there is no active session for the conversation.
        An active session idle for longer than the maximum session length
        is ended first.
        """
        document = await self._bot_state.document()
        record = document.session
        if document.status != SessionStatus.ACTIVE or record is None:
            return None
        if record.conversation_id != conversation_id:
            return None

        now = self._clock()
        if now - record.last_active_at > self._max_session_length:
            logger.info(
                "session_expired",
                session_id=record.session_id,
                idle_seconds=now - record.last_active_at,
            )
            await self.end_session()
            return None

        record.last_active_at = now
        await self._bot_state.set_session(record, SessionStatus.ACTIVE)
        return record.session_id

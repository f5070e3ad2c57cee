"""Persisted bot state: app binding plus the session record."""

from pydantic import ValidationError

from parley.observability.logging import get_logger
from parley.session.models import (
    AppBinding,
    BotStateDocument,
    SessionInfo,
    SessionRecord,
    SessionStatus,
)
from parley.state.memory_store import MemoryStore

logger = get_logger(__name__)


class BotState:
    """Typed access to the BotStateDocument blob of one scope."""

    def __init__(self, store: MemoryStore, key: str) -> None:
        self._store = store
        self._key = key

    @property
    def key(self) -> str:
        return self._key

    async def document(self) -> BotStateDocument:
        data = await self._store.get(self._key)
        if not data:
            return BotStateDocument()
        try:
            return BotStateDocument.model_validate_json(data)
        except ValidationError as e:
            logger.warning("bot_state_parse_failed", key=self._key, error=str(e))
            return BotStateDocument()

    async def save(self, document: BotStateDocument) -> None:
        await self._store.set(self._key, document.model_dump_json())

    async def get_app(self) -> AppBinding | None:
        return (await self.document()).app

    async def set_app(self, app: AppBinding | None) -> None:
        document = await self.document()
        document.app = app
        await self.save(document)

    async def get_session(self) -> SessionRecord | None:
        return (await self.document()).session

    async def set_session(self, record: SessionRecord | None, status: SessionStatus) -> None:
        document = await self.document()
        document.session = record
        document.status = status
        await self.save(document)

    async def status(self) -> SessionStatus:
        return (await self.document()).status

    async def in_teach(self) -> bool:
        record = await self.get_session()
        return record.in_teach if record else False

    async def session_info(self) -> SessionInfo:
        record = await self.get_session()
        if record is None:
            return SessionInfo()
        return SessionInfo(
            session_id=record.session_id,
            conversation_id=record.conversation_id,
            in_teach=record.in_teach,
        )

    async def clear(self) -> None:
        await self._store.delete(self._key)

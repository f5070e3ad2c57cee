"""Process-wide input admission queue.

At most one turn is in flight across every conversation of a runtime.
Inputs wait in arrival order; when the in-flight turn completes (pop) the
next one is admitted. A turn that never completes is reclaimed once its
in-flight marker is older than the timeout, so a stuck turn can't block
everyone else forever.

Unrelated conversations are delayed by each other's backlog. That is the
cost of global admission control.
"""

import asyncio
import time
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass

from pydantic import BaseModel, ValidationError

from parley.errors import StorageError
from parley.observability.logging import get_logger
from parley.observability.metrics import (
    OUT_OF_ORDER_COMPLETIONS,
    QUEUE_DEPTH,
    TURNS_ABANDONED,
    TURNS_ADMITTED,
)
from parley.state.memory_store import MemoryStore

logger = get_logger(__name__)

DEFAULT_TIMEOUT_SECONDS = 10.0

# Slack added to the timeout before the watchdog re-checks the marker
WATCHDOG_GRACE_SECONDS = 0.05

AdmissionCallback = Callable[[bool], None]


@dataclass
class QueuedTurn:
    conversation_id: str
    enqueued_at: float
    on_admitted: AdmissionCallback


class InFlightMarker(BaseModel):
    """The turn currently being processed."""

    conversation_id: str
    started_at: float


class InputQueue:
    """FIFO admission control with timeout recovery.

    Callbacks receive True when their turn is admitted and False when it
    was abandoned without being completed. A callback may be called with
    False after True when an admitted turn overruns the timeout.
    """

    def __init__(
        self,
        store: MemoryStore,
        marker_key: str,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        watchdog: bool = True,
        clock: Callable[[], float] = time.time,
        name: str = "default",
    ) -> None:
        self._store = store
        self._marker_key = marker_key
        self._timeout = timeout
        self._watchdog = watchdog
        self._clock = clock
        self._name = name

        self._queue: deque[QueuedTurn] = deque()
        self._in_flight: QueuedTurn | None = None
        self._lock = asyncio.Lock()
        self._watchdog_handle: asyncio.TimerHandle | None = None
        self._watchdog_task: asyncio.Task[None] | None = None

    @property
    def depth(self) -> int:
        return len(self._queue)

    @property
    def timeout(self) -> float:
        return self._timeout

    async def marker(self) -> InFlightMarker | None:
        """Read the persisted in-flight marker."""
        data = await self._store.get(self._marker_key)
        if not data:
            return None
        try:
            return InFlightMarker.model_validate_json(data)
        except ValidationError as e:
            logger.warning("in_flight_marker_parse_failed", error=str(e))
            return None

    async def add_input(self, conversation_id: str, on_admitted: AdmissionCallback) -> None:
        """Queue a turn at the tail, then try to admit the head."""
        self._queue.append(QueuedTurn(conversation_id, self._clock(), on_admitted))
        QUEUE_DEPTH.labels(runtime=self._name).set(len(self._queue))
        logger.debug("turn_queued", conversation_id=conversation_id, depth=len(self._queue))
        await self.advance()

    async def advance(self) -> None:
        """Reclaim an expired in-flight turn, then admit the next one if idle."""
        async with self._lock:
            marker = await self.marker()

            if marker is not None and self._clock() - marker.started_at > self._timeout:
                await self._abandon(marker)
                marker = None

            if marker is None:
                await self._admit_next()

    async def pop(self, conversation_id: str) -> None:
        """Mark the in-flight turn of conversation_id complete.

        A completion that doesn't match the marker is late or duplicated:
        its slot was already given away, so the marker is left in place.
        """
        async with self._lock:
            marker = await self.marker()
            if marker is None or marker.conversation_id != conversation_id:
                OUT_OF_ORDER_COMPLETIONS.labels(runtime=self._name).inc()
                logger.warning(
                    "unexpected_turn_completion",
                    conversation_id=conversation_id,
                    in_flight=marker.conversation_id if marker else None,
                )
            else:
                await self._store.delete(self._marker_key)
                self._in_flight = None
                self._cancel_watchdog()
                logger.debug("turn_completed", conversation_id=conversation_id)

        await self.advance()

    async def admit(self, conversation_id: str) -> bool:
        """Queue a turn and wait for the admission decision.

        If the waiting caller is cancelled, or queueing fails on a storage
        error, its turn is withdrawn: removed from the queue, or completed if
        it had already been admitted.

        Raises:
            StorageError: If the in-flight marker could not be read or written
        """
        future: asyncio.Future[bool] = asyncio.get_running_loop().create_future()

        def _on_admitted(admitted: bool) -> None:
            if not future.done():
                future.set_result(admitted)

        try:
            await self.add_input(conversation_id, _on_admitted)
            return await future
        except StorageError:
            await self._withdraw(conversation_id, _on_admitted)
            raise
        except asyncio.CancelledError:
            try:
                await self._withdraw(conversation_id, _on_admitted)
            except StorageError as e:
                logger.error("turn_withdraw_failed", conversation_id=conversation_id, error=e.message)
            raise

    async def _withdraw(self, conversation_id: str, on_admitted: AdmissionCallback) -> None:
        if self._in_flight is not None and self._in_flight.on_admitted is on_admitted:
            logger.info("admitted_turn_withdrawn", conversation_id=conversation_id)
            await self.pop(conversation_id)
            return

        for turn in self._queue:
            if turn.on_admitted is on_admitted:
                self._queue.remove(turn)
                QUEUE_DEPTH.labels(runtime=self._name).set(len(self._queue))
                logger.info(
                    "queued_turn_withdrawn",
                    conversation_id=conversation_id,
                    depth=len(self._queue),
                )
                return

    def close(self) -> None:
        """Stop the watchdog."""
        self._cancel_watchdog()
        if self._watchdog_task is not None and not self._watchdog_task.done():
            self._watchdog_task.cancel()

    async def _abandon(self, marker: InFlightMarker) -> None:
        await self._store.delete(self._marker_key)
        self._cancel_watchdog()
        TURNS_ABANDONED.labels(runtime=self._name).inc()

        abandoned: QueuedTurn | None = None
        if self._in_flight is not None and self._in_flight.conversation_id == marker.conversation_id:
            abandoned = self._in_flight
        else:
            abandoned = next(
                (t for t in self._queue if t.conversation_id == marker.conversation_id), None
            )
            if abandoned is not None:
                self._queue.remove(abandoned)
                QUEUE_DEPTH.labels(runtime=self._name).set(len(self._queue))
        self._in_flight = None

        if abandoned is None:
            logger.warning(
                "abandoned_turn_not_found",
                conversation_id=marker.conversation_id,
                age_seconds=self._clock() - marker.started_at,
            )
            return

        logger.warning(
            "turn_abandoned",
            conversation_id=marker.conversation_id,
            age_seconds=self._clock() - marker.started_at,
        )
        self._notify(abandoned, False)

    async def _admit_next(self) -> None:
        if not self._queue:
            return

        # The head stays queued until its marker is persisted
        turn = self._queue[0]
        marker = InFlightMarker(conversation_id=turn.conversation_id, started_at=self._clock())
        try:
            await self._store.set(self._marker_key, marker.model_dump_json())
        except StorageError as e:
            logger.error(
                "turn_admission_failed",
                conversation_id=turn.conversation_id,
                depth=len(self._queue),
                error=e.message,
            )
            self._schedule_watchdog()
            raise

        self._queue.popleft()
        self._in_flight = turn

        QUEUE_DEPTH.labels(runtime=self._name).set(len(self._queue))
        TURNS_ADMITTED.labels(runtime=self._name).inc()
        logger.debug(
            "turn_admitted",
            conversation_id=turn.conversation_id,
            waited_seconds=marker.started_at - turn.enqueued_at,
            depth=len(self._queue),
        )

        self._schedule_watchdog()
        self._notify(turn, True)

    def _notify(self, turn: QueuedTurn, admitted: bool) -> None:
        try:
            turn.on_admitted(admitted)
        except Exception as e:
            logger.error(
                "admission_callback_failed",
                conversation_id=turn.conversation_id,
                admitted=admitted,
                error=str(e),
            )

    def _schedule_watchdog(self) -> None:
        if not self._watchdog:
            return
        self._cancel_watchdog()
        loop = asyncio.get_running_loop()
        self._watchdog_handle = loop.call_later(
            self._timeout + WATCHDOG_GRACE_SECONDS, self._on_watchdog
        )

    def _cancel_watchdog(self) -> None:
        if self._watchdog_handle is not None:
            self._watchdog_handle.cancel()
            self._watchdog_handle = None

    def _on_watchdog(self) -> None:
        self._watchdog_handle = None
        self._watchdog_task = asyncio.get_running_loop().create_task(self.advance())
        self._watchdog_task.add_done_callback(self._on_watchdog_done)

    def _on_watchdog_done(self, task: asyncio.Task[None]) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(
                "queue_watchdog_failed",
                error_type=type(error).__name__,
                error=str(error),
                depth=len(self._queue),
            )

"""Event loop: pulls events from the transport and feeds the engine.

Events of one conversation are handled strictly in order behind a per-conversation
lock; different conversations run concurrently. A lock is dropped once its
conversation has no queued events. Vote events are applied inline
so each remove-then-add ballot update is atomic relative to other events.
"""

import asyncio
import logging
from collections import defaultdict

from pollsync.adapters.base import ChatTransport
from pollsync.engine import ConversationEngine
from pollsync.errors import TransportError
from pollsync.models import Event, PollVoteChanged

logger = logging.getLogger(__name__)


class BotRunner:
    def __init__(self, transport: ChatTransport, engine: ConversationEngine) -> None:
        self._transport = transport
        self._engine = engine
        self._locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._pending: defaultdict[str, int] = defaultdict(int)
        self._tasks: set[asyncio.Task[None]] = set()

    async def _handle(self, event: Event) -> None:
        async with self._locks[event.conversation_id]:
            try:
                reply = await self._engine.handle(event)
            except Exception:
                logger.exception("Error while handling event in conversation %s", event.conversation_id)
                return
            if reply is None:
                return
            try:
                await self._transport.deliver(event.conversation_id, reply)
            except TransportError as exc:
                logger.error("Reply to %s not delivered: %s", event.conversation_id, exc)

    def dispatch(self, event: Event) -> asyncio.Task[None] | None:
        """Route one event. Returns the handling task for conversation events."""
        if isinstance(event, PollVoteChanged):
            self._engine.aggregator.apply(event)
            return None
        conversation_id = event.conversation_id
        self._pending[conversation_id] += 1
        task = asyncio.create_task(self._handle(event))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        task.add_done_callback(lambda _: self._release(conversation_id))
        return task

    def _release(self, conversation_id: str) -> None:
        self._pending[conversation_id] -= 1
        if self._pending[conversation_id] <= 0:
            del self._pending[conversation_id]
            self._locks.pop(conversation_id, None)

    async def drain(self) -> None:
        """Wait for every in-flight conversation task."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def run(self) -> None:
        logger.info("Bot running on %s transport", self._transport.name())
        try:
            async for event in self._transport.events():
                self.dispatch(event)
        finally:
            await self.drain()
            await self._transport.close()
            logger.info("Bot stopped")

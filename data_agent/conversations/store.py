"""In-memory conversation history, bounded per conversation id."""

from __future__ import annotations

import asyncio
import logging
from collections import OrderedDict, deque
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from data_agent.models.pipeline import ConversationTurn

logger = logging.getLogger(__name__)

MAX_CONVERSATION_TURNS = 10
MAX_CONVERSATIONS = 1000


class ConversationStore:
    """
    Keep the most recent turns of each conversation.

    Each id holds at most ``max_turns`` turns; appending beyond that evicts
    the oldest. At most ``max_conversations`` ids are kept, and the one used
    least recently is dropped first. ``session(id)`` serializes whole
    question turns for the same id so a turn's read of the history and its
    append cannot interleave with another request on that id. A lock lives
    only while a session for its id is open or waiting, so ``clear()`` never
    touches it. Nothing is persisted across restarts.
    """

    def __init__(
        self,
        max_turns: int = MAX_CONVERSATION_TURNS,
        max_conversations: int = MAX_CONVERSATIONS,
    ) -> None:
        if max_turns < 1:
            raise ValueError("max_turns must be at least 1")
        if max_conversations < 1:
            raise ValueError("max_conversations must be at least 1")
        self.max_turns = max_turns
        self.max_conversations = max_conversations
        self._turns: OrderedDict[str, deque[ConversationTurn]] = OrderedDict()
        self._locks: dict[str, asyncio.Lock] = {}
        self._sessions: dict[str, int] = {}

    @asynccontextmanager
    async def session(self, conversation_id: str | None) -> AsyncIterator[None]:
        """Hold the per-conversation lock for one question turn."""
        if conversation_id is None:
            yield
            return

        lock = self._locks.setdefault(conversation_id, asyncio.Lock())
        self._sessions[conversation_id] = self._sessions.get(conversation_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            remaining = self._sessions[conversation_id] - 1
            if remaining:
                self._sessions[conversation_id] = remaining
            else:
                del self._sessions[conversation_id]
                del self._locks[conversation_id]

    def get(self, conversation_id: str | None) -> list[ConversationTurn]:
        """Turns for the id, oldest first."""
        if conversation_id is None:
            return []
        return list(self._turns.get(conversation_id, ()))

    def append(self, conversation_id: str | None, turn: ConversationTurn) -> None:
        if conversation_id is None:
            return
        turns = self._turns.get(conversation_id)
        if turns is None:
            turns = self._turns[conversation_id] = deque(maxlen=self.max_turns)
        else:
            self._turns.move_to_end(conversation_id)
        turns.append(turn)

        while len(self._turns) > self.max_conversations:
            evicted, _ = self._turns.popitem(last=False)
            logger.info("Evicted idle conversation", extra={"conversation_id": evicted})

        logger.debug(
            "Appended conversation turn",
            extra={"conversation_id": conversation_id, "turns": len(turns)},
        )

    def clear(self, conversation_id: str) -> bool:
        """Drop a conversation's turns; returns whether it existed."""
        return self._turns.pop(conversation_id, None) is not None

    def __contains__(self, conversation_id: object) -> bool:
        return conversation_id in self._turns

    def __len__(self) -> int:
        return len(self._turns)

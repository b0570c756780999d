"""In-memory session state shared by the handlers and background tasks.

Every logical map is a :class:`TTLMap` guarded by its own lock, so the poll
loop, suggestion tasks and deferred deletions can touch them concurrently.
Nothing here survives a restart.

Button presses are routed by their callback data alone, so
`Phase.AWAITING_SELECTION` only drives phase transitions and log context;
the dispatcher branches on `Phase.AWAITING_TOPIC_NAME`.
"""

from __future__ import annotations

import enum
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Generic, TypeVar

import anyio

from .callbacks import message_id_of
from .logging import get_logger
from .telegram.types import TelegramIncomingMessage

logger = get_logger(__name__)

K = TypeVar("K")
V = TypeVar("V")

CallbackKey = tuple[int, str]
UserKey = tuple[int, int]
MessageKey = tuple[int, int]


class TTLMap(Generic[K, V]):
    def __init__(
        self,
        ttl_s: float,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl_s = ttl_s
        self._clock = clock
        self._items: dict[K, tuple[float, V]] = {}
        self._lock = anyio.Lock()

    def _expired(self, expires_at: float) -> bool:
        return self._clock() >= expires_at

    def _evict(self) -> None:
        stale = [key for key, (exp, _) in self._items.items() if self._expired(exp)]
        for key in stale:
            del self._items[key]

    async def set(self, key: K, value: V, *, ttl_s: float | None = None) -> None:
        lifetime = self._ttl_s if ttl_s is None else ttl_s
        async with self._lock:
            self._evict()
            self._items[key] = (self._clock() + lifetime, value)

    async def get(self, key: K) -> V | None:
        async with self._lock:
            entry = self._items.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if self._expired(expires_at):
                del self._items[key]
                return None
            return value

    async def pop(self, key: K) -> V | None:
        async with self._lock:
            entry = self._items.pop(key, None)
            if entry is None or self._expired(entry[0]):
                return None
            return entry[1]

    async def items(self) -> list[tuple[K, V]]:
        async with self._lock:
            self._evict()
            return [(key, value) for key, (_, value) in self._items.items()]

    async def discard_where(self, predicate: Callable[[K], bool]) -> int:
        async with self._lock:
            doomed = [key for key in self._items if predicate(key)]
            for key in doomed:
                del self._items[key]
            return len(doomed)


class Phase(enum.Enum):
    IDLE = "idle"
    AWAITING_SELECTION = "awaiting_selection"
    AWAITING_TOPIC_NAME = "awaiting_topic_name"


@dataclass(frozen=True, slots=True)
class TopicCreationContext:
    chat_id: int
    thread_id: int | None = None
    # The message to file once the topic exists; None when the user asked
    # for a bare topic from the menu or /addtopic.
    message: TelegramIncomingMessage | None = None

    @property
    def original_message_id(self) -> int | None:
        return self.message.message_id if self.message is not None else None


@dataclass(frozen=True, slots=True)
class Conversation:
    phase: Phase = Phase.IDLE
    creation: TopicCreationContext | None = None

    def __post_init__(self) -> None:
        awaiting_name = self.phase is Phase.AWAITING_TOPIC_NAME
        if awaiting_name != (self.creation is not None):
            raise ValueError(
                f"conversation in phase {self.phase.value} "
                f"{'requires' if awaiting_name else 'cannot carry'} "
                "a topic creation context"
            )

    @classmethod
    def idle(cls) -> Conversation:
        return cls()

    @classmethod
    def awaiting_selection(cls) -> Conversation:
        return cls(phase=Phase.AWAITING_SELECTION)

    @classmethod
    def awaiting_topic_name(cls, creation: TopicCreationContext) -> Conversation:
        return cls(phase=Phase.AWAITING_TOPIC_NAME, creation=creation)


class ConversationState:
    def __init__(
        self,
        *,
        pending_ttl_s: float = 86400,
        topic_name_ttl_s: float = 900,
        recently_moved_ttl_s: float = 300,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.pending: TTLMap[CallbackKey, TelegramIncomingMessage] = TTLMap(
            pending_ttl_s, clock=clock
        )
        self.keyboards: TTLMap[CallbackKey, int] = TTLMap(pending_ttl_s, clock=clock)
        self.conversations: TTLMap[UserKey, Conversation] = TTLMap(
            topic_name_ttl_s, clock=clock
        )
        # A shown keyboard stays pressable as long as its pending entries.
        self._selection_ttl_s = pending_ttl_s
        self.recently_moved: TTLMap[MessageKey, bool] = TTLMap(
            recently_moved_ttl_s, clock=clock
        )

    # pending suggestions

    async def register_pending(
        self,
        chat_id: int,
        callback_data: Iterable[str],
        message: TelegramIncomingMessage,
    ) -> None:
        for data in callback_data:
            await self.pending.set((chat_id, data), message)

    async def pending_message(
        self, chat_id: int, callback_data: str
    ) -> TelegramIncomingMessage | None:
        return await self.pending.get((chat_id, callback_data))

    # keyboard locations

    async def record_keyboard(
        self, chat_id: int, callback_data: Iterable[str], message_id: int
    ) -> None:
        for data in callback_data:
            await self.keyboards.set((chat_id, data), message_id)

    async def keyboard_location(self, chat_id: int, callback_data: str) -> int | None:
        return await self.keyboards.get((chat_id, callback_data))

    async def keyboard_locations_for(
        self, chat_id: int, original_message_id: int
    ) -> list[int]:
        """Distinct keyboard message ids shown for one original message."""
        locations: list[int] = []
        for (key_chat, data), location in await self.keyboards.items():
            if key_chat != chat_id or message_id_of(data) != original_message_id:
                continue
            if location not in locations:
                locations.append(location)
        return locations

    async def forget_message(self, chat_id: int, original_message_id: int) -> None:
        def matches(key: CallbackKey) -> bool:
            return key[0] == chat_id and message_id_of(key[1]) == original_message_id

        pending = await self.pending.discard_where(matches)
        keyboards = await self.keyboards.discard_where(matches)
        logger.debug(
            "state.message.forgotten",
            chat_id=chat_id,
            message_id=original_message_id,
            pending=pending,
            keyboards=keyboards,
        )

    # conversations

    async def conversation(self, chat_id: int, user_id: int) -> Conversation:
        current = await self.conversations.get((chat_id, user_id))
        return current if current is not None else Conversation.idle()

    async def finish_selection(self, chat_id: int, user_id: int) -> None:
        current = await self.conversation(chat_id, user_id)
        if current.phase is Phase.AWAITING_SELECTION:
            await self.conversations.pop((chat_id, user_id))

    async def await_selection(self, chat_id: int, user_id: int) -> None:
        current = await self.conversation(chat_id, user_id)
        if current.phase is Phase.AWAITING_TOPIC_NAME:
            # A pending name prompt wins over a fresh keyboard.
            return
        await self.conversations.set(
            (chat_id, user_id),
            Conversation.awaiting_selection(),
            ttl_s=self._selection_ttl_s,
        )

    async def begin_topic_creation(
        self, user_id: int, creation: TopicCreationContext
    ) -> None:
        key = (creation.chat_id, user_id)
        previous = await self.conversations.get(key)
        if previous is not None and previous.creation is not None:
            logger.debug(
                "state.topic_creation.replaced",
                chat_id=creation.chat_id,
                user_id=user_id,
                previous_message_id=previous.creation.original_message_id,
            )
        await self.conversations.set(key, Conversation.awaiting_topic_name(creation))

    async def topic_creation(
        self, chat_id: int, user_id: int
    ) -> TopicCreationContext | None:
        return (await self.conversation(chat_id, user_id)).creation

    async def close_topic_creation(
        self, chat_id: int, user_id: int
    ) -> TopicCreationContext | None:
        current = await self.conversations.pop((chat_id, user_id))
        return current.creation if current is not None else None

    # recently moved

    async def mark_recently_moved(self, chat_id: int, message_id: int) -> None:
        await self.recently_moved.set((chat_id, message_id), True)

    async def consume_recently_moved(self, chat_id: int, message_id: int) -> bool:
        return bool(await self.recently_moved.pop((chat_id, message_id)))

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field

import anyio

from .logging import get_logger
from .store import Topic, TopicStore, TopicStoreError
from .telegram.client import BotClient, GatewayError

logger = get_logger(__name__)


class TopicLookupError(RuntimeError):
    """Neither Telegram nor the topic store could list a chat's topics."""


@dataclass(frozen=True, slots=True)
class ResolvedTopic:
    name: str
    thread_id: int
    created: bool = False


@dataclass(slots=True)
class _NameLock:
    lock: anyio.Lock = field(default_factory=anyio.Lock)
    users: int = 0


class TopicResolver:
    def __init__(self, bot: BotClient, store: TopicStore) -> None:
        self._bot = bot
        self._store = store
        # Entries live only while someone holds or waits for them.
        self._locks: dict[tuple[int, str], _NameLock] = {}

    @asynccontextmanager
    async def _locked(self, chat_id: int, name: str) -> AsyncIterator[None]:
        key = (chat_id, name.strip().casefold())
        entry = self._locks.get(key)
        if entry is None:
            entry = _NameLock()
            self._locks[key] = entry
        entry.users += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.users -= 1
            if entry.users == 0:
                del self._locks[key]

    async def list_topics(self, chat_id: int) -> list[Topic]:
        listed = await self._bot.get_forum_topics(chat_id)
        if listed is not None:
            topics = [
                Topic(chat_id=chat_id, name=item.name, thread_id=item.message_thread_id)
                for item in listed
            ]
            for topic in topics:
                await self._remember(topic)
            return topics
        try:
            return await self._store.get_topics_by_chat(chat_id)
        except TopicStoreError as e:
            raise TopicLookupError(
                f"could not list topics for chat {chat_id}: {e}"
            ) from e

    async def list_topic_names(self, chat_id: int) -> list[str]:
        return [topic.name for topic in await self.list_topics(chat_id)]

    async def find(self, chat_id: int, name: str) -> ResolvedTopic | None:
        wanted = name.strip().casefold()
        for topic in await self.list_topics(chat_id):
            if topic.thread_id is not None and topic.name.casefold() == wanted:
                return ResolvedTopic(name=topic.name, thread_id=topic.thread_id)
        return None

    async def create(
        self, chat_id: int, name: str, *, created_by: int | None = None
    ) -> ResolvedTopic:
        created = await self._bot.create_forum_topic(chat_id, name)
        if created is None:
            raise GatewayError("createForumTopic", f"could not create topic {name!r}")
        logger.info(
            "topic.created",
            chat_id=chat_id,
            name=created.name,
            thread_id=created.message_thread_id,
        )
        await self._remember(
            Topic(
                chat_id=chat_id,
                name=created.name,
                thread_id=created.message_thread_id,
                created_by=created_by,
            )
        )
        return ResolvedTopic(
            name=created.name, thread_id=created.message_thread_id, created=True
        )

    async def find_or_create(
        self, chat_id: int, name: str, *, created_by: int | None = None
    ) -> ResolvedTopic:
        async with self._locked(chat_id, name):
            found = await self.find(chat_id, name)
            if found is not None:
                return found
            return await self.create(chat_id, name, created_by=created_by)

    async def create_if_absent(
        self, chat_id: int, name: str, *, created_by: int | None = None
    ) -> ResolvedTopic | None:
        """Create ``name`` unless a topic with that name exists (None then)."""
        async with self._locked(chat_id, name):
            if await self.find(chat_id, name) is not None:
                return None
            return await self.create(chat_id, name, created_by=created_by)

    async def _remember(self, topic: Topic) -> None:
        try:
            await self._store.add_topic(
                topic.chat_id, topic.name, topic.thread_id, topic.created_by
            )
        except TopicStoreError as e:
            logger.warning(
                "topic.store_failed",
                chat_id=topic.chat_id,
                name=topic.name,
                error=str(e),
            )

from __future__ import annotations

from dataclasses import dataclass, field

from anyio.abc import TaskGroup

from ..oracle import SuggestionOracle
from ..scheduler import DeferredTasks
from ..settings import DEFAULT_BOT_USERNAMES, BotSettings
from ..state import ConversationState
from ..store import TopicStore
from ..telegram.client import BotClient
from ..topics import TopicResolver

PARSE_MODE_MARKDOWN = "Markdown"


@dataclass(slots=True)
class HandlerContext:
    bot: BotClient
    state: ConversationState
    topics: TopicResolver
    store: TopicStore
    oracle: SuggestionOracle
    deferred: DeferredTasks
    task_group: TaskGroup
    bot_id: int | None = None
    bot_usernames: tuple[str, ...] = field(default=DEFAULT_BOT_USERNAMES)
    suggestion_timeout_s: float = 10.0
    original_delete_delay_s: float = 1.0
    confirmation_delete_delay_s: float = 60.0
    warning_delete_delay_s: float = 60.0

    @classmethod
    def from_settings(
        cls,
        settings: BotSettings,
        *,
        bot: BotClient,
        state: ConversationState,
        topics: TopicResolver,
        store: TopicStore,
        oracle: SuggestionOracle,
        deferred: DeferredTasks,
        task_group: TaskGroup,
        bot_id: int | None = None,
    ) -> HandlerContext:
        return cls(
            bot=bot,
            state=state,
            topics=topics,
            store=store,
            oracle=oracle,
            deferred=deferred,
            task_group=task_group,
            bot_id=bot_id,
            bot_usernames=tuple(settings.bot_usernames),
            suggestion_timeout_s=settings.suggestion_timeout_s,
            original_delete_delay_s=settings.original_delete_delay_s,
            confirmation_delete_delay_s=settings.confirmation_delete_delay_s,
            warning_delete_delay_s=settings.warning_delete_delay_s,
        )

    def delete_later(self, chat_id: int, message_id: int, delay_s: float) -> None:
        self.deferred.delete_later(self.bot.delete_message, chat_id, message_id, delay_s)

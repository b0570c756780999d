from __future__ import annotations

import time
from collections.abc import AsyncIterator, Awaitable, Callable

import anyio

from .dispatcher import Dispatcher
from .handlers import HandlerContext
from .logging import get_logger
from .oracle import OpenAISuggestionOracle, SuggestionOracle
from .scheduler import DeferredTasks
from .settings import BotSettings
from .state import ConversationState
from .store import TopicStore
from .telegram.api_models import User
from .telegram.client import BotClient, TelegramClient
from .telegram.parsing import poll_incoming
from .telegram.types import TelegramIncomingUpdate
from .topics import TopicResolver

logger = get_logger(__name__)

PollerFn = Callable[[BotClient], AsyncIterator[TelegramIncomingUpdate]]


def _bot_usernames(settings: BotSettings, me: User | None) -> tuple[str, ...]:
    usernames = list(settings.bot_usernames)
    if me is not None and me.username:
        own = f"@{me.username}"
        if own.casefold() not in {name.casefold() for name in usernames}:
            usernames.append(own)
    return tuple(usernames)


async def _dispatch_one(dispatcher: Dispatcher, update: TelegramIncomingUpdate) -> None:
    try:
        await dispatcher.handle_update(update)
    except Exception:
        logger.exception(
            "loop.update.failed",
            update_type=type(update).__name__,
            chat_id=update.chat_id,
        )


async def run_main_loop(
    settings: BotSettings,
    *,
    bot: BotClient,
    oracle: SuggestionOracle,
    store: TopicStore,
    poller_fn: PollerFn | None = None,
    sleep: Callable[[float], Awaitable[None]] = anyio.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> None:
    """Handle updates one at a time until the poller is exhausted."""
    me = await bot.get_me()
    if me is None:
        logger.warning("loop.get_me.failed")
    state = ConversationState(
        pending_ttl_s=settings.pending_ttl_s,
        topic_name_ttl_s=settings.topic_name_ttl_s,
        recently_moved_ttl_s=settings.recently_moved_ttl_s,
        clock=clock,
    )
    resolver = TopicResolver(bot, store)
    allowed = set(settings.allowed_chat_ids) or None
    logger.info(
        "loop.starting",
        bot_id=me.id if me is not None else None,
        allowed_chat_ids=sorted(allowed) if allowed else None,
    )

    async with anyio.create_task_group() as tg:
        ctx = HandlerContext.from_settings(
            settings,
            bot=bot,
            state=state,
            topics=resolver,
            store=store,
            oracle=oracle,
            deferred=DeferredTasks(tg, sleep=sleep),
            task_group=tg,
            bot_id=me.id if me is not None else None,
        )
        ctx.bot_usernames = _bot_usernames(settings, me)
        dispatcher = Dispatcher(ctx)
        if poller_fn is not None:
            updates = poller_fn(bot)
        else:
            updates = poll_incoming(
                bot,
                chat_ids=allowed,
                timeout_s=settings.polling_timeout_s,
                retry_delay_s=settings.retry_delay_s,
                sleep=sleep,
            )
        async for update in updates:
            await _dispatch_one(dispatcher, update)
        logger.info("loop.updates.exhausted", pending_deletions=len(ctx.deferred))
        # Pending deletions are dropped once polling stops.
        ctx.deferred.cancel_all()


async def run_bot(settings: BotSettings) -> None:
    bot = TelegramClient(settings.bot_token.get_secret_value())
    oracle = OpenAISuggestionOracle(
        settings.openai_api_key.get_secret_value(),
        model=settings.openai_model,
        base_url=settings.openai_base_url,
    )
    store = TopicStore(settings.database_path)
    try:
        await run_main_loop(settings, bot=bot, oracle=oracle, store=store)
    finally:
        await store.close()
        await oracle.close()
        await bot.close()
        logger.info("loop.stopped")

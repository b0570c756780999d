from __future__ import annotations

from ..callbacks import FolderSelection
from ..keyboards import build_all_topics_keyboard, is_general, keyboard_callback_data
from ..logging import get_logger
from ..messages import (
    CHOOSE_FROM_ALL_TOPICS_MESSAGE,
    ERROR_CREATE_FAILED,
    ERROR_CREATE_NEW_FAILED,
    ERROR_EXISTS_CHECK_FAILED,
    ERROR_SAVE_FAILED,
    ERROR_TOPICS_FAILED,
    NO_TOPICS_DISCOVERED_MESSAGE,
    TOPIC_CREATION_MENU_MESSAGE,
    TOPIC_NAME_EMPTY_ERROR,
    TOPIC_NAME_EXISTS_ERROR,
    TOPIC_NAME_PROMPT,
    format_saved_confirmation,
)
from ..state import TopicCreationContext
from ..telegram.client import GatewayError
from ..telegram.types import TelegramCallbackQuery, TelegramIncomingMessage
from ..topics import ResolvedTopic, TopicLookupError
from .commands import send_topics_list
from .context import PARSE_MODE_MARKDOWN, HandlerContext
from .reply import make_reply
from .suggestions import show_keyboard

logger = get_logger(__name__)


async def _move_message(
    ctx: HandlerContext,
    msg: TelegramIncomingMessage,
    topic: ResolvedTopic,
) -> None:
    """Copy ``msg`` into ``topic``, confirm in General and clean up later."""
    copied = await ctx.bot.copy_message(
        msg.chat_id, msg.chat_id, msg.message_id, message_thread_id=topic.thread_id
    )
    if copied is None:
        await ctx.bot.send_message(
            msg.chat_id, ERROR_SAVE_FAILED, message_thread_id=msg.thread_id
        )
        raise GatewayError("copyMessage", f"message {msg.message_id} to {topic.name!r}")
    await ctx.state.mark_recently_moved(msg.chat_id, msg.message_id)
    logger.info(
        "topic.message_moved",
        chat_id=msg.chat_id,
        message_id=msg.message_id,
        copy_id=copied,
        topic=topic.name,
        thread_id=topic.thread_id,
        created=topic.created,
    )
    confirmation = await ctx.bot.send_message(
        msg.chat_id,
        format_saved_confirmation(topic.name, msg.text),
        message_thread_id=msg.thread_id,
    )
    await ctx.state.forget_message(msg.chat_id, msg.message_id)
    ctx.delete_later(msg.chat_id, msg.message_id, ctx.original_delete_delay_s)
    if confirmation is not None:
        ctx.delete_later(
            msg.chat_id, confirmation.message_id, ctx.confirmation_delete_delay_s
        )


async def _keyboard_message_id(
    ctx: HandlerContext, query: TelegramCallbackQuery
) -> int:
    location = None
    if query.data is not None:
        location = await ctx.state.keyboard_location(query.chat_id, query.data)
    return location if location is not None else query.message_id


async def handle_topic_selection(
    ctx: HandlerContext,
    query: TelegramCallbackQuery,
    msg: TelegramIncomingMessage,
    selection: FolderSelection,
) -> None:
    reply = make_reply(ctx, msg)
    try:
        topic = await ctx.topics.find_or_create(
            msg.chat_id, selection.name, created_by=query.sender_id
        )
    except TopicLookupError:
        await reply(ERROR_TOPICS_FAILED)
        raise
    except GatewayError:
        await reply(ERROR_CREATE_NEW_FAILED)
        raise

    keyboard_id = await _keyboard_message_id(ctx, query)
    await _move_message(ctx, msg, topic)
    await ctx.bot.delete_message(query.chat_id, keyboard_id)
    if query.sender_id is not None:
        await ctx.state.finish_selection(query.chat_id, query.sender_id)


async def handle_new_topic_request(
    ctx: HandlerContext,
    query: TelegramCallbackQuery,
    msg: TelegramIncomingMessage,
) -> None:
    reply = make_reply(ctx, msg)
    if await reply(TOPIC_NAME_PROMPT) is None:
        raise GatewayError("sendMessage", f"topic name prompt in chat {msg.chat_id}")
    if query.sender_id is not None:
        await ctx.state.begin_topic_creation(
            query.sender_id,
            TopicCreationContext(
                chat_id=msg.chat_id, thread_id=msg.thread_id, message=msg
            ),
        )
    await ctx.bot.delete_message(query.chat_id, await _keyboard_message_id(ctx, query))


async def handle_create_topic_menu(
    ctx: HandlerContext, query: TelegramCallbackQuery
) -> None:
    sent = await ctx.bot.send_message(
        query.chat_id,
        TOPIC_CREATION_MENU_MESSAGE,
        message_thread_id=query.thread_id,
        parse_mode=PARSE_MODE_MARKDOWN,
    )
    if sent is None:
        raise GatewayError("sendMessage", f"creation menu in chat {query.chat_id}")
    if query.sender_id is not None:
        await ctx.state.begin_topic_creation(
            query.sender_id,
            TopicCreationContext(chat_id=query.chat_id, thread_id=query.thread_id),
        )


async def handle_topic_name_entry(
    ctx: HandlerContext,
    msg: TelegramIncomingMessage,
    creation: TopicCreationContext,
) -> None:
    """Create the topic the user just named; the prompt is closed either way."""
    if msg.sender_id is not None:
        await ctx.state.close_topic_creation(msg.chat_id, msg.sender_id)
    reply = make_reply(
        ctx, None, chat_id=creation.chat_id, thread_id=creation.thread_id
    )
    name = msg.text.strip()
    if not name:
        await reply(TOPIC_NAME_EMPTY_ERROR)
        return

    try:
        topic = await ctx.topics.create_if_absent(
            creation.chat_id, name, created_by=msg.sender_id
        )
    except TopicLookupError:
        await reply(ERROR_EXISTS_CHECK_FAILED)
        raise
    except GatewayError:
        await reply(ERROR_CREATE_FAILED)
        raise
    if topic is None:
        logger.info("topic.name_taken", chat_id=creation.chat_id, name=name)
        await reply(TOPIC_NAME_EXISTS_ERROR)
        return

    await ctx.bot.send_message(
        creation.chat_id, topic.name, message_thread_id=topic.thread_id
    )
    pending = creation.message
    if pending is not None:
        await _move_message(ctx, pending, topic)


async def handle_show_all_topics(
    ctx: HandlerContext,
    query: TelegramCallbackQuery,
    msg: TelegramIncomingMessage,
) -> None:
    reply = make_reply(ctx, msg)
    try:
        names = await ctx.topics.list_topic_names(msg.chat_id)
    except TopicLookupError:
        await reply(ERROR_TOPICS_FAILED)
        raise
    names = [name for name in names if not is_general(name)]
    if not names:
        await reply(NO_TOPICS_DISCOVERED_MESSAGE)
        return
    markup = build_all_topics_keyboard(msg.message_id, names)
    await ctx.state.register_pending(msg.chat_id, keyboard_callback_data(markup), msg)
    await show_keyboard(
        ctx, msg, query.message_id, CHOOSE_FROM_ALL_TOPICS_MESSAGE, markup
    )


async def handle_show_all_topics_menu(
    ctx: HandlerContext, query: TelegramCallbackQuery
) -> None:
    await send_topics_list(ctx, query.chat_id, thread_id=query.thread_id)

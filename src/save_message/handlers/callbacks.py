from __future__ import annotations

from ..callbacks import (
    ActionKind,
    FolderSelection,
    MenuAction,
    MenuKind,
    is_warning_callback,
    parse_callback_data,
)
from ..logging import get_logger
from ..messages import CALLBACK_PROCESSING, ERROR_MESSAGE_NOT_FOUND, ERROR_UNKNOWN_ACTION
from ..state import Phase
from ..telegram.types import TelegramCallbackQuery
from .context import HandlerContext
from .suggestions import handle_retry
from .topics import (
    handle_create_topic_menu,
    handle_new_topic_request,
    handle_show_all_topics,
    handle_show_all_topics_menu,
    handle_topic_selection,
)
from .warnings import handle_warning_ok

logger = get_logger(__name__)


async def handle_callback(ctx: HandlerContext, query: TelegramCallbackQuery) -> None:
    await ctx.bot.answer_callback_query(
        query.callback_query_id, text=CALLBACK_PROCESSING
    )
    phase = Phase.IDLE
    if query.sender_id is not None:
        phase = (await ctx.state.conversation(query.chat_id, query.sender_id)).phase
    logger.info(
        "callback.received",
        chat_id=query.chat_id,
        message_id=query.message_id,
        sender_id=query.sender_id,
        data=query.data,
        phase=phase.value,
    )
    if is_warning_callback(query.data):
        # Warnings are not tied to any pending message.
        await handle_warning_ok(ctx, query)
        return

    parsed = parse_callback_data(query.data)
    if parsed is None:
        await ctx.bot.send_message(
            query.chat_id, ERROR_UNKNOWN_ACTION, message_thread_id=query.thread_id
        )
        return

    if isinstance(parsed, MenuAction):
        if parsed.kind is MenuKind.CREATE_TOPIC:
            await handle_create_topic_menu(ctx, query)
        else:
            await handle_show_all_topics_menu(ctx, query)
        return

    msg = await ctx.state.pending_message(query.chat_id, query.data or "")
    if msg is None:
        logger.info(
            "callback.message_not_found",
            chat_id=query.chat_id,
            data=query.data,
        )
        await ctx.bot.send_message(
            query.chat_id, ERROR_MESSAGE_NOT_FOUND, message_thread_id=query.thread_id
        )
        return

    if isinstance(parsed, FolderSelection):
        await handle_topic_selection(ctx, query, msg, parsed)
    elif parsed.kind is ActionKind.CREATE_NEW_FOLDER:
        await handle_new_topic_request(ctx, query, msg)
    elif parsed.kind is ActionKind.SHOW_ALL_TOPICS:
        await handle_show_all_topics(ctx, query, msg)
    elif parsed.kind in (ActionKind.RETRY, ActionKind.BACK_TO_SUGGESTIONS):
        await handle_retry(ctx, query, msg)
    else:
        await ctx.bot.send_message(
            query.chat_id, ERROR_UNKNOWN_ACTION, message_thread_id=query.thread_id
        )

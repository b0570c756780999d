from __future__ import annotations

import anyio

from ..callbacks import ActionKind, encode_action
from ..keyboards import (
    build_retry_keyboard,
    build_suggestion_keyboard,
    is_general,
    keyboard_callback_data,
)
from ..logging import get_logger
from ..messages import (
    AI_FAILED_MESSAGE,
    AI_PROCESSING_MESSAGE,
    CHOOSE_FOLDER_MESSAGE,
)
from ..oracle import SuggestionError
from ..telegram.api_models import InlineKeyboardMarkup
from ..telegram.client import GatewayError
from ..telegram.types import TelegramCallbackQuery, TelegramIncomingMessage
from ..topics import TopicLookupError
from .context import HandlerContext
from .reply import make_reply

logger = get_logger(__name__)


async def handle_general_message(
    ctx: HandlerContext, msg: TelegramIncomingMessage
) -> None:
    """Post a placeholder and fetch folder suggestions in the background."""
    reply = make_reply(ctx, msg)
    placeholder = await reply(AI_PROCESSING_MESSAGE)
    if placeholder is None:
        raise GatewayError("sendMessage", f"placeholder in chat {msg.chat_id}")
    await ctx.state.record_keyboard(
        msg.chat_id,
        [encode_action(ActionKind.RETRY, msg.message_id)],
        placeholder.message_id,
    )
    logger.info(
        "suggestions.requested",
        chat_id=msg.chat_id,
        message_id=msg.message_id,
        placeholder_id=placeholder.message_id,
    )
    ctx.task_group.start_soon(run_suggestions, ctx, msg, placeholder.message_id)


async def handle_retry(
    ctx: HandlerContext,
    query: TelegramCallbackQuery,
    msg: TelegramIncomingMessage,
) -> None:
    """Re-run the suggestion flow on the message carrying the pressed button."""
    edited = await ctx.bot.edit_message_text(
        query.chat_id, query.message_id, AI_PROCESSING_MESSAGE
    )
    if edited is None:
        logger.warning(
            "suggestions.placeholder_edit_failed",
            chat_id=query.chat_id,
            message_id=query.message_id,
        )
    ctx.task_group.start_soon(run_suggestions, ctx, msg, query.message_id)


async def run_suggestions(
    ctx: HandlerContext, msg: TelegramIncomingMessage, target_message_id: int
) -> None:
    try:
        await _suggest(ctx, msg, target_message_id)
    except Exception:
        logger.exception(
            "suggestions.failed",
            chat_id=msg.chat_id,
            message_id=msg.message_id,
        )


async def _known_topic_names(ctx: HandlerContext, chat_id: int) -> list[str]:
    try:
        names = await ctx.topics.list_topic_names(chat_id)
    except TopicLookupError as e:
        logger.warning("suggestions.topics_unavailable", chat_id=chat_id, error=str(e))
        return []
    return [name for name in names if not is_general(name)]


async def _suggest(
    ctx: HandlerContext, msg: TelegramIncomingMessage, target_message_id: int
) -> None:
    known = await _known_topic_names(ctx, msg.chat_id)
    try:
        with anyio.fail_after(ctx.suggestion_timeout_s):
            suggestions = await ctx.oracle.suggest_folders(msg.text, known)
    except (TimeoutError, SuggestionError) as e:
        logger.warning(
            "suggestions.oracle_failed",
            chat_id=msg.chat_id,
            message_id=msg.message_id,
            error=str(e) or e.__class__.__name__,
        )
        markup = build_retry_keyboard(msg.message_id)
        await ctx.state.register_pending(
            msg.chat_id, keyboard_callback_data(markup), msg
        )
        await show_keyboard(ctx, msg, target_message_id, AI_FAILED_MESSAGE, markup)
        return

    markup = build_suggestion_keyboard(msg.message_id, suggestions, known)
    await ctx.state.register_pending(msg.chat_id, keyboard_callback_data(markup), msg)
    if msg.sender_id is not None:
        await ctx.state.await_selection(msg.chat_id, msg.sender_id)
    await show_keyboard(ctx, msg, target_message_id, CHOOSE_FOLDER_MESSAGE, markup)


async def show_keyboard(
    ctx: HandlerContext,
    msg: TelegramIncomingMessage,
    target_message_id: int,
    text: str,
    markup: InlineKeyboardMarkup,
) -> int | None:
    """Edit a keyboard into place and remember where it lives.

    Falls back to any other message already showing a keyboard for ``msg``,
    then to a fresh message.
    """
    callback_data = keyboard_callback_data(markup)
    candidates = [target_message_id]
    for location in await ctx.state.keyboard_locations_for(
        msg.chat_id, msg.message_id
    ):
        if location not in candidates:
            candidates.append(location)

    for location in candidates:
        edited = await ctx.bot.edit_message_text(
            msg.chat_id, location, text, reply_markup=markup
        )
        if edited is not None:
            await ctx.state.record_keyboard(msg.chat_id, callback_data, location)
            return location
        logger.warning(
            "suggestions.edit_failed",
            chat_id=msg.chat_id,
            message_id=msg.message_id,
            location=location,
        )

    await ctx.bot.delete_message(msg.chat_id, target_message_id)
    reply = make_reply(ctx, msg)
    sent = await reply(text, reply_markup=markup)
    if sent is None:
        logger.error(
            "suggestions.keyboard_lost",
            chat_id=msg.chat_id,
            message_id=msg.message_id,
        )
        return None
    await ctx.state.record_keyboard(msg.chat_id, callback_data, sent.message_id)
    return sent.message_id

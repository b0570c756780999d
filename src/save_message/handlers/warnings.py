from __future__ import annotations

from ..keyboards import build_warning_keyboard
from ..logging import get_logger
from ..messages import WARNING_NON_GENERAL_TOPIC
from ..telegram.client import GatewayError
from ..telegram.types import TelegramCallbackQuery, TelegramIncomingMessage
from .context import PARSE_MODE_MARKDOWN, HandlerContext
from .reply import make_reply

logger = get_logger(__name__)


async def handle_non_general_message(
    ctx: HandlerContext, msg: TelegramIncomingMessage
) -> None:
    """Remove a message posted inside a topic and leave a short-lived warning."""
    logger.info(
        "warning.off_topic",
        chat_id=msg.chat_id,
        thread_id=msg.thread_id,
        message_id=msg.message_id,
    )
    if not await ctx.bot.delete_message(msg.chat_id, msg.message_id):
        logger.warning(
            "warning.delete_failed", chat_id=msg.chat_id, message_id=msg.message_id
        )
    reply = make_reply(ctx, msg)
    warning = await reply(
        WARNING_NON_GENERAL_TOPIC,
        parse_mode=PARSE_MODE_MARKDOWN,
        reply_markup=build_warning_keyboard(msg.message_id),
    )
    if warning is None:
        raise GatewayError("sendMessage", f"warning in chat {msg.chat_id}")
    ctx.delete_later(msg.chat_id, warning.message_id, ctx.warning_delete_delay_s)


async def handle_warning_ok(ctx: HandlerContext, query: TelegramCallbackQuery) -> None:
    ctx.deferred.cancel_delete(query.chat_id, query.message_id)
    deleted = await ctx.bot.delete_message(query.chat_id, query.message_id)
    logger.info(
        "warning.dismissed",
        chat_id=query.chat_id,
        message_id=query.message_id,
        deleted=deleted,
    )

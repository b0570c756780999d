from __future__ import annotations

from collections.abc import Awaitable, Callable
from functools import partial

from ..telegram.api_models import Message
from ..telegram.types import TelegramIncomingMessage
from .context import HandlerContext


def make_reply(
    ctx: HandlerContext,
    msg: TelegramIncomingMessage | None,
    *,
    chat_id: int | None = None,
    thread_id: int | None = None,
) -> Callable[..., Awaitable[Message | None]]:
    """Bind ``send_message`` to the chat and thread a message came from."""
    if msg is not None:
        return partial(
            ctx.bot.send_message,
            msg.chat_id,
            message_thread_id=msg.thread_id,
        )
    if chat_id is None:
        raise ValueError("chat_id is required without a message")
    return partial(ctx.bot.send_message, chat_id, message_thread_id=thread_id)

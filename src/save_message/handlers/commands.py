from __future__ import annotations

from ..keyboards import build_add_topic_keyboard, build_menu_keyboard
from ..logging import get_logger
from ..messages import (
    BOT_MENU_MESSAGE,
    CHOOSE_OPTION_MESSAGE,
    ERROR_NO_TOPICS,
    ERROR_TOPICS_FAILED,
    HELP_MESSAGE,
    WELCOME_MESSAGE,
    format_topics_list,
)
from ..telegram.client import GatewayError
from ..telegram.types import TelegramIncomingMessage
from ..topics import TopicLookupError
from .context import PARSE_MODE_MARKDOWN, HandlerContext
from .reply import make_reply

logger = get_logger(__name__)

KNOWN_COMMANDS = frozenset({"start", "help", "topics", "addtopic"})


def parse_command(text: str, bot_usernames: tuple[str, ...] = ()) -> str | None:
    """Return the command name for ``/cmd`` or ``/cmd@bot`` text, else None."""
    stripped = text.strip()
    if not stripped.startswith("/"):
        return None
    head = stripped.split(maxsplit=1)[0][1:]
    name, _, target = head.partition("@")
    if target:
        wanted = {username.lstrip("@").casefold() for username in bot_usernames}
        if target.casefold() not in wanted:
            return None
    name = name.lower()
    return name if name in KNOWN_COMMANDS else None


def is_bot_mention(text: str, bot_usernames: tuple[str, ...]) -> bool:
    lowered = text.casefold()
    return any(username.casefold() in lowered for username in bot_usernames)


async def _send_or_raise(
    ctx: HandlerContext,
    msg: TelegramIncomingMessage,
    text: str,
    **kwargs,
) -> None:
    reply = make_reply(ctx, msg)
    sent = await reply(text, **kwargs)
    if sent is None:
        raise GatewayError("sendMessage", f"reply in chat {msg.chat_id}")


async def handle_start(ctx: HandlerContext, msg: TelegramIncomingMessage) -> None:
    await _send_or_raise(ctx, msg, WELCOME_MESSAGE)
    logger.info("command.start", chat_id=msg.chat_id)


async def handle_help(ctx: HandlerContext, msg: TelegramIncomingMessage) -> None:
    await _send_or_raise(ctx, msg, HELP_MESSAGE, parse_mode=PARSE_MODE_MARKDOWN)


async def send_topics_list(
    ctx: HandlerContext,
    chat_id: int,
    *,
    thread_id: int | None = None,
) -> None:
    """Post the chat's topics as a Markdown list."""
    reply = make_reply(ctx, None, chat_id=chat_id, thread_id=thread_id)
    try:
        names = await ctx.topics.list_topic_names(chat_id)
    except TopicLookupError:
        await reply(ERROR_TOPICS_FAILED)
        raise
    if not names:
        sent = await reply(ERROR_NO_TOPICS)
    else:
        sent = await reply(format_topics_list(names), parse_mode=PARSE_MODE_MARKDOWN)
    if sent is None:
        raise GatewayError("sendMessage", f"topics list in chat {chat_id}")


async def handle_topics(ctx: HandlerContext, msg: TelegramIncomingMessage) -> None:
    await send_topics_list(ctx, msg.chat_id, thread_id=msg.thread_id)


async def handle_add_topic(ctx: HandlerContext, msg: TelegramIncomingMessage) -> None:
    await _send_or_raise(
        ctx, msg, CHOOSE_OPTION_MESSAGE, reply_markup=build_add_topic_keyboard()
    )


async def handle_bot_mention(ctx: HandlerContext, msg: TelegramIncomingMessage) -> None:
    logger.info("command.mention", chat_id=msg.chat_id, sender_id=msg.sender_id)
    await _send_or_raise(
        ctx,
        msg,
        BOT_MENU_MESSAGE,
        parse_mode=PARSE_MODE_MARKDOWN,
        reply_markup=build_menu_keyboard(),
    )


_COMMANDS = {
    "start": handle_start,
    "help": handle_help,
    "topics": handle_topics,
    "addtopic": handle_add_topic,
}


async def handle_command(
    ctx: HandlerContext, msg: TelegramIncomingMessage, command: str
) -> None:
    handler = _COMMANDS[command]
    logger.debug("command.dispatch", chat_id=msg.chat_id, command=command)
    await handler(ctx, msg)

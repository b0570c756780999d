"""Routes every inbound update to exactly one handler."""

from __future__ import annotations

from .handlers import (
    HandlerContext,
    handle_bot_mention,
    handle_callback,
    handle_command,
    handle_general_message,
    handle_non_general_message,
    handle_topic_name_entry,
    is_bot_mention,
    parse_command,
)
from .handlers.commands import handle_start
from .logging import get_logger
from .store import TopicStoreError
from .telegram.types import (
    TelegramCallbackQuery,
    TelegramIncomingMessage,
    TelegramIncomingUpdate,
    TelegramMembershipUpdate,
)

logger = get_logger(__name__)

SUPERGROUP = "supergroup"


class Dispatcher:
    def __init__(self, ctx: HandlerContext) -> None:
        self._ctx = ctx

    @property
    def ctx(self) -> HandlerContext:
        return self._ctx

    async def handle_update(self, update: TelegramIncomingUpdate) -> None:
        if isinstance(update, TelegramMembershipUpdate):
            logger.info(
                "dispatch.membership",
                chat_id=update.chat_id,
                user_id=update.user_id,
                old_status=update.old_status,
                new_status=update.new_status,
                joined=update.joined,
            )
            return
        if isinstance(update, TelegramCallbackQuery):
            await handle_callback(self._ctx, update)
            return
        await self._handle_message(update)

    async def _handle_message(self, msg: TelegramIncomingMessage) -> None:
        ctx = self._ctx
        if ctx.bot_id is not None and ctx.bot_id in msg.new_chat_member_ids:
            logger.info("dispatch.bot_joined", chat_id=msg.chat_id)
            await handle_start(ctx, msg)
            return
        if msg.new_chat_member_ids:
            return
        if not msg.in_general_topic:
            await handle_non_general_message(ctx, msg)
            return
        if await ctx.state.consume_recently_moved(msg.chat_id, msg.message_id):
            logger.info(
                "dispatch.recently_moved",
                chat_id=msg.chat_id,
                message_id=msg.message_id,
            )
            return
        if msg.sender_id is not None:
            creation = await ctx.state.topic_creation(msg.chat_id, msg.sender_id)
            if creation is not None:
                await handle_topic_name_entry(ctx, msg, creation)
                return

        command = parse_command(msg.text, ctx.bot_usernames)
        if command is not None:
            await handle_command(ctx, msg, command)
            return
        if is_bot_mention(msg.text, ctx.bot_usernames):
            await handle_bot_mention(ctx, msg)
            return
        if msg.chat_type != SUPERGROUP:
            logger.info(
                "dispatch.ignored",
                chat_id=msg.chat_id,
                chat_type=msg.chat_type,
                message_id=msg.message_id,
            )
            return
        if msg.sender is not None and msg.sender.is_bot:
            return
        await self._remember_sender(msg)
        await handle_general_message(ctx, msg)

    async def _remember_sender(self, msg: TelegramIncomingMessage) -> None:
        sender = msg.sender
        if sender is None:
            return
        try:
            await self._ctx.store.upsert_user(
                sender.id, sender.username, sender.first_name, sender.last_name
            )
        except TopicStoreError as e:
            logger.warning("dispatch.user_store_failed", user_id=sender.id, error=str(e))

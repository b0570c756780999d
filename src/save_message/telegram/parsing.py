from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable, Iterable
from typing import Any, TypeVar

import anyio
import msgspec

from ..logging import get_logger
from .api_models import CallbackQuery, ChatMemberUpdated, Message, Update, User
from .client import BotClient
from .types import (
    TelegramCallbackQuery,
    TelegramIncomingMessage,
    TelegramIncomingUpdate,
    TelegramMembershipUpdate,
    TelegramSender,
)

logger = get_logger(__name__)
T = TypeVar("T")

ALLOWED_UPDATES = ["message", "callback_query", "my_chat_member"]


def parse_incoming_update(
    update: Update | dict[str, Any],
    *,
    chat_ids: set[int] | None = None,
) -> TelegramIncomingUpdate | None:
    if isinstance(update, dict):
        try:
            update = msgspec.convert(update, type=Update)
        except msgspec.ValidationError:
            return None

    member_update = _coerce_payload(update.my_chat_member, ChatMemberUpdated)
    if member_update is not None:
        return _parse_membership_update(member_update, chat_ids=chat_ids)
    callback_query = _coerce_payload(update.callback_query, CallbackQuery)
    if callback_query is not None:
        return _parse_callback_query(callback_query, chat_ids=chat_ids)
    msg = _coerce_payload(update.message, Message)
    if msg is not None:
        return _parse_incoming_message(msg, chat_ids=chat_ids)
    return None


def _sender(user: User | None) -> TelegramSender | None:
    if user is None:
        return None
    return TelegramSender(
        id=user.id,
        is_bot=user.is_bot,
        username=user.username,
        first_name=user.first_name,
        last_name=user.last_name,
    )


def _thread_id(msg: Message) -> int | None:
    # Replies inside General carry the replied message id as
    # message_thread_id; only real topic messages set is_topic_message.
    if not msg.is_topic_message:
        return None
    return msg.message_thread_id


def _parse_incoming_message(
    msg: Message,
    *,
    chat_ids: set[int] | None = None,
) -> TelegramIncomingMessage | None:
    chat = msg.chat
    if chat is None:
        return None
    if chat_ids and chat.id not in chat_ids:
        return None
    text = msg.text if msg.text is not None else msg.caption
    return TelegramIncomingMessage(
        chat_id=chat.id,
        message_id=msg.message_id,
        text=text or "",
        sender=_sender(msg.from_),
        thread_id=_thread_id(msg),
        chat_type=chat.type,
        new_chat_member_ids=tuple(
            member.id for member in msg.new_chat_members or ()
        ),
    )


def _parse_callback_query(
    query: CallbackQuery,
    *,
    chat_ids: set[int] | None = None,
) -> TelegramCallbackQuery | None:
    msg = query.message
    if msg is None or msg.chat is None:
        return None
    if chat_ids and msg.chat.id not in chat_ids:
        return None
    return TelegramCallbackQuery(
        chat_id=msg.chat.id,
        message_id=msg.message_id,
        callback_query_id=query.id,
        data=query.data,
        sender=_sender(query.from_),
        thread_id=_thread_id(msg),
    )


def _parse_membership_update(
    update: ChatMemberUpdated,
    *,
    chat_ids: set[int] | None = None,
) -> TelegramMembershipUpdate | None:
    if chat_ids and update.chat.id not in chat_ids:
        return None
    new_member = update.new_chat_member
    old_member = update.old_chat_member
    user = new_member.user if new_member is not None else None
    if user is None:
        return None
    return TelegramMembershipUpdate(
        chat_id=update.chat.id,
        user_id=user.id,
        old_status=old_member.status if old_member is not None else None,
        new_status=new_member.status if new_member is not None else None,
    )


def _coerce_payload(payload: Any | None, kind: type[T]) -> T | None:
    if payload is None:
        return None
    if isinstance(payload, kind):
        return payload
    if isinstance(payload, dict):
        try:
            return msgspec.convert(payload, type=kind)
        except msgspec.ValidationError:
            return None
    return None


async def poll_incoming(
    bot: BotClient,
    *,
    chat_ids: Iterable[int] | None = None,
    offset: int | None = None,
    timeout_s: int = 10,
    retry_delay_s: float = 2.0,
    sleep: Callable[[float], Awaitable[None]] = anyio.sleep,
) -> AsyncIterator[TelegramIncomingUpdate]:
    allowed = set(chat_ids) if chat_ids is not None else None
    while True:
        updates = await bot.get_updates(
            offset=offset,
            timeout_s=timeout_s,
            allowed_updates=ALLOWED_UPDATES,
        )
        if updates is None:
            logger.info("loop.get_updates.failed")
            await sleep(retry_delay_s)
            continue
        for upd in updates:
            # The offset only moves forward, even if handling later fails.
            if offset is None or upd.update_id >= offset:
                offset = upd.update_id + 1
            parsed = parse_incoming_update(upd, chat_ids=allowed)
            if parsed is None:
                logger.debug("loop.update.skipped", update_id=upd.update_id)
                continue
            yield parsed

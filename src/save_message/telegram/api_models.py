from __future__ import annotations

import msgspec

__all__ = [
    "CallbackQuery",
    "Chat",
    "ChatMember",
    "ChatMemberUpdated",
    "ForumTopic",
    "InlineKeyboardButton",
    "InlineKeyboardMarkup",
    "Message",
    "MessageId",
    "Update",
    "User",
    "decode_update",
]


class User(msgspec.Struct, forbid_unknown_fields=False):
    id: int
    is_bot: bool = False
    username: str | None = None
    first_name: str | None = None
    last_name: str | None = None


class Chat(msgspec.Struct, forbid_unknown_fields=False):
    id: int
    type: str
    title: str | None = None
    is_forum: bool | None = None


class ChatMember(msgspec.Struct, forbid_unknown_fields=False):
    status: str
    user: User | None = None


class Message(msgspec.Struct, forbid_unknown_fields=False):
    message_id: int
    chat: Chat | None = None
    from_: User | None = msgspec.field(default=None, name="from")
    message_thread_id: int | None = None
    is_topic_message: bool | None = None
    text: str | None = None
    caption: str | None = None
    new_chat_members: list[User] | None = None
    left_chat_member: User | None = None


class MessageId(msgspec.Struct, forbid_unknown_fields=False):
    message_id: int


class CallbackQuery(msgspec.Struct, forbid_unknown_fields=False):
    id: str
    from_: User | None = msgspec.field(default=None, name="from")
    message: Message | None = None
    data: str | None = None


class ChatMemberUpdated(msgspec.Struct, forbid_unknown_fields=False):
    chat: Chat
    from_: User | None = msgspec.field(default=None, name="from")
    old_chat_member: ChatMember | None = None
    new_chat_member: ChatMember | None = None


class Update(msgspec.Struct, forbid_unknown_fields=False):
    update_id: int
    message: Message | None = None
    callback_query: CallbackQuery | None = None
    my_chat_member: ChatMemberUpdated | None = None


class ForumTopic(msgspec.Struct, forbid_unknown_fields=False):
    message_thread_id: int
    name: str


class InlineKeyboardButton(msgspec.Struct):
    text: str
    callback_data: str


class InlineKeyboardMarkup(msgspec.Struct):
    inline_keyboard: list[list[InlineKeyboardButton]]


def decode_update(payload: bytes | str) -> Update:
    return msgspec.json.decode(payload, type=Update)

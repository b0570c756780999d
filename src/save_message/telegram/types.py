from __future__ import annotations

from dataclasses import dataclass
from typing import TypeAlias


@dataclass(frozen=True, slots=True)
class TelegramSender:
    id: int
    is_bot: bool = False
    username: str | None = None
    first_name: str | None = None
    last_name: str | None = None


@dataclass(frozen=True, slots=True)
class TelegramIncomingMessage:
    chat_id: int
    message_id: int
    text: str
    sender: TelegramSender | None = None
    # None means the root ("General") thread of a forum.
    thread_id: int | None = None
    chat_type: str | None = None
    new_chat_member_ids: tuple[int, ...] = ()

    @property
    def sender_id(self) -> int | None:
        return self.sender.id if self.sender is not None else None

    @property
    def in_general_topic(self) -> bool:
        return self.thread_id is None


@dataclass(frozen=True, slots=True)
class TelegramCallbackQuery:
    chat_id: int
    # Id of the message the pressed button is attached to.
    message_id: int
    callback_query_id: str
    data: str | None
    sender: TelegramSender | None = None
    thread_id: int | None = None

    @property
    def sender_id(self) -> int | None:
        return self.sender.id if self.sender is not None else None


@dataclass(frozen=True, slots=True)
class TelegramMembershipUpdate:
    chat_id: int
    user_id: int
    old_status: str | None
    new_status: str | None

    @property
    def joined(self) -> bool:
        return self.new_status in {"member", "administrator"} and self.old_status in {
            None,
            "left",
            "kicked",
        }


TelegramIncomingUpdate: TypeAlias = (
    TelegramIncomingMessage | TelegramCallbackQuery | TelegramMembershipUpdate
)

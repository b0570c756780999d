"""Inline-button callback data.

Wire format is ``<token>_<originalMessageId>``. ``token`` is a folder name or
one of the action prefixes below; the two menu tokens carry no message id.
The message id is always the last ``_``-delimited token.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import TypeAlias

PREFIX_CREATE_NEW_FOLDER = "create_new_folder_"
PREFIX_RETRY = "retry_"
PREFIX_SHOW_ALL_TOPICS = "show_all_topics_"
PREFIX_BACK_TO_SUGGESTIONS = "back_to_suggestions_"
PREFIX_WARNING_OK = "detectMessageOnOtherTopic_ok_"

DATA_CREATE_TOPIC_MENU = "create_topic_menu"
DATA_SHOW_ALL_TOPICS_MENU = "show_all_topics_menu"

# Telegram rejects callback_data longer than this many bytes.
MAX_CALLBACK_DATA_BYTES = 64


class ActionKind(enum.Enum):
    CREATE_NEW_FOLDER = PREFIX_CREATE_NEW_FOLDER
    RETRY = PREFIX_RETRY
    SHOW_ALL_TOPICS = PREFIX_SHOW_ALL_TOPICS
    BACK_TO_SUGGESTIONS = PREFIX_BACK_TO_SUGGESTIONS
    WARNING_OK = PREFIX_WARNING_OK


class MenuKind(enum.Enum):
    CREATE_TOPIC = DATA_CREATE_TOPIC_MENU
    SHOW_ALL_TOPICS = DATA_SHOW_ALL_TOPICS_MENU


@dataclass(frozen=True, slots=True)
class MessageAction:
    kind: ActionKind
    message_id: int


@dataclass(frozen=True, slots=True)
class MenuAction:
    kind: MenuKind


@dataclass(frozen=True, slots=True)
class FolderSelection:
    name: str
    message_id: int


CallbackData: TypeAlias = MessageAction | MenuAction | FolderSelection

# Longest prefix first so that no prefix shadows a longer one.
_ACTION_PREFIXES = sorted(ActionKind, key=lambda kind: len(kind.value), reverse=True)


def _parse_message_id(value: str) -> int | None:
    if not value or not value.isascii() or not value.isdigit():
        return None
    return int(value)


def parse_callback_data(data: str | None) -> CallbackData | None:
    if not data:
        return None
    for menu in MenuKind:
        if data == menu.value:
            return MenuAction(menu)
    for kind in _ACTION_PREFIXES:
        if data.startswith(kind.value):
            message_id = _parse_message_id(data[len(kind.value) :])
            if message_id is not None:
                return MessageAction(kind, message_id)
    name, sep, tail = data.rpartition("_")
    if not sep or not name:
        return None
    message_id = _parse_message_id(tail)
    if message_id is None:
        return None
    return FolderSelection(name, message_id)


def encode_action(kind: ActionKind, message_id: int) -> str:
    return f"{kind.value}{message_id}"


def encode_folder(name: str, message_id: int) -> str:
    return f"{name}_{message_id}"


def is_warning_callback(data: str | None) -> bool:
    return bool(data) and data.startswith(PREFIX_WARNING_OK)


def is_selectable_folder_name(name: str, message_id: int) -> bool:
    """True if a button for ``name`` would resolve back to the same folder."""
    data = encode_folder(name, message_id)
    if len(data.encode("utf-8")) > MAX_CALLBACK_DATA_BYTES:
        return False
    return parse_callback_data(data) == FolderSelection(name, message_id)


def message_id_of(data: str) -> int | None:
    parsed = parse_callback_data(data)
    if isinstance(parsed, (MessageAction, FolderSelection)):
        return parsed.message_id
    return None

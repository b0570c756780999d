from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from .callbacks import (
    DATA_CREATE_TOPIC_MENU,
    DATA_SHOW_ALL_TOPICS_MENU,
    ActionKind,
    encode_action,
    encode_folder,
    is_selectable_folder_name,
)
from .messages import (
    BUTTON_BACK_TO_SUGGESTIONS,
    BUTTON_CREATE_NEW_TOPIC,
    BUTTON_OK,
    BUTTON_SHOW_ALL_TOPICS,
    BUTTON_TRY_AGAIN,
    ICON_FOLDER,
    ICON_NEW_FOLDER,
)
from .telegram.api_models import InlineKeyboardButton, InlineKeyboardMarkup

GENERAL_TOPIC_NAME = "General"
MAX_TOPIC_NAME_LENGTH = 50


@dataclass(frozen=True, slots=True)
class PartitionedSuggestions:
    # Canonical (stored) spellings of known topics the oracle matched.
    existing: tuple[str, ...]
    new: tuple[str, ...]


def is_general(name: str) -> bool:
    return name.strip().casefold() == GENERAL_TOPIC_NAME.casefold()


def is_valid_new_topic_name(name: str) -> bool:
    return 1 <= len(name) <= MAX_TOPIC_NAME_LENGTH and "\n" not in name


def partition_suggestions(
    suggestions: Iterable[str], known_topics: Iterable[str]
) -> PartitionedSuggestions:
    known: dict[str, str] = {}
    for topic in known_topics:
        known.setdefault(topic.casefold(), topic)
    existing: list[str] = []
    new: list[str] = []
    seen: set[str] = set()
    for raw in suggestions:
        name = raw.strip()
        if not name or is_general(name):
            continue
        key = name.casefold()
        if key in seen:
            continue
        seen.add(key)
        if key in known:
            existing.append(known[key])
        elif is_valid_new_topic_name(name):
            new.append(name)
    return PartitionedSuggestions(existing=tuple(existing), new=tuple(new))


def _button(text: str, data: str) -> list[InlineKeyboardButton]:
    return [InlineKeyboardButton(text=text, callback_data=data)]


def build_suggestion_keyboard(
    message_id: int,
    suggestions: Iterable[str],
    known_topics: Sequence[str],
) -> InlineKeyboardMarkup:
    """One button per row: existing folders, new folders, then actions."""
    partitioned = partition_suggestions(suggestions, known_topics)
    rows: list[list[InlineKeyboardButton]] = []
    for name in partitioned.existing:
        if is_selectable_folder_name(name, message_id):
            rows.append(
                _button(f"{ICON_FOLDER} {name}", encode_folder(name, message_id))
            )
    for name in partitioned.new:
        if is_selectable_folder_name(name, message_id):
            rows.append(
                _button(f"{ICON_NEW_FOLDER} {name}", encode_folder(name, message_id))
            )
    rows.append(
        _button(
            BUTTON_CREATE_NEW_TOPIC,
            encode_action(ActionKind.CREATE_NEW_FOLDER, message_id),
        )
    )
    if known_topics:
        rows.append(
            _button(
                BUTTON_SHOW_ALL_TOPICS,
                encode_action(ActionKind.SHOW_ALL_TOPICS, message_id),
            )
        )
    rows.append(_button(BUTTON_TRY_AGAIN, encode_action(ActionKind.RETRY, message_id)))
    return InlineKeyboardMarkup(inline_keyboard=rows)


def build_all_topics_keyboard(
    message_id: int, known_topics: Iterable[str]
) -> InlineKeyboardMarkup:
    rows: list[list[InlineKeyboardButton]] = []
    for name in known_topics:
        if is_general(name) or not is_selectable_folder_name(name, message_id):
            continue
        rows.append(_button(f"{ICON_FOLDER} {name}", encode_folder(name, message_id)))
    rows.append(
        _button(
            BUTTON_BACK_TO_SUGGESTIONS,
            encode_action(ActionKind.BACK_TO_SUGGESTIONS, message_id),
        )
    )
    return InlineKeyboardMarkup(inline_keyboard=rows)


def build_retry_keyboard(message_id: int) -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(
        inline_keyboard=[
            _button(BUTTON_TRY_AGAIN, encode_action(ActionKind.RETRY, message_id))
        ]
    )


def build_warning_keyboard(message_id: int) -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(
        inline_keyboard=[
            _button(BUTTON_OK, encode_action(ActionKind.WARNING_OK, message_id))
        ]
    )


def build_menu_keyboard() -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(
        inline_keyboard=[
            _button(BUTTON_CREATE_NEW_TOPIC, DATA_CREATE_TOPIC_MENU),
            _button(BUTTON_SHOW_ALL_TOPICS, DATA_SHOW_ALL_TOPICS_MENU),
        ]
    )


def build_add_topic_keyboard() -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(
        inline_keyboard=[_button(BUTTON_CREATE_NEW_TOPIC, DATA_CREATE_TOPIC_MENU)]
    )


def keyboard_callback_data(markup: InlineKeyboardMarkup) -> list[str]:
    return [button.callback_data for row in markup.inline_keyboard for button in row]
